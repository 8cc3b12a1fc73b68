"""Tenant-facing webhook settings: enablement, key rotation, relay and logs."""

from datetime import UTC, datetime, time, timedelta
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from src.syncflow.core.config import Settings, get_settings
from src.syncflow.core.exceptions import InvalidRangeError, InvalidWebhookConfigError
from src.syncflow.core.logging import get_logger
from src.syncflow.core.security import generate_webhook_key
from src.syncflow.models import WebhookConfig
from src.syncflow.models.base import utc_now
from src.syncflow.repositories import (
    WebhookConfigRepository,
    WebhookLogOrderRepository,
    WebhookLogRepository,
)
from src.syncflow.schemas.pagination import PagedResponse
from src.syncflow.schemas.webhook import (
    WebhookConfigRead,
    WebhookConfigUpdate,
    WebhookKeyRotated,
    WebhookLogOrderRead,
    WebhookLogQuery,
    WebhookLogRead,
    WebhookRelayUpdate,
)

logger = get_logger(__name__)


class WebhookConfigService:
    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        self.configs = WebhookConfigRepository(session)
        self.logs = WebhookLogRepository(session)
        self.log_orders = WebhookLogOrderRepository(session)

    def webhook_url(self, tenant_id: UUID) -> str:
        return f"{self.settings.public_base_url.rstrip('/')}/api/v1/webhooks/pancake/{tenant_id}"

    def to_read(self, config: WebhookConfig) -> WebhookConfigRead:
        return WebhookConfigRead(
            enabled=config.enabled,
            has_api_key=bool(config.api_key_hash),
            key_last4=config.api_key_last4,
            rotated_at=config.rotated_at,
            rotated_by=config.rotated_by,
            header_key=config.header_key,
            webhook_url=self.webhook_url(config.tenant_id),
            version=config.version,
            relay_enabled=config.relay_enabled,
            relay_webhook_url=config.relay_webhook_url,
            relay_header_key=config.relay_header_key,
            relay_has_api_key=bool(config.relay_api_key),
            relay_updated_at=config.relay_updated_at,
        )

    async def _get_or_create(self, tenant_id: UUID) -> WebhookConfig:
        config = await self.configs.get_by_tenant(tenant_id)
        if config is None:
            config = WebhookConfig(
                tenant_id=tenant_id,
                enabled=False,
                header_key=self.settings.webhook_default_header_key,
            )
            self.configs.add(config)
            await self.session.flush()
        return config

    async def get_config(self, tenant_id: UUID) -> WebhookConfigRead:
        """Current settings. A tenant without a row sees the disabled defaults."""
        config = await self.configs.get_by_tenant(tenant_id)
        if config is None:
            config = WebhookConfig(tenant_id=tenant_id, header_key=self.settings.webhook_default_header_key)
        return self.to_read(config)

    async def update(self, tenant_id: UUID, data: WebhookConfigUpdate) -> WebhookConfigRead:
        config = await self._get_or_create(tenant_id)
        if data.enabled is not None:
            config.enabled = data.enabled
        if data.header_key is not None:
            config.header_key = data.header_key.lower()
        config.updated_at = utc_now()
        await self.session.commit()
        await self.session.refresh(config)
        logger.info("Webhook config updated", tenant_id=str(tenant_id), enabled=config.enabled)
        return self.to_read(config)

    async def rotate_key(self, tenant_id: UUID, rotated_by: UUID | None) -> WebhookKeyRotated:
        """Issue a new inbound key, invalidating the previous one.

        The plaintext is returned here only. The hash swap is a single
        UPDATE so the gate never sees a half-rotated row.
        """
        await self._get_or_create(tenant_id)
        await self.session.commit()

        plaintext, key_hash, last4 = generate_webhook_key()
        await self.configs.swap_key(tenant_id, key_hash, last4, rotated_by)
        await self.session.commit()

        config = await self.configs.get_by_tenant(tenant_id)
        assert config is not None
        await self.session.refresh(config)
        logger.info("Webhook key rotated", tenant_id=str(tenant_id), version=config.version)
        return WebhookKeyRotated(**self.to_read(config).model_dump(), api_key=plaintext)

    async def update_relay(
        self, tenant_id: UUID, data: WebhookRelayUpdate, updated_by: UUID | None
    ) -> WebhookConfigRead:
        config = await self._get_or_create(tenant_id)
        fields = data.model_fields_set

        if "webhook_url" in fields:
            config.relay_webhook_url = (data.webhook_url or "").strip() or None
        if "header_key" in fields:
            config.relay_header_key = (data.header_key or "").strip() or None
        if "api_key" in fields:
            config.relay_api_key = data.api_key or None
        if data.enabled and not config.relay_webhook_url:
            await self.session.rollback()
            raise InvalidWebhookConfigError("Relay webhook URL is required when relay is enabled")

        config.relay_enabled = data.enabled
        config.relay_updated_at = utc_now()
        config.relay_updated_by = updated_by
        config.updated_at = config.relay_updated_at
        await self.session.commit()
        await self.session.refresh(config)
        logger.info("Webhook relay updated", tenant_id=str(tenant_id), relay_enabled=config.relay_enabled)
        return self.to_read(config)

    def _day_bounds(self, query: WebhookLogQuery) -> tuple[datetime | None, datetime | None]:
        """Local calendar dates to naive UTC bounds; the end date is inclusive."""
        tz = ZoneInfo(self.settings.sync_timezone)

        def to_utc(value: datetime) -> datetime:
            return value.replace(tzinfo=tz).astimezone(UTC).replace(tzinfo=None)

        start = to_utc(datetime.combine(query.start_date, time.min)) if query.start_date else None
        end = None
        if query.end_date:
            end = to_utc(datetime.combine(query.end_date + timedelta(days=1), time.min))
        if start and end and end <= start:
            raise InvalidRangeError("endDate must not be before startDate")
        return start, end

    async def query_logs(self, tenant_id: UUID, query: WebhookLogQuery) -> PagedResponse[WebhookLogRead]:
        start, end = self._day_bounds(query)
        logs, total = await self.logs.search(
            tenant_id,
            receive_status=query.receive_status.value if query.receive_status else None,
            process_status=query.process_status.value if query.process_status else None,
            relay_status=query.relay_status.value if query.relay_status else None,
            shop_id=query.shop_id,
            order_id=query.order_id,
            request_id=query.request_id,
            search=(query.search or "").strip() or None,
            start=start,
            end=end,
            page=query.page,
            limit=query.limit,
        )
        children = await self.log_orders.list_for_logs([log.id for log in logs])
        items = []
        for log in logs:
            item = WebhookLogRead.model_validate(log)
            item.orders = [WebhookLogOrderRead.model_validate(o) for o in children.get(log.id, [])]
            items.append(item)
        return PagedResponse[WebhookLogRead].build(items, query.page, query.limit, total)
