"""Asynchronous processing of accepted webhook logs.

Each QUEUED log is claimed by exactly one worker, parsed, and every order
found in the payload is upserted into `pos_orders` with a per-order
outcome row. Relaying to a tenant's downstream URL happens after local
processing and never affects `process_status`.
"""

import json
from collections import deque
from dataclasses import dataclass
from typing import Any
from uuid import UUID

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.syncflow.core.config import Settings, get_settings
from src.syncflow.core.logging import get_logger
from src.syncflow.models import (
    PosStore,
    ProcessStatus,
    RelayStatus,
    UpsertStatus,
    WebhookConfig,
    WebhookLog,
    WebhookLogOrder,
)
from src.syncflow.models.base import elapsed_ms, utc_now
from src.syncflow.repositories import (
    IntegrationRepository,
    WebhookConfigRepository,
    WebhookLogOrderRepository,
    WebhookLogRepository,
)
from src.syncflow.services.ingest import (
    OrderRejected,
    PosOrderIngestor,
    normalize_order,
    order_identity,
    skip_reason,
)

logger = get_logger(__name__)

# Keys searched for nested orders, in this order
CONTAINER_KEYS = ("body", "payload", "order", "data", "orders")


def _is_order_like(node: dict[str, Any]) -> bool:
    shop_id, order_id = order_identity(node)
    return bool(shop_id and order_id)


def extract_orders(payload: Any) -> list[dict[str, Any]]:
    """Find every order-like object in a webhook payload, breadth first.

    Traversal continues below a match, so an envelope that is itself
    order-like does not hide orders nested inside it. Orders are
    deduplicated on (shop_id, order_id), first occurrence wins.
    """
    found: list[dict[str, Any]] = []
    seen: set[str] = set()
    queue: deque[Any] = deque([payload])
    while queue:
        node = queue.popleft()
        if isinstance(node, list):
            queue.extend(node)
            continue
        if not isinstance(node, dict):
            continue
        if _is_order_like(node):
            shop_id, order_id = order_identity(node)
            key = f"{shop_id}::{order_id}"
            if key not in seen:
                seen.add(key)
                found.append(node)
        for key in CONTAINER_KEYS:
            child = node.get(key)
            if isinstance(child, (dict, list)):
                queue.append(child)
    return found


@dataclass
class OrderOutcome:
    shop_id: str | None
    order_id: str | None
    status: int | None
    upsert_status: UpsertStatus
    reason: str | None = None
    warning: str | None = None


@dataclass
class ProcessOutcome:
    log_id: UUID
    process_status: ProcessStatus
    relay_status: RelayStatus | None = None
    order_count: int = 0
    upserted_count: int = 0
    warning_count: int = 0
    error_code: str | None = None


def raw_body(log: WebhookLog) -> bytes:
    """The payload exactly as received.

    Logs written before raw capture only have the decoded text copy.
    """
    if log.payload_raw is not None:
        return log.payload_raw
    return (log.payload or "").encode("utf-8")


def aggregate_status(outcomes: list[OrderOutcome]) -> ProcessStatus:
    """Zero orders is SKIPPED; all failed is FAILED; any failed is PARTIAL."""
    if not outcomes:
        return ProcessStatus.SKIPPED
    failed = sum(1 for o in outcomes if o.upsert_status is UpsertStatus.FAILED)
    if failed == len(outcomes):
        return ProcessStatus.FAILED
    if failed:
        return ProcessStatus.PARTIAL
    return ProcessStatus.PROCESSED


class WebhookProcessor:
    def __init__(
        self,
        session: AsyncSession,
        http_client: httpx.AsyncClient,
        settings: Settings | None = None,
    ):
        self.session = session
        self.http_client = http_client
        self.settings = settings or get_settings()
        self.logs = WebhookLogRepository(session)
        self.log_orders = WebhookLogOrderRepository(session)
        self.configs = WebhookConfigRepository(session)
        self.integrations = IntegrationRepository(session)
        self.ingestor = PosOrderIngestor(session, self.settings.sync_timezone)
        self._stores: dict[str, PosStore | None] = {}
        self._relayed: RelayStatus | None = None

    async def process(self, log_id: UUID) -> ProcessOutcome | None:
        """Process one queued log.

        Returns None when the log does not exist or another worker has
        already claimed it.
        """
        self._relayed = None
        if not await self.logs.claim(log_id):
            await self.session.rollback()
            logger.info("Webhook log not claimable", log_id=str(log_id))
            return None
        await self.session.commit()

        log = await self.logs.get_by_id(log_id)
        if log is None or log.tenant_id is None:
            return None
        await self.session.refresh(log)

        try:
            outcome = await self._process_claimed(log)
        except SQLAlchemyError as e:
            logger.exception("Webhook processing failed", log_id=str(log_id))
            await self.session.rollback()
            log = await self.logs.get_by_id(log_id)
            if log is None or log.tenant_id is None:
                return None
            await self.session.refresh(log)
            outcome = ProcessOutcome(log.id, ProcessStatus.FAILED, error_code="DB_ERROR")
            # Downstream still gets the payload when local storage fails
            config = await self.configs.get_by_tenant(log.tenant_id)
            outcome.relay_status = await self._relay_once(config, log)
            await self._finish(log, outcome, f"Database error: {type(e).__name__}")
            return outcome

        logger.info(
            "Webhook processed",
            log_id=str(log.id),
            tenant_id=str(log.tenant_id),
            process_status=outcome.process_status.value,
            relay_status=outcome.relay_status.value if outcome.relay_status else None,
            order_count=outcome.order_count,
            upserted_count=outcome.upserted_count,
        )
        return outcome

    async def _process_claimed(self, log: WebhookLog) -> ProcessOutcome:
        assert log.tenant_id is not None
        tenant_id = log.tenant_id

        duplicate = None
        if log.payload_hash:
            duplicate = await self.logs.find_processed_duplicate(
                tenant_id, log.request_id, log.payload_hash, exclude_id=log.id
            )
        if duplicate is not None:
            outcome = ProcessOutcome(
                log.id,
                ProcessStatus.SKIPPED,
                relay_status=RelayStatus.SKIPPED,
                error_code="DUPLICATE",
            )
            await self._finish(log, outcome, f"Duplicate of webhook log {duplicate.id}")
            return outcome

        config = await self.configs.get_by_tenant(tenant_id)
        try:
            parsed = json.loads(raw_body(log))
        except ValueError as e:
            reason = e.msg if isinstance(e, json.JSONDecodeError) else "payload is not valid UTF-8"
            outcome = ProcessOutcome(log.id, ProcessStatus.FAILED, error_code="PARSE_ERROR")
            outcome.relay_status = await self._relay_once(config, log)
            await self._finish(log, outcome, f"Invalid JSON payload: {reason}")
            return outcome

        results = [await self._process_order(tenant_id, raw) for raw in extract_orders(parsed)]
        for result in results:
            self.log_orders.add(
                WebhookLogOrder(
                    log_id=log.id,
                    shop_id=result.shop_id,
                    order_id=result.order_id,
                    status=result.status,
                    upsert_status=result.upsert_status.value,
                    reason=result.reason,
                    warning=result.warning,
                )
            )

        outcome = ProcessOutcome(
            log.id,
            aggregate_status(results),
            order_count=len(results),
            upserted_count=sum(
                1 for r in results if r.upsert_status in (UpsertStatus.CREATED, UpsertStatus.UPDATED)
            ),
            warning_count=sum(1 for r in results if r.warning),
        )
        message = None
        if not results:
            message = "No orders found in payload"
        elif outcome.process_status is not ProcessStatus.PROCESSED:
            message = next(r.reason for r in results if r.upsert_status is UpsertStatus.FAILED)

        # Local writes are durable before the relay call goes out
        await self.session.flush()
        outcome.relay_status = await self._relay_once(config, log)
        await self._finish(log, outcome, message)
        return outcome

    async def _store_for(self, tenant_id: UUID, shop_id: str) -> PosStore | None:
        if shop_id not in self._stores:
            self._stores[shop_id] = await self.integrations.get_store_by_shop(tenant_id, shop_id)
        return self._stores[shop_id]

    async def _process_order(self, tenant_id: UUID, raw: dict[str, Any]) -> OrderOutcome:
        shop_id, order_id = order_identity(raw)
        status_value = raw.get("status")
        outcome = OrderOutcome(
            shop_id=shop_id,
            order_id=order_id,
            status=status_value if isinstance(status_value, int) else None,
            upsert_status=UpsertStatus.FAILED,
        )
        if not shop_id or not order_id:
            outcome.reason = "Missing order payload or shop_id"
            return outcome
        if await self._store_for(tenant_id, shop_id) is None:
            outcome.reason = f"No POS store found for shop_id={shop_id}"
            outcome.warning = outcome.reason
            return outcome

        reason = skip_reason(raw)
        if reason:
            outcome.upsert_status = UpsertStatus.SKIPPED
            outcome.reason = reason
            return outcome

        try:
            order = normalize_order(raw, self.settings.sync_timezone)
        except OrderRejected as e:
            outcome.reason = str(e)
            return outcome

        outcome.upsert_status = await self.ingestor.upsert(tenant_id, order)
        if order.warnings:
            outcome.warning = "; ".join(order.warnings)
        return outcome

    async def _relay_once(self, config: WebhookConfig | None, log: WebhookLog) -> RelayStatus:
        """Relay at most once per processing attempt, even if finishing fails afterwards."""
        if self._relayed is None:
            self._relayed = await self.relay(config, log)
        return self._relayed

    async def relay(self, config: WebhookConfig | None, log: WebhookLog) -> RelayStatus:
        """Forward the original payload downstream. Never raises."""
        if config is None or not config.relay_enabled or not config.relay_webhook_url:
            return RelayStatus.SKIPPED

        headers = {"content-type": log.content_type or "application/json"}
        if config.relay_header_key and config.relay_api_key:
            headers[config.relay_header_key] = config.relay_api_key
        try:
            response = await self.http_client.post(
                config.relay_webhook_url,
                content=raw_body(log),
                headers=headers,
                timeout=self.settings.webhook_relay_timeout_seconds,
            )
        except httpx.HTTPError as e:
            logger.warning("Webhook relay failed", log_id=str(log.id), error=str(e) or type(e).__name__)
            return RelayStatus.FAILED

        if response.is_success:
            return RelayStatus.SUCCESS
        logger.warning("Webhook relay rejected", log_id=str(log.id), status_code=response.status_code)
        return RelayStatus.FAILED

    async def _finish(self, log: WebhookLog, outcome: ProcessOutcome, message: str | None) -> None:
        now = utc_now()
        log.process_status = outcome.process_status.value
        log.relay_status = outcome.relay_status.value if outcome.relay_status else None
        log.order_count = outcome.order_count
        log.upserted_count = outcome.upserted_count
        log.warning_count = outcome.warning_count
        log.error_code = outcome.error_code
        log.error_message = message[:2000] if message else None
        log.processed_at = now
        log.processing_duration_ms = elapsed_ms(log.processing_started_at or now, now)
        log.total_duration_ms = elapsed_ms(log.received_at, now)
        log.updated_at = now
        await self.session.commit()
