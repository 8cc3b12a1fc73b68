"""Repositories for webhook configuration and logs."""

from collections.abc import Sequence
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, update
from sqlmodel import select

from src.syncflow.models import ProcessStatus, WebhookConfig, WebhookLog, WebhookLogOrder
from src.syncflow.models.base import utc_now
from src.syncflow.repositories.base import BaseRepository


def escape_like(term: str) -> str:
    """Make LIKE wildcards in user input match literally (escape char `\\`)."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class WebhookConfigRepository(BaseRepository[WebhookConfig]):
    model = WebhookConfig

    async def get_by_tenant(self, tenant_id: UUID) -> WebhookConfig | None:
        result = await self.session.execute(
            select(WebhookConfig).where(WebhookConfig.tenant_id == tenant_id)
        )
        return result.scalar_one_or_none()

    async def swap_key(
        self, tenant_id: UUID, key_hash: str, last4: str, rotated_by: UUID | None
    ) -> bool:
        """Replace the key hash in a single UPDATE.

        Concurrent gate reads see either the old row or the new one.
        """
        now = utc_now()
        result = await self.session.execute(
            update(WebhookConfig)
            .where(WebhookConfig.tenant_id == tenant_id)  # type: ignore[arg-type]
            .values(
                api_key_hash=key_hash,
                api_key_last4=last4,
                rotated_at=now,
                rotated_by=rotated_by,
                version=WebhookConfig.version + 1,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return bool(result.rowcount)


class WebhookLogRepository(BaseRepository[WebhookLog]):
    model = WebhookLog

    async def claim(self, log_id: UUID) -> bool:
        """Move a QUEUED log to PROCESSING. Only one worker can win."""
        now = utc_now()
        result = await self.session.execute(
            update(WebhookLog)
            .where(
                WebhookLog.id == log_id,  # type: ignore[arg-type]
                WebhookLog.process_status == ProcessStatus.QUEUED.value,  # type: ignore[arg-type]
            )
            .values(
                process_status=ProcessStatus.PROCESSING.value,
                processing_started_at=now,
                attempts=WebhookLog.attempts + 1,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return bool(result.rowcount)

    async def find_processed_duplicate(
        self, tenant_id: UUID, request_id: str, payload_hash: str, exclude_id: UUID
    ) -> WebhookLog | None:
        """An earlier, already-processed delivery of the same request and payload."""
        done = [
            ProcessStatus.PROCESSED.value,
            ProcessStatus.PARTIAL.value,
            ProcessStatus.SKIPPED.value,
        ]
        result = await self.session.execute(
            select(WebhookLog)
            .where(
                WebhookLog.tenant_id == tenant_id,
                WebhookLog.request_id == request_id,
                WebhookLog.payload_hash == payload_hash,
                WebhookLog.id != exclude_id,
                WebhookLog.process_status.in_(done),  # type: ignore[union-attr]
            )
            .order_by(WebhookLog.received_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def search(
        self,
        tenant_id: UUID,
        *,
        receive_status: str | None = None,
        process_status: str | None = None,
        relay_status: str | None = None,
        shop_id: str | None = None,
        order_id: str | None = None,
        request_id: str | None = None,
        search: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[WebhookLog], int]:
        """Filtered, newest-first page of a tenant's logs."""
        query: Any = select(WebhookLog).where(WebhookLog.tenant_id == tenant_id)
        if receive_status:
            query = query.where(WebhookLog.receive_status == receive_status)
        if process_status:
            query = query.where(WebhookLog.process_status == process_status)
        if relay_status:
            query = query.where(WebhookLog.relay_status == relay_status)
        if request_id:
            query = query.where(WebhookLog.request_id == request_id)
        if start:
            query = query.where(WebhookLog.received_at >= start)
        if end:
            query = query.where(WebhookLog.received_at < end)
        if shop_id or order_id:
            child = select(WebhookLogOrder.log_id)
            if shop_id:
                child = child.where(WebhookLogOrder.shop_id == shop_id)
            if order_id:
                child = child.where(WebhookLogOrder.order_id == order_id)
            query = query.where(WebhookLog.id.in_(child))  # type: ignore[attr-defined]
        if search:
            pattern = f"%{escape_like(search)}%"
            matching_orders = select(WebhookLogOrder.log_id).where(
                WebhookLogOrder.order_id.ilike(pattern, escape="\\")  # type: ignore[union-attr]
            )
            query = query.where(
                or_(
                    WebhookLog.request_id.ilike(pattern, escape="\\"),  # type: ignore[attr-defined]
                    WebhookLog.error_message.ilike(pattern, escape="\\"),  # type: ignore[union-attr]
                    WebhookLog.id.in_(matching_orders),  # type: ignore[attr-defined]
                )
            )
        return await self.page(query, page, limit, WebhookLog.received_at.desc())  # type: ignore[attr-defined]


class WebhookLogOrderRepository(BaseRepository[WebhookLogOrder]):
    model = WebhookLogOrder

    async def list_for_logs(self, log_ids: Sequence[UUID]) -> dict[UUID, list[WebhookLogOrder]]:
        """Child rows grouped by parent log id, in insertion order."""
        grouped: dict[UUID, list[WebhookLogOrder]] = {log_id: [] for log_id in log_ids}
        if not log_ids:
            return grouped
        result = await self.session.execute(
            select(WebhookLogOrder)
            .where(WebhookLogOrder.log_id.in_(list(log_ids)))  # type: ignore[attr-defined]
            .order_by(WebhookLogOrder.created_at)
        )
        for row in result.scalars().all():
            grouped.setdefault(row.log_id, []).append(row)
        return grouped

    async def count_for_log(self, log_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(WebhookLogOrder).where(WebhookLogOrder.log_id == log_id)
        )
        return int(result.scalar_one())
