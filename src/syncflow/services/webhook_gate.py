"""Synchronous front door for inbound POS webhooks.

Resolves the tenant, checks enablement and the API key, writes the
WebhookLog and queues processing. It never parses or processes the body
itself, so the response time does not depend on payload size.
"""

import hashlib
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID, uuid4

from fastapi import status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.syncflow.core.config import Settings, get_settings
from src.syncflow.core.logging import get_logger
from src.syncflow.core.security import verify_webhook_key
from src.syncflow.models import ProcessStatus, ReceiveStatus, WebhookConfig, WebhookLog
from src.syncflow.models.base import elapsed_ms, utc_now
from src.syncflow.repositories import WebhookConfigRepository, WebhookLogRepository

logger = get_logger(__name__)

SNAPSHOT_HEADERS = ("content-type", "user-agent", "x-request-id", "x-forwarded-for")


class WebhookDispatcher(Protocol):
    async def dispatch_webhook(self, log: WebhookLog) -> str | None: ...


@dataclass
class GateResult:
    http_status: int
    receive_status: ReceiveStatus
    request_id: str
    message: str
    log_id: UUID | None = None

    @property
    def accepted(self) -> bool:
        return self.receive_status is ReceiveStatus.ACCEPTED


def headers_snapshot(headers: Mapping[str, str]) -> dict[str, str]:
    lowered = {k.lower(): v for k, v in headers.items()}
    return {k: lowered[k] for k in SNAPSHOT_HEADERS if k in lowered}


def _parse_tenant(raw: str) -> UUID | None:
    try:
        return UUID(raw)
    except (ValueError, TypeError):
        return None


class WebhookGate:
    def __init__(
        self,
        session: AsyncSession,
        dispatcher: WebhookDispatcher,
        settings: Settings | None = None,
    ):
        self.session = session
        self.dispatcher = dispatcher
        self.settings = settings or get_settings()
        self.configs = WebhookConfigRepository(session)
        self.logs = WebhookLogRepository(session)

    async def receive(
        self,
        raw_tenant_id: str,
        body: bytes,
        headers: Mapping[str, str],
        query_api_key: str | None = None,
        request_id: str | None = None,
        received_at: datetime | None = None,
    ) -> GateResult:
        """Authenticate one inbound call and queue it.

        The key is read from the tenant's configured header, falling back
        to the `api_key` query parameter. Rejections are logged but never
        queued.
        """
        received_at = received_at or utc_now()
        request_id = request_id or uuid4().hex
        payload_hash = hashlib.sha256(body).hexdigest()

        tenant_id = _parse_tenant(raw_tenant_id)
        config = await self.configs.get_by_tenant(tenant_id) if tenant_id else None
        if tenant_id is None or config is None:
            return await self._reject(
                raw_tenant_id, None, request_id, ReceiveStatus.INVALID_TENANT,
                status.HTTP_404_NOT_FOUND, "Invalid tenant", body, payload_hash, headers, received_at,
            )
        if not config.enabled:
            return await self._reject(
                raw_tenant_id, tenant_id, request_id, ReceiveStatus.DISABLED,
                status.HTTP_403_FORBIDDEN, "Webhook is disabled", body, payload_hash, headers, received_at,
            )

        presented = self._presented_key(config, headers, query_api_key)
        if not config.api_key_hash or not verify_webhook_key(presented, config.api_key_hash):
            message = "Webhook API key is not configured" if not config.api_key_hash else "Invalid webhook API key"
            return await self._reject(
                raw_tenant_id, tenant_id, request_id, ReceiveStatus.AUTH_FAILED,
                status.HTTP_401_UNAUTHORIZED, message, body, payload_hash, headers, received_at,
            )

        lowered = {k.lower(): v for k, v in headers.items()}
        log = WebhookLog(
            tenant_id=tenant_id,
            request_tenant_id=raw_tenant_id[:100],
            request_id=request_id,
            receive_http_status=status.HTTP_202_ACCEPTED,
            receive_status=ReceiveStatus.ACCEPTED.value,
            process_status=ProcessStatus.QUEUED.value,
            payload_hash=payload_hash,
            payload_bytes=len(body),
            payload=body.decode("utf-8", errors="replace"),
            payload_raw=body,
            content_type=lowered.get("content-type"),
            headers_snapshot=headers_snapshot(headers),
            received_at=received_at,
        )
        try:
            log.receive_duration_ms = elapsed_ms(received_at, utc_now())
            self.logs.add(log)
            await self.session.commit()
            await self.session.refresh(log)
        except SQLAlchemyError:
            logger.exception("Failed to persist webhook log", tenant_id=str(tenant_id), request_id=request_id)
            await self.session.rollback()
            return await self._reject(
                raw_tenant_id, tenant_id, request_id, ReceiveStatus.FAILED,
                status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to record webhook", body, payload_hash,
                headers, received_at,
            )

        job_id = await self.dispatcher.dispatch_webhook(log)
        if job_id:
            log.queue_job_id = job_id
            await self.session.commit()

        logger.info(
            "Webhook accepted",
            tenant_id=str(tenant_id),
            log_id=str(log.id),
            request_id=request_id,
            payload_bytes=len(body),
        )
        return GateResult(
            http_status=status.HTTP_202_ACCEPTED,
            receive_status=ReceiveStatus.ACCEPTED,
            request_id=request_id,
            message="Webhook accepted",
            log_id=log.id,
        )

    def _presented_key(
        self, config: WebhookConfig, headers: Mapping[str, str], query_api_key: str | None
    ) -> str | None:
        header_name = (config.header_key or self.settings.webhook_default_header_key).lower()
        for name, value in headers.items():
            if name.lower() == header_name and value:
                return value
        return query_api_key or None

    async def _reject(
        self,
        raw_tenant_id: str,
        tenant_id: UUID | None,
        request_id: str,
        receive_status: ReceiveStatus,
        http_status: int,
        message: str,
        body: bytes,
        payload_hash: str,
        headers: Mapping[str, str],
        received_at: datetime,
    ) -> GateResult:
        """Record a rejected call. The payload itself is not stored."""
        logger.warning(
            "Webhook rejected",
            receive_status=receive_status.value,
            request_tenant_id=raw_tenant_id,
            request_id=request_id,
            reason=message,
        )
        log = WebhookLog(
            tenant_id=tenant_id,
            request_tenant_id=raw_tenant_id[:100],
            request_id=request_id,
            receive_http_status=http_status,
            receive_status=receive_status.value,
            payload_hash=payload_hash,
            payload_bytes=len(body),
            headers_snapshot=headers_snapshot(headers),
            error_code=receive_status.value,
            error_message=message,
            received_at=received_at,
            receive_duration_ms=elapsed_ms(received_at, utc_now()),
        )
        try:
            self.logs.add(log)
            await self.session.commit()
        except SQLAlchemyError:
            logger.exception("Failed to persist rejected webhook log", request_id=request_id)
            await self.session.rollback()
            return GateResult(http_status, receive_status, request_id, message)
        return GateResult(http_status, receive_status, request_id, message, log.id)
