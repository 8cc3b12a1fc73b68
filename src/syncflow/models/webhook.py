"""Inbound POS webhook configuration and audit logs."""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Index, LargeBinary, Text
from sqlmodel import Column, Field, SQLModel

from src.syncflow.models.base import json_column, utc_now
from src.syncflow.models.enums import ProcessStatus


class WebhookConfig(SQLModel, table=True):
    """Per-tenant webhook settings.

    Only `api_key_hash` is stored for the inbound key. The relay key is kept
    in plain text because it is sent outward, never verified.
    `version` increments on every key rotation.
    """

    __tablename__ = "webhook_configs"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: UUID = Field(unique=True)
    enabled: bool = Field(default=False)
    api_key_hash: str | None = Field(default=None, max_length=64)
    api_key_last4: str | None = Field(default=None, max_length=4)
    rotated_at: datetime | None = Field(default=None)
    rotated_by: UUID | None = Field(default=None)
    header_key: str = Field(default="x-api-key", max_length=100)
    version: int = Field(default=0)
    relay_enabled: bool = Field(default=False)
    relay_webhook_url: str | None = Field(default=None, max_length=2000)
    relay_header_key: str | None = Field(default=None, max_length=100)
    relay_api_key: str | None = Field(default=None, max_length=500)
    relay_updated_at: datetime | None = Field(default=None)
    relay_updated_by: UUID | None = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class WebhookLog(SQLModel, table=True):
    """One inbound webhook call, from receipt to processing and relay.

    `receive_status` is written by the gate only. `process_status` and
    `relay_status` are written by the processor only.
    """

    __tablename__ = "webhook_logs"
    __table_args__ = (
        Index("ix_webhook_logs_tenant_received", "tenant_id", "received_at"),
        Index("ix_webhook_logs_request_hash", "tenant_id", "request_id", "payload_hash"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: UUID | None = Field(default=None)
    request_tenant_id: str | None = Field(default=None, max_length=100)
    request_id: str = Field(max_length=255)
    source: str = Field(default="PANCAKE_POS", max_length=30)
    receive_http_status: int
    receive_status: str = Field(max_length=20)
    process_status: str | None = Field(default=None, max_length=20)
    relay_status: str | None = Field(default=None, max_length=20)
    payload_hash: str | None = Field(default=None, max_length=64)
    payload_bytes: int = Field(default=0)
    payload: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    # Exact bytes as received; relayed verbatim and hashed into payload_hash
    payload_raw: bytes | None = Field(default=None, sa_column=Column(LargeBinary, nullable=True))
    content_type: str | None = Field(default=None, max_length=255)
    order_count: int = Field(default=0)
    upserted_count: int = Field(default=0)
    warning_count: int = Field(default=0)
    attempts: int = Field(default=0)
    queue_job_id: str | None = Field(default=None, max_length=255)
    error_code: str | None = Field(default=None, max_length=50)
    error_message: str | None = Field(default=None, max_length=2000)
    headers_snapshot: dict[str, Any] | None = Field(default=None, sa_column=json_column(nullable=True))
    receive_duration_ms: int | None = Field(default=None)
    processing_duration_ms: int | None = Field(default=None)
    total_duration_ms: int | None = Field(default=None)
    received_at: datetime = Field(default_factory=utc_now)
    processing_started_at: datetime | None = Field(default=None)
    processed_at: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_queued(self) -> bool:
        return self.process_status == ProcessStatus.QUEUED.value


class WebhookLogOrder(SQLModel, table=True):
    """Per-order outcome row for a processed webhook payload."""

    __tablename__ = "webhook_log_orders"
    __table_args__ = (Index("ix_webhook_log_orders_shop_order", "shop_id", "order_id"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    log_id: UUID = Field(foreign_key="webhook_logs.id", index=True)
    shop_id: str | None = Field(default=None, max_length=64)
    order_id: str | None = Field(default=None, max_length=64)
    status: int | None = Field(default=None)
    upsert_status: str = Field(max_length=20)
    reason: str | None = Field(default=None, max_length=1000)
    warning: str | None = Field(default=None, max_length=1000)
    created_at: datetime = Field(default_factory=utc_now)
