"""Webhook receive, configuration and log schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.syncflow.models.enums import ProcessStatus, ReceiveStatus, RelayStatus
from src.syncflow.schemas.workflow import CamelModel


class WebhookReceipt(CamelModel):
    accepted: bool
    log_id: UUID | None = None
    request_id: str
    message: str


class WebhookConfigRead(CamelModel):
    """Settings as shown to tenant admins. Secrets are never included."""

    enabled: bool
    has_api_key: bool
    key_last4: str | None = None
    rotated_at: datetime | None = None
    rotated_by: UUID | None = None
    header_key: str
    webhook_url: str
    version: int
    relay_enabled: bool
    relay_webhook_url: str | None = None
    relay_header_key: str | None = None
    relay_has_api_key: bool = False
    relay_updated_at: datetime | None = None


class WebhookKeyRotated(WebhookConfigRead):
    """Returned once by rotation; `apiKey` cannot be retrieved again."""

    api_key: str


class WebhookConfigUpdate(CamelModel):
    enabled: bool | None = None
    header_key: str | None = Field(default=None, min_length=1, max_length=100, pattern=r"^[A-Za-z0-9-]+$")


class WebhookRelayUpdate(CamelModel):
    enabled: bool
    webhook_url: str | None = Field(default=None, max_length=2000)
    header_key: str | None = Field(default=None, max_length=100)
    # Omitted keeps the stored key; an empty string clears it
    api_key: str | None = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def check_url_scheme(self) -> "WebhookRelayUpdate":
        if self.webhook_url is not None and not self.webhook_url.startswith(("http://", "https://")):
            raise ValueError("webhookUrl must be an http(s) URL")
        return self


class WebhookLogOrderRead(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    shop_id: str | None
    order_id: str | None
    status: int | None
    upsert_status: str
    reason: str | None
    warning: str | None
    created_at: datetime


class WebhookLogRead(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID | None
    request_id: str
    source: str
    receive_http_status: int
    receive_status: str
    process_status: str | None
    relay_status: str | None
    payload_hash: str | None
    payload_bytes: int
    order_count: int
    upserted_count: int
    warning_count: int
    attempts: int
    queue_job_id: str | None
    error_code: str | None
    error_message: str | None
    receive_duration_ms: int | None
    processing_duration_ms: int | None
    total_duration_ms: int | None
    received_at: datetime
    processing_started_at: datetime | None
    processed_at: datetime | None
    orders: list[WebhookLogOrderRead] = Field(default_factory=list)


class WebhookLogQuery(BaseModel):
    receive_status: ReceiveStatus | None = None
    process_status: ProcessStatus | None = None
    relay_status: RelayStatus | None = None
    shop_id: str | None = None
    order_id: str | None = None
    request_id: str | None = None
    search: str | None = Field(default=None, max_length=200)
    start_date: date | None = None
    end_date: date | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
