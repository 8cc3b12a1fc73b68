"""Webhook processing activities."""

from dataclasses import dataclass
from uuid import UUID

from temporalio import activity


@dataclass
class ProcessWebhookInput:
    log_id: str
    tenant_id: str


@activity.defn
async def process_webhook_log(input: ProcessWebhookInput) -> str | None:
    """
    Process one accepted webhook log.

    Idempotency: the log is claimed with a conditional QUEUED -> PROCESSING
    update, so a retry after a successful claim is a no-op returning None.
    """
    from src.syncflow.services.jobs import process_webhook_job

    status = await process_webhook_job(UUID(input.log_id))
    activity.logger.info(f"Webhook log {input.log_id} processed: {status}")
    return status
