"""Webhook Processing Workflow - processes one accepted webhook log."""

from temporalio import workflow

with workflow.unsafe.imports_passed_through():
    from src.syncflow.temporal.activities import ProcessWebhookInput, process_webhook_log
    from src.syncflow.temporal.workflows._steps.common import webhook_activity_opts


@workflow.defn
class WebhookProcessingWorkflow:
    @workflow.run
    async def run(self, input: ProcessWebhookInput) -> str | None:
        return await workflow.execute_activity(
            process_webhook_log,
            input,
            **webhook_activity_opts(),  # type: ignore[arg-type]
        )
