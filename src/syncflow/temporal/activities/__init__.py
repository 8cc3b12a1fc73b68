"""
Temporal Activities - thin wrappers over the job entry points.

Activities are idempotent: each job re-checks the row status before doing
any work, so retries never repeat provider calls or upserts.
"""

from src.syncflow.temporal.activities.executions import RunExecutionInput, run_sync_execution
from src.syncflow.temporal.activities.scheduling import reconcile_stale_executions, scheduler_tick
from src.syncflow.temporal.activities.webhooks import ProcessWebhookInput, process_webhook_log

__all__ = [
    # Dataclasses
    "ProcessWebhookInput",
    "RunExecutionInput",
    # Activities
    "process_webhook_log",
    "reconcile_stale_executions",
    "run_sync_execution",
    "scheduler_tick",
]
