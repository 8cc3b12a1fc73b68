"""Temporal Workflows - Re-exports for worker registration."""

from src.syncflow.temporal.workflows.scheduler import (
    RECONCILER_WORKFLOW_ID,
    SCHEDULER_WORKFLOW_ID,
    ExecutionReconcileWorkflow,
    LoopInput,
    WorkflowSchedulerWorkflow,
)
from src.syncflow.temporal.workflows.sync_execution import SyncExecutionWorkflow
from src.syncflow.temporal.workflows.webhook_processing import WebhookProcessingWorkflow

__all__ = [
    "RECONCILER_WORKFLOW_ID",
    "SCHEDULER_WORKFLOW_ID",
    "ExecutionReconcileWorkflow",
    "LoopInput",
    "SyncExecutionWorkflow",
    "WebhookProcessingWorkflow",
    "WorkflowSchedulerWorkflow",
]
