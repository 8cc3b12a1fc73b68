"""Model exports.

Import from here: `from src.syncflow.models import Workflow, WebhookLog`
"""

from src.syncflow.models.enums import (
    ACTIVE_EXECUTION_STATUSES,
    TERMINAL_EXECUTION_STATUSES,
    ExecutionStatus,
    IntegrationProvider,
    ProcessStatus,
    ReceiveStatus,
    RelayStatus,
    SyncSource,
    TriggerType,
    UpsertStatus,
)
from src.syncflow.models.integration import Integration, MetaAdAccount, PosStore
from src.syncflow.models.sync_data import MetaAdInsight, PosOrder
from src.syncflow.models.webhook import WebhookConfig, WebhookLog, WebhookLogOrder
from src.syncflow.models.workflow import Workflow, WorkflowExecution, WorkflowExecutionLog

__all__ = [
    # Enums
    "ACTIVE_EXECUTION_STATUSES",
    "TERMINAL_EXECUTION_STATUSES",
    "ExecutionStatus",
    "IntegrationProvider",
    "ProcessStatus",
    "ReceiveStatus",
    "RelayStatus",
    "SyncSource",
    "TriggerType",
    "UpsertStatus",
    # Workflows
    "Workflow",
    "WorkflowExecution",
    "WorkflowExecutionLog",
    # Integrations (read-only here)
    "Integration",
    "MetaAdAccount",
    "PosStore",
    # Synced data
    "MetaAdInsight",
    "PosOrder",
    # Webhooks
    "WebhookConfig",
    "WebhookLog",
    "WebhookLogOrder",
]
