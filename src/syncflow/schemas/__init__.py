from src.syncflow.schemas.pagination import PagedResponse, PaginatedResponse
from src.syncflow.schemas.progress import ProgressCounter, ProgressSnapshot
from src.syncflow.schemas.webhook import (
    WebhookConfigRead,
    WebhookConfigUpdate,
    WebhookKeyRotated,
    WebhookLogOrderRead,
    WebhookLogQuery,
    WebhookLogRead,
    WebhookReceipt,
    WebhookRelayUpdate,
)
from src.syncflow.schemas.workflow import (
    DateRangeSpec,
    ExecutionLogRead,
    ExecutionRead,
    FriendlyScheduleRead,
    ScheduleDescription,
    TriggerRequest,
    WorkflowConfig,
    WorkflowCreate,
    WorkflowRead,
    WorkflowUpdate,
)

__all__ = [
    # Pagination
    "PagedResponse",
    "PaginatedResponse",
    # Progress
    "ProgressCounter",
    "ProgressSnapshot",
    # Webhooks
    "WebhookConfigRead",
    "WebhookConfigUpdate",
    "WebhookKeyRotated",
    "WebhookLogOrderRead",
    "WebhookLogQuery",
    "WebhookLogRead",
    "WebhookReceipt",
    "WebhookRelayUpdate",
    # Workflows
    "DateRangeSpec",
    "ExecutionLogRead",
    "ExecutionRead",
    "FriendlyScheduleRead",
    "ScheduleDescription",
    "TriggerRequest",
    "WorkflowConfig",
    "WorkflowCreate",
    "WorkflowRead",
    "WorkflowUpdate",
]
