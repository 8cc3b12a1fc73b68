from src.syncflow.repositories.base import BaseRepository
from src.syncflow.repositories.execution import WorkflowExecutionLogRepository, WorkflowExecutionRepository
from src.syncflow.repositories.integration import IntegrationRepository
from src.syncflow.repositories.sync_data import MetaAdInsightRepository, PosOrderRepository
from src.syncflow.repositories.webhook import (
    WebhookConfigRepository,
    WebhookLogOrderRepository,
    WebhookLogRepository,
)
from src.syncflow.repositories.workflow import WorkflowRepository

__all__ = [
    "BaseRepository",
    "IntegrationRepository",
    "MetaAdInsightRepository",
    "PosOrderRepository",
    "WebhookConfigRepository",
    "WebhookLogOrderRepository",
    "WebhookLogRepository",
    "WorkflowExecutionLogRepository",
    "WorkflowExecutionRepository",
    "WorkflowRepository",
]
