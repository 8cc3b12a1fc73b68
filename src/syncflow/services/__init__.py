from src.syncflow.services.webhook_config_service import WebhookConfigService
from src.syncflow.services.webhook_gate import WebhookGate
from src.syncflow.services.webhook_processor import WebhookProcessor
from src.syncflow.services.workflow_service import WorkflowService

__all__ = ["WebhookConfigService", "WebhookGate", "WebhookProcessor", "WorkflowService"]
