"""FastAPI dependency injection definitions.

Re-exports all dependencies.
"""

# Auth
from src.syncflow.api.dependencies.auth import (
    CurrentPrincipal,
    Principal,
    WebhookManager,
    WorkflowExecutor,
    WorkflowReader,
    WorkflowWriter,
    get_current_principal,
    principal_from_token,
    require_permission,
)

# Database
from src.syncflow.api.dependencies.db import DBSession, get_db_session

# Services
from src.syncflow.api.dependencies.services import (
    Dispatcher,
    SchedulerServiceDep,
    WebhookConfigServiceDep,
    WebhookGateDep,
    WorkflowServiceDep,
    get_job_dispatcher,
    get_scheduler_service,
    get_webhook_config_service,
    get_webhook_gate,
    get_workflow_service,
)

__all__ = [
    # Database
    "DBSession",
    "get_db_session",
    # Auth
    "CurrentPrincipal",
    "Principal",
    "WebhookManager",
    "WorkflowExecutor",
    "WorkflowReader",
    "WorkflowWriter",
    "get_current_principal",
    "principal_from_token",
    "require_permission",
    # Services
    "Dispatcher",
    "SchedulerServiceDep",
    "WebhookConfigServiceDep",
    "WebhookGateDep",
    "WorkflowServiceDep",
    "get_job_dispatcher",
    "get_scheduler_service",
    "get_webhook_config_service",
    "get_webhook_gate",
    "get_workflow_service",
]
