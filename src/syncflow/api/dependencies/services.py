"""Service factory dependencies."""

from typing import Annotated

from fastapi import Depends

from src.syncflow.api.dependencies.db import DBSession
from src.syncflow.services.dispatch import JobDispatcher, get_dispatcher
from src.syncflow.services.scheduler import SchedulerService
from src.syncflow.services.webhook_config_service import WebhookConfigService
from src.syncflow.services.webhook_gate import WebhookGate
from src.syncflow.services.workflow_service import WorkflowService


def get_job_dispatcher() -> JobDispatcher:
    """Overridable in tests."""
    return get_dispatcher()


Dispatcher = Annotated[JobDispatcher, Depends(get_job_dispatcher)]


def get_workflow_service(session: DBSession) -> WorkflowService:
    return WorkflowService(session)


def get_scheduler_service(session: DBSession, dispatcher: Dispatcher) -> SchedulerService:
    return SchedulerService(session, dispatcher)


def get_webhook_gate(session: DBSession, dispatcher: Dispatcher) -> WebhookGate:
    return WebhookGate(session, dispatcher)


def get_webhook_config_service(session: DBSession) -> WebhookConfigService:
    return WebhookConfigService(session)


WorkflowServiceDep = Annotated[WorkflowService, Depends(get_workflow_service)]
SchedulerServiceDep = Annotated[SchedulerService, Depends(get_scheduler_service)]
WebhookGateDep = Annotated[WebhookGate, Depends(get_webhook_gate)]
WebhookConfigServiceDep = Annotated[WebhookConfigService, Depends(get_webhook_config_service)]
