"""Hands executions and webhook logs to a worker.

Temporal is the queue in production. When dispatch is disabled (local
development, tests) or the Temporal frontend cannot be reached, the job
runs inline as a tracked asyncio task so nothing accepted is left behind.
"""

from collections.abc import Awaitable, Callable
from typing import Any
from uuid import UUID

from temporalio.client import Client
from temporalio.exceptions import WorkflowAlreadyStartedError
from temporalio.service import RPCError

from src.syncflow.core.config import Settings, get_settings
from src.syncflow.core.logging import get_logger
from src.syncflow.core.shutdown import WorkTracker, work_tracker
from src.syncflow.models import WebhookLog, WorkflowExecution
from src.syncflow.temporal.activities import ProcessWebhookInput, RunExecutionInput
from src.syncflow.temporal.client import get_temporal_client
from src.syncflow.temporal.routing import QueueKind, route_for_tenant
from src.syncflow.temporal.workflows import SyncExecutionWorkflow, WebhookProcessingWorkflow

logger = get_logger(__name__)

ClientFactory = Callable[[], Awaitable[Client]]


def execution_job_id(execution_id: UUID | str) -> str:
    return f"sync-execution-{execution_id}"


def webhook_job_id(log_id: UUID | str) -> str:
    return f"webhook-{log_id}"


class JobDispatcher:
    def __init__(
        self,
        settings: Settings | None = None,
        client_factory: ClientFactory = get_temporal_client,
        tracker: WorkTracker = work_tracker,
    ):
        self.settings = settings or get_settings()
        self.client_factory = client_factory
        self.tracker = tracker

    async def dispatch_execution(self, execution: WorkflowExecution) -> str:
        """Queue an execution for the engine. Returns the job id."""
        job_id = execution_job_id(execution.id)
        started = await self._start_temporal(
            SyncExecutionWorkflow.run,
            RunExecutionInput(execution_id=str(execution.id), tenant_id=str(execution.tenant_id)),
            job_id=job_id,
            tenant_id=str(execution.tenant_id),
            kind=QueueKind.SYNC,
        )
        if not started:
            from src.syncflow.services.jobs import run_execution_job

            self.tracker.spawn(run_execution_job(execution.id), kind="execution")
            job_id = f"inline:{job_id}"
        logger.info("Execution dispatched", execution_id=str(execution.id), job_id=job_id)
        return job_id

    async def dispatch_webhook(self, log: WebhookLog) -> str:
        """Queue a webhook log for processing. Returns the job id."""
        job_id = webhook_job_id(log.id)
        started = await self._start_temporal(
            WebhookProcessingWorkflow.run,
            ProcessWebhookInput(log_id=str(log.id), tenant_id=str(log.tenant_id)),
            job_id=job_id,
            tenant_id=str(log.tenant_id),
            kind=QueueKind.WEBHOOKS,
        )
        if not started:
            from src.syncflow.services.jobs import process_webhook_job

            self.tracker.spawn(process_webhook_job(log.id), kind="webhook")
            job_id = f"inline:{job_id}"
        return job_id

    async def _start_temporal(
        self, run: Any, arg: Any, *, job_id: str, tenant_id: str, kind: QueueKind
    ) -> bool:
        """Start a Temporal workflow; False means the caller should run inline."""
        if not self.settings.temporal_dispatch_enabled:
            return False
        route = route_for_tenant(
            tenant_id=tenant_id,
            namespace=self.settings.temporal_namespace,
            prefix=self.settings.temporal_queue_prefix,
            shards=self.settings.temporal_queue_shards,
            kind=kind,
        )
        try:
            client = await self.client_factory()
            await client.start_workflow(
                run,
                arg,
                id=job_id,
                task_queue=route.task_queue,
                priority=route.priority,
            )
        except WorkflowAlreadyStartedError:
            logger.info("Job already started", job_id=job_id)
        except (RPCError, RuntimeError, OSError) as e:
            logger.warning("Temporal unavailable, running job inline", job_id=job_id, error=str(e))
            return False
        return True


_dispatcher: JobDispatcher | None = None


def get_dispatcher() -> JobDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = JobDispatcher()
    return _dispatcher
