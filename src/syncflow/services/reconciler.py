"""Recovery of executions abandoned by a crashed worker.

A RUNNING execution writes its counters after every provider call, so one
that has not been touched for `execution_stale_minutes` has lost its
worker. It is failed with a `reconciler` error. A PENDING execution that
old was never picked up; it is handed to the dispatcher again unless the
tenant already has a run in progress.
"""

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.syncflow.core.config import Settings, get_settings
from src.syncflow.core.logging import get_logger
from src.syncflow.models import ExecutionStatus
from src.syncflow.models.base import elapsed_ms, utc_now
from src.syncflow.repositories import WorkflowExecutionRepository, WorkflowRepository
from src.syncflow.services.progress import ProgressBroker, progress_broker, snapshot_from_execution
from src.syncflow.services.scheduler import ExecutionDispatcher, reschedule

logger = get_logger(__name__)


class ExecutionReconciler:
    def __init__(
        self,
        session: AsyncSession,
        dispatcher: ExecutionDispatcher,
        settings: Settings | None = None,
        broker: ProgressBroker = progress_broker,
    ):
        self.session = session
        self.dispatcher = dispatcher
        self.settings = settings or get_settings()
        self.broker = broker
        self.executions = WorkflowExecutionRepository(session)
        self.workflows = WorkflowRepository(session)

    async def run(self, now: datetime | None = None) -> dict[str, int]:
        now = now or utc_now()
        cutoff = now - timedelta(minutes=self.settings.execution_stale_minutes)
        failed = await self._fail_stale_running(now, cutoff)
        redispatched = await self._redispatch_stale_pending(cutoff)
        if failed or redispatched:
            logger.warning("Reconciled stale executions", failed=failed, redispatched=redispatched)
        return {"failed": failed, "redispatched": redispatched}

    async def _fail_stale_running(self, now: datetime, cutoff: datetime) -> int:
        count = 0
        for execution in await self.executions.list_stale(ExecutionStatus.RUNNING, cutoff):
            errors: list[dict[str, Any]] = list(execution.errors or [])
            errors.append(
                {
                    "source": "reconciler",
                    "error": f"Stale RUNNING execution (no progress since {execution.updated_at.isoformat()})",
                }
            )
            won = await self.executions.transition(
                execution.id,
                [ExecutionStatus.RUNNING],
                ExecutionStatus.FAILED,
                errors=errors,
                completed_at=now,
                duration_ms=elapsed_ms(execution.started_at or execution.created_at, now),
            )
            if not won:
                continue
            workflow = await self.workflows.get_for_update(execution.workflow_id)
            if workflow is not None:
                reschedule(workflow, now, self.settings.sync_timezone)
            await self.session.commit()
            await self.session.refresh(execution)
            await self.broker.publish(snapshot_from_execution(execution, "finished"))
            count += 1
        return count

    async def _redispatch_stale_pending(self, cutoff: datetime) -> int:
        count = 0
        for execution in await self.executions.list_stale(ExecutionStatus.PENDING, cutoff):
            if await self.executions.has_running_for_tenant(execution.tenant_id):
                continue
            execution.queue_job_id = await self.dispatcher.dispatch_execution(execution)
            execution.updated_at = utc_now()
            await self.session.commit()
            count += 1
        return count
