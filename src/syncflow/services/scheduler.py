"""Scheduler: fires due workflows and handles manual triggers.

Both paths create a PENDING execution and hand it to the dispatcher. The
workflow row is locked while deciding, so two schedulers (or a schedule
firing during a manual trigger) cannot start two executions of one workflow.
"""

import asyncio
from datetime import date, datetime
from typing import Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.syncflow.core.config import Settings, get_settings
from src.syncflow.core.exceptions import (
    ExecutionInProgressError,
    InvalidCronError,
    InvalidRangeError,
    NotFoundError,
    WorkflowDisabledError,
)
from src.syncflow.core.logging import get_logger
from src.syncflow.models import ExecutionStatus, TriggerType, Workflow, WorkflowExecution
from src.syncflow.models.base import utc_now
from src.syncflow.repositories import WorkflowExecutionRepository, WorkflowRepository
from src.syncflow.services.cron import next_run_after

logger = get_logger(__name__)


class ExecutionDispatcher(Protocol):
    async def dispatch_execution(self, execution: WorkflowExecution) -> str | None: ...


def compute_next_run(workflow: Workflow, now: datetime, tz: str) -> datetime | None:
    """Next fire time, or None for disabled / manual-only workflows."""
    if not workflow.enabled or not workflow.schedule:
        return None
    try:
        return next_run_after(workflow.schedule, now, tz)
    except InvalidCronError:
        logger.warning("Stored schedule is invalid", workflow_id=str(workflow.id), schedule=workflow.schedule)
        return None


def reschedule(workflow: Workflow, now: datetime, tz: str, *, ran: bool = True) -> None:
    """Recompute `next_run_at` (and stamp `last_run_at` after a run). No commit."""
    if ran:
        workflow.last_run_at = now
    workflow.next_run_at = compute_next_run(workflow, now, tz)
    workflow.updated_at = utc_now()


class SchedulerService:
    def __init__(
        self,
        session: AsyncSession,
        dispatcher: ExecutionDispatcher,
        settings: Settings | None = None,
    ):
        self.session = session
        self.dispatcher = dispatcher
        self.settings = settings or get_settings()
        self.workflows = WorkflowRepository(session)
        self.executions = WorkflowExecutionRepository(session)

    async def tick(self, now: datetime | None = None) -> list[WorkflowExecution]:
        """Fire every due workflow once. Returns the executions created.

        A due workflow that still has an active execution is only rescheduled.
        Workflows with a schedule but no `next_run_at` yet are initialized
        without firing.
        """
        now = now or utc_now()
        tz = self.settings.sync_timezone
        created: list[WorkflowExecution] = []

        for workflow in await self.workflows.lock_due(now):
            if workflow.next_run_at is None:
                reschedule(workflow, now, tz, ran=False)
                logger.info("Initialized schedule", workflow_id=str(workflow.id), next_run_at=str(workflow.next_run_at))
                continue

            active = await self.executions.get_active_for_workflow(workflow.id)
            if active is not None:
                logger.info(
                    "Skipping scheduled run, execution still active",
                    workflow_id=str(workflow.id),
                    execution_id=str(active.id),
                    status=active.status,
                )
            else:
                created.append(self._new_execution(workflow, TriggerType.SCHEDULED))
            reschedule(workflow, now, tz, ran=False)

        await self.session.commit()
        for execution in created:
            await self._dispatch(execution)
        if created:
            logger.info("Scheduler tick fired workflows", count=len(created))
        return created

    async def trigger_manual(
        self,
        workflow_id: UUID,
        tenant_id: UUID,
        since: date | None = None,
        until: date | None = None,
    ) -> WorkflowExecution:
        """Create and dispatch a MANUAL execution.

        Raises:
            NotFoundError: workflow does not exist for the tenant
            WorkflowDisabledError: workflow is disabled
            ExecutionInProgressError: a PENDING or RUNNING execution exists
            InvalidRangeError: override window with until before since
        """
        if since and until and until < since:
            raise InvalidRangeError(f"Invalid date range: until ({until}) is before since ({since})")

        workflow = await self.workflows.get_for_update(workflow_id)
        if workflow is None or workflow.tenant_id != tenant_id:
            await self.session.rollback()
            raise NotFoundError("Workflow not found")
        if not workflow.enabled:
            await self.session.rollback()
            raise WorkflowDisabledError("Workflow is disabled")
        active = await self.executions.get_active_for_workflow(workflow.id)
        if active is not None:
            await self.session.rollback()
            raise ExecutionInProgressError(
                f"Workflow already has a {active.status.lower()} execution ({active.id})"
            )

        execution = self._new_execution(workflow, TriggerType.MANUAL)
        if since and until:
            execution.date_range_since = since.isoformat()
            execution.date_range_until = until.isoformat()
        await self.session.commit()
        await self.session.refresh(execution)

        logger.info("Manual trigger", workflow_id=str(workflow.id), execution_id=str(execution.id))
        await self._dispatch(execution)
        return execution

    def _new_execution(self, workflow: Workflow, trigger: TriggerType) -> WorkflowExecution:
        execution = WorkflowExecution(
            workflow_id=workflow.id,
            tenant_id=workflow.tenant_id,
            status=ExecutionStatus.PENDING.value,
            trigger_type=trigger.value,
        )
        self.executions.add(execution)
        return execution

    async def _dispatch(self, execution: WorkflowExecution) -> None:
        job_id = await self.dispatcher.dispatch_execution(execution)
        if job_id and execution.queue_job_id != job_id:
            execution.queue_job_id = job_id
            await self.session.commit()

    async def run_forever(self, poll_seconds: float | None = None, stop: asyncio.Event | None = None) -> None:
        """Poll `tick` until `stop` is set. For deployments without Temporal."""
        interval = poll_seconds or self.settings.scheduler_poll_seconds
        stop = stop or asyncio.Event()
        logger.info("Scheduler loop started", poll_seconds=interval)
        while not stop.is_set():
            try:
                await self.tick()
            except Exception:
                logger.exception("Scheduler tick failed")
                await self.session.rollback()
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except TimeoutError:
                pass
        logger.info("Scheduler loop stopped")
