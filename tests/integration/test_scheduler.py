"""Scheduler ticks and manual triggers."""

from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import func, select

from src.syncflow.core.exceptions import (
    ExecutionInProgressError,
    InvalidRangeError,
    NotFoundError,
    WorkflowDisabledError,
)
from src.syncflow.models import ExecutionStatus, TriggerType, WorkflowExecution
from src.syncflow.services.scheduler import SchedulerService, compute_next_run
from tests.factories import WorkflowExecutionFactory, WorkflowFactory
from tests.helpers import create_workflow

pytestmark = pytest.mark.integration

NOW = datetime(2026, 3, 10, 4, 0)


async def count_executions(session, workflow_id) -> int:
    result = await session.execute(
        select(func.count()).select_from(WorkflowExecution).where(WorkflowExecution.workflow_id == workflow_id)
    )
    return int(result.scalar_one())


class TestTick:
    async def test_first_pass_initializes_without_firing(self, db_session, tenant_id, dispatcher, settings):
        workflow = await create_workflow(db_session, tenant_id, schedule="*/15 * * * *")

        created = await SchedulerService(db_session, dispatcher, settings).tick(NOW)

        assert created == []
        await db_session.refresh(workflow)
        assert workflow.next_run_at == NOW + timedelta(minutes=15)
        assert workflow.last_run_at is None

    async def test_due_workflow_fires_once(self, db_session, tenant_id, dispatcher, settings):
        workflow = await create_workflow(
            db_session, tenant_id, schedule="*/15 * * * *", next_run_at=NOW - timedelta(minutes=1)
        )

        created = await SchedulerService(db_session, dispatcher, settings).tick(NOW)

        assert len(created) == 1
        execution = created[0]
        assert execution.workflow_id == workflow.id
        assert execution.trigger_type == TriggerType.SCHEDULED.value
        assert execution.status == ExecutionStatus.PENDING.value
        assert execution.queue_job_id == f"test:sync-execution-{execution.id}"
        assert dispatcher.executions == [execution.id]
        await db_session.refresh(workflow)
        assert workflow.next_run_at == NOW + timedelta(minutes=15)

        # Not due any more
        assert await SchedulerService(db_session, dispatcher, settings).tick(NOW) == []

    async def test_active_execution_blocks_scheduled_run(self, db_session, tenant_id, dispatcher, settings):
        workflow = await create_workflow(
            db_session, tenant_id, schedule="*/15 * * * *", next_run_at=NOW - timedelta(minutes=1)
        )
        db_session.add(WorkflowExecutionFactory.running(tenant_id=tenant_id, workflow_id=workflow.id))
        await db_session.commit()

        created = await SchedulerService(db_session, dispatcher, settings).tick(NOW)

        assert created == []
        assert await count_executions(db_session, workflow.id) == 1
        await db_session.refresh(workflow)
        assert workflow.next_run_at == NOW + timedelta(minutes=15)

    async def test_disabled_and_manual_only_ignored(self, db_session, tenant_id, dispatcher, settings):
        await create_workflow(db_session, tenant_id, enabled=False, schedule="*/5 * * * *", next_run_at=NOW)
        await create_workflow(db_session, tenant_id, schedule=None)

        assert await SchedulerService(db_session, dispatcher, settings).tick(NOW) == []
        assert dispatcher.executions == []


class TestTriggerManual:
    async def test_creates_and_dispatches(self, db_session, tenant_id, dispatcher, settings):
        workflow = await create_workflow(db_session, tenant_id)

        execution = await SchedulerService(db_session, dispatcher, settings).trigger_manual(workflow.id, tenant_id)

        assert execution.trigger_type == TriggerType.MANUAL.value
        assert execution.status == ExecutionStatus.PENDING.value
        assert execution.date_range_since is None
        assert dispatcher.executions == [execution.id]

    async def test_override_window_pinned(self, db_session, tenant_id, dispatcher, settings):
        workflow = await create_workflow(db_session, tenant_id)

        execution = await SchedulerService(db_session, dispatcher, settings).trigger_manual(
            workflow.id, tenant_id, since=date(2026, 3, 1), until=date(2026, 3, 3)
        )

        assert (execution.date_range_since, execution.date_range_until) == ("2026-03-01", "2026-03-03")

    async def test_second_trigger_conflicts(self, db_session, tenant_id, dispatcher, settings):
        workflow = await create_workflow(db_session, tenant_id)
        service = SchedulerService(db_session, dispatcher, settings)
        await service.trigger_manual(workflow.id, tenant_id)

        with pytest.raises(ExecutionInProgressError) as exc_info:
            await service.trigger_manual(workflow.id, tenant_id)

        assert exc_info.value.status_code == 409
        assert await count_executions(db_session, workflow.id) == 1
        assert len(dispatcher.executions) == 1

    async def test_other_tenant_not_found(self, db_session, tenant_id, dispatcher, settings):
        workflow = await create_workflow(db_session, tenant_id)
        other_tenant = WorkflowFactory.build().tenant_id

        with pytest.raises(NotFoundError):
            await SchedulerService(db_session, dispatcher, settings).trigger_manual(workflow.id, other_tenant)

    async def test_disabled_rejected(self, db_session, tenant_id, dispatcher, settings):
        workflow = await create_workflow(db_session, tenant_id, enabled=False)

        with pytest.raises(WorkflowDisabledError):
            await SchedulerService(db_session, dispatcher, settings).trigger_manual(workflow.id, tenant_id)

    async def test_inverted_window_rejected(self, db_session, tenant_id, dispatcher, settings):
        workflow = await create_workflow(db_session, tenant_id)

        with pytest.raises(InvalidRangeError):
            await SchedulerService(db_session, dispatcher, settings).trigger_manual(
                workflow.id, tenant_id, since=date(2026, 3, 5), until=date(2026, 3, 1)
            )
        assert await count_executions(db_session, workflow.id) == 0

    async def test_terminal_execution_does_not_block(self, db_session, tenant_id, dispatcher, settings):
        workflow = await create_workflow(db_session, tenant_id)
        done = WorkflowExecutionFactory.build(
            tenant_id=tenant_id, workflow_id=workflow.id, status=ExecutionStatus.FAILED.value
        )
        db_session.add(done)
        await db_session.commit()

        execution = await SchedulerService(db_session, dispatcher, settings).trigger_manual(workflow.id, tenant_id)

        assert execution.id != done.id


class TestComputeNextRun:
    def test_none_without_schedule(self):
        assert compute_next_run(WorkflowFactory.build(schedule=None), NOW, "UTC") is None

    def test_none_when_disabled(self):
        assert compute_next_run(WorkflowFactory.disabled(schedule="*/5 * * * *"), NOW, "UTC") is None

    def test_invalid_stored_schedule(self):
        assert compute_next_run(WorkflowFactory.scheduled("bogus"), NOW, "UTC") is None
