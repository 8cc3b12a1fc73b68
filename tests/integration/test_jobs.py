"""Background job entry points with inline dispatch."""

import json
from contextlib import asynccontextmanager
from datetime import datetime
from uuid import uuid4

import pytest
from sqlmodel import select

from src.syncflow.core.db import get_session
from src.syncflow.core.shutdown import work_tracker
from src.syncflow.models import PosOrder, WebhookLog, WorkflowExecution
from src.syncflow.services import jobs
from src.syncflow.services.dispatch import JobDispatcher
from src.syncflow.services.webhook_gate import WebhookGate
from tests.factories import WorkflowExecutionFactory
from tests.helpers import FakeMeta, FakePos, create_pos_store, create_webhook_config, create_workflow, pos_order

pytestmark = pytest.mark.integration


@pytest.fixture
def fake_pos(monkeypatch: pytest.MonkeyPatch) -> FakePos:
    """Jobs open providers per run; hand them doubles instead of HTTP clients."""
    pos = FakePos(orders={"shop-1": [pos_order("1001")]})

    @asynccontextmanager
    async def _open(settings):
        yield FakeMeta(), pos

    monkeypatch.setattr(jobs, "open_providers", _open)
    return pos


async def drain() -> None:
    await work_tracker.start_shutdown()
    assert await work_tracker.wait_for_drain(timeout=10)


async def fetch(engine, model, row_id):
    async with get_session(engine) as session:
        return (await session.execute(select(model).where(model.id == row_id))).scalar_one()


async def add_pending(session, workflow):
    execution = WorkflowExecutionFactory.build(tenant_id=workflow.tenant_id, workflow_id=workflow.id)
    session.add(execution)
    await session.commit()
    return execution


async def test_run_execution_job(engine, db_session, tenant_id, fake_pos):
    await create_pos_store(db_session, tenant_id, "shop-1")
    workflow = await create_workflow(db_session, tenant_id)
    execution = await add_pending(db_session, workflow)

    assert await jobs.run_execution_job(execution.id) == "COMPLETED"
    assert len(fake_pos.calls) == 1


async def test_queued_execution_starts_after_previous_finishes(engine, db_session, tenant_id, fake_pos):
    await create_pos_store(db_session, tenant_id, "shop-1")
    first = await add_pending(db_session, await create_workflow(db_session, tenant_id))
    waiting = await add_pending(db_session, await create_workflow(db_session, tenant_id))

    await jobs.run_execution_job(first.id)
    await drain()

    row = await fetch(engine, WorkflowExecution, waiting.id)
    assert row.status == "COMPLETED"
    assert row.queue_job_id == f"inline:sync-execution-{waiting.id}"


async def test_webhook_processed_inline_after_gate(engine, db_session, tenant_id, settings):
    await create_pos_store(db_session, tenant_id, "shop-1")
    _, key = await create_webhook_config(db_session, tenant_id)
    body = json.dumps({"data": pos_order("1001")}).encode()

    result = await WebhookGate(db_session, JobDispatcher(settings), settings).receive(
        str(tenant_id), body, {"x-api-key": key}
    )
    await drain()

    log = await fetch(engine, WebhookLog, result.log_id)
    assert log.queue_job_id == f"inline:webhook-{log.id}"
    assert log.process_status == "PROCESSED"
    assert log.relay_status == "SKIPPED"
    async with get_session(engine) as session:
        orders = (await session.execute(select(PosOrder))).scalars().all()
    assert [o.pos_order_id for o in orders] == ["1001"]


async def test_process_webhook_job_missing_log(engine):
    assert await jobs.process_webhook_job(uuid4()) is None


async def test_scheduler_tick_fires_and_runs(engine, db_session, tenant_id, fake_pos):
    await create_pos_store(db_session, tenant_id, "shop-1")
    workflow = await create_workflow(
        db_session, tenant_id, schedule="*/5 * * * *", next_run_at=datetime(2026, 1, 1)
    )

    assert await jobs.run_scheduler_tick() == 1
    await drain()

    async with get_session(engine) as session:
        executions = (
            await session.execute(select(WorkflowExecution).where(WorkflowExecution.workflow_id == workflow.id))
        ).scalars().all()
    assert [(e.trigger_type, e.status) for e in executions] == [("SCHEDULED", "COMPLETED")]


async def test_reconcile_with_nothing_stale(engine):
    assert await jobs.reconcile_executions() == {"failed": 0, "redispatched": 0}
