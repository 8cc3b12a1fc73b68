"""Repository for WorkflowExecution rows."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, update
from sqlmodel import select

from src.syncflow.models import (
    ACTIVE_EXECUTION_STATUSES,
    ExecutionStatus,
    WorkflowExecution,
    WorkflowExecutionLog,
)
from src.syncflow.models.base import utc_now
from src.syncflow.repositories.base import BaseRepository

_ACTIVE = [s.value for s in ACTIVE_EXECUTION_STATUSES]


class WorkflowExecutionRepository(BaseRepository[WorkflowExecution]):
    model = WorkflowExecution

    async def get_active_for_workflow(self, workflow_id: UUID) -> WorkflowExecution | None:
        """The PENDING or RUNNING execution of a workflow, if any."""
        result = await self.session.execute(
            select(WorkflowExecution)
            .where(
                WorkflowExecution.workflow_id == workflow_id,
                WorkflowExecution.status.in_(_ACTIVE),  # type: ignore[attr-defined]
            )
            .order_by(WorkflowExecution.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_for_workflow(
        self, workflow_id: UUID, execution_id: UUID
    ) -> WorkflowExecution | None:
        result = await self.session.execute(
            select(WorkflowExecution).where(
                WorkflowExecution.id == execution_id,
                WorkflowExecution.workflow_id == workflow_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_workflow(
        self, workflow_id: UUID, cursor: str | None, limit: int
    ) -> tuple[list[WorkflowExecution], str | None, bool]:
        query = select(WorkflowExecution).where(WorkflowExecution.workflow_id == workflow_id)
        return await self.paginate(query, cursor, limit, WorkflowExecution.created_at)

    async def next_pending_for_tenant(self, tenant_id: UUID) -> WorkflowExecution | None:
        """Oldest PENDING execution of a tenant (queued behind another run)."""
        result = await self.session.execute(
            select(WorkflowExecution)
            .where(
                WorkflowExecution.tenant_id == tenant_id,
                WorkflowExecution.status == ExecutionStatus.PENDING.value,
            )
            .order_by(WorkflowExecution.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_stale(
        self, status: ExecutionStatus, updated_before: datetime
    ) -> list[WorkflowExecution]:
        """Executions stuck in `status` with no write since `updated_before`."""
        result = await self.session.execute(
            select(WorkflowExecution).where(
                WorkflowExecution.status == status.value,
                WorkflowExecution.updated_at < updated_before,  # type: ignore[operator]
            )
        )
        return list(result.scalars().all())

    async def has_running_for_tenant(self, tenant_id: UUID) -> bool:
        result = await self.session.execute(
            select(WorkflowExecution.id)
            .where(
                WorkflowExecution.tenant_id == tenant_id,
                WorkflowExecution.status == ExecutionStatus.RUNNING.value,
            )
            .limit(1)
        )
        return result.first() is not None

    async def read_control_state(self, execution_id: UUID) -> tuple[str, bool] | None:
        """Fresh (status, cancel_requested) straight from the database.

        Selects columns rather than the entity so the session identity map
        cannot serve a stale copy.
        """
        result = await self.session.execute(
            select(WorkflowExecution.status, WorkflowExecution.cancel_requested).where(
                WorkflowExecution.id == execution_id
            )
        )
        row = result.first()
        if row is None:
            return None
        return row[0], bool(row[1])

    async def transition(
        self,
        execution_id: UUID,
        from_statuses: list[ExecutionStatus],
        to_status: ExecutionStatus,
        **values: Any,
    ) -> bool:
        """Conditional status change; True if this caller won the transition."""
        result = await self.session.execute(
            update(WorkflowExecution)
            .where(
                WorkflowExecution.id == execution_id,  # type: ignore[arg-type]
                WorkflowExecution.status.in_([s.value for s in from_statuses]),  # type: ignore[attr-defined]
            )
            .values(status=to_status.value, updated_at=utc_now(), **values)
            .execution_options(synchronize_session=False)
        )
        return bool(result.rowcount)

    async def flag_cancel(self, execution_id: UUID) -> bool:
        """Set the cooperative cancel flag on a RUNNING execution."""
        result = await self.session.execute(
            update(WorkflowExecution)
            .where(
                WorkflowExecution.id == execution_id,  # type: ignore[arg-type]
                WorkflowExecution.status == ExecutionStatus.RUNNING.value,  # type: ignore[arg-type]
            )
            .values(cancel_requested=True, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        return bool(result.rowcount)

    async def delete_for_workflow(self, workflow_id: UUID) -> None:
        """Delete a workflow's executions and their event logs."""
        executions = select(WorkflowExecution.id).where(WorkflowExecution.workflow_id == workflow_id)
        await self.session.execute(
            delete(WorkflowExecutionLog).where(
                WorkflowExecutionLog.execution_id.in_(executions)  # type: ignore[attr-defined]
            )
        )
        await self.session.execute(
            delete(WorkflowExecution).where(WorkflowExecution.workflow_id == workflow_id)  # type: ignore[arg-type]
        )


class WorkflowExecutionLogRepository(BaseRepository[WorkflowExecutionLog]):
    model = WorkflowExecutionLog

    async def list_for_execution(self, execution_id: UUID, limit: int = 200) -> list[WorkflowExecutionLog]:
        """Oldest first, as the engine wrote them."""
        result = await self.session.execute(
            select(WorkflowExecutionLog)
            .where(WorkflowExecutionLog.execution_id == execution_id)
            .order_by(WorkflowExecutionLog.seq, WorkflowExecutionLog.created_at)  # type: ignore[arg-type]
            .limit(limit)
        )
        return list(result.scalars().all())
