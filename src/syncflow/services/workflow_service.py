"""Workflow definitions: CRUD, validation and execution control."""

from typing import Any
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from src.syncflow.core.config import Settings, get_settings
from src.syncflow.core.exceptions import (
    ExecutionInProgressError,
    InvalidWorkflowConfigError,
    NotFoundError,
)
from src.syncflow.core.logging import get_logger
from src.syncflow.models import ExecutionStatus, Workflow, WorkflowExecution, WorkflowExecutionLog
from src.syncflow.models.base import elapsed_ms, utc_now
from src.syncflow.repositories import (
    WorkflowExecutionLogRepository,
    WorkflowExecutionRepository,
    WorkflowRepository,
)
from src.syncflow.schemas.progress import ProgressSnapshot
from src.syncflow.schemas.workflow import (
    FriendlyScheduleRead,
    WorkflowConfig,
    WorkflowCreate,
    WorkflowRead,
    WorkflowUpdate,
)
from src.syncflow.services.cron import parse_cron, validate_cron
from src.syncflow.services.date_range import resolve_dates
from src.syncflow.services.execution_engine import CancelRegistry, cancel_registry
from src.syncflow.services.progress import ProgressBroker, progress_broker, snapshot_from_execution
from src.syncflow.services.scheduler import reschedule

logger = get_logger(__name__)


def is_visible(workflow: Workflow, team_ids: list[str] | None) -> bool:
    """Team scoping: None means unrestricted (tenant admins)."""
    if team_ids is None or workflow.team_id is None:
        return True
    allowed = set(team_ids)
    return str(workflow.team_id) in allowed or bool(allowed.intersection(workflow.shared_team_ids or []))


def to_read(workflow: Workflow) -> WorkflowRead:
    read = WorkflowRead.model_validate(workflow)
    friendly = parse_cron(workflow.schedule)
    if friendly is not None:
        read.schedule_friendly = FriendlyScheduleRead(
            unit=friendly.unit,
            every=friendly.every,
            at_minute=friendly.at_minute,
            at_hour=friendly.at_hour,
        )
    return read


class WorkflowService:
    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        broker: ProgressBroker = progress_broker,
        registry: CancelRegistry = cancel_registry,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.broker = broker
        self.registry = registry
        self.workflows = WorkflowRepository(session)
        self.executions = WorkflowExecutionRepository(session)
        self.execution_logs = WorkflowExecutionLogRepository(session)

    def validate_config(self, config: WorkflowConfig | dict[str, Any]) -> WorkflowConfig:
        """Check a config can actually run.

        Raises:
            InvalidWorkflowConfigError: malformed or no source enabled
            InvalidRangeError: date range resolves to nothing
        """
        if isinstance(config, dict):
            try:
                config = WorkflowConfig.model_validate(config)
            except ValidationError as e:
                raise InvalidWorkflowConfigError(f"Invalid workflow config: {e.errors()[0]['msg']}") from e
        if not (config.sources.meta.enabled or config.sources.pos.enabled):
            raise InvalidWorkflowConfigError("At least one source must be enabled")
        resolve_dates(config.effective_date_range(), utc_now(), self.settings.sync_timezone)
        return config

    @staticmethod
    def _normalize_schedule(schedule: str | None) -> str | None:
        if schedule is None or not schedule.strip():
            return None
        return validate_cron(schedule)

    async def get(self, workflow_id: UUID, tenant_id: UUID, team_ids: list[str] | None = None) -> Workflow:
        workflow = await self.workflows.get_for_tenant(workflow_id, tenant_id)
        if workflow is None or not is_visible(workflow, team_ids):
            raise NotFoundError("Workflow not found")
        return workflow

    async def list_workflows(self, tenant_id: UUID, team_ids: list[str] | None = None) -> list[Workflow]:
        return await self.workflows.list_for_tenant(tenant_id, team_ids)

    async def create(self, tenant_id: UUID, data: WorkflowCreate) -> Workflow:
        config = self.validate_config(data.config)
        workflow = Workflow(
            tenant_id=tenant_id,
            name=data.name,
            description=data.description,
            enabled=data.enabled,
            schedule=self._normalize_schedule(data.schedule),
            config=config.to_storage(),
            team_id=data.team_id,
            shared_team_ids=[str(t) for t in data.shared_team_ids],
        )
        reschedule(workflow, utc_now(), self.settings.sync_timezone, ran=False)
        self.workflows.add(workflow)
        await self.session.commit()
        await self.session.refresh(workflow)
        logger.info("Workflow created", workflow_id=str(workflow.id), tenant_id=str(tenant_id))
        return workflow

    async def update(
        self,
        workflow_id: UUID,
        tenant_id: UUID,
        data: WorkflowUpdate,
        team_ids: list[str] | None = None,
    ) -> Workflow:
        workflow = await self.get(workflow_id, tenant_id, team_ids)
        fields = data.model_fields_set

        if "name" in fields and data.name is not None:
            workflow.name = data.name
        if "description" in fields:
            workflow.description = data.description
        if "enabled" in fields and data.enabled is not None:
            workflow.enabled = data.enabled
        if "schedule" in fields:
            workflow.schedule = self._normalize_schedule(data.schedule)
        if "config" in fields and data.config is not None:
            workflow.config = self.validate_config(data.config).to_storage()
        if "team_id" in fields:
            workflow.team_id = data.team_id
        if "shared_team_ids" in fields and data.shared_team_ids is not None:
            workflow.shared_team_ids = [str(t) for t in data.shared_team_ids]

        reschedule(workflow, utc_now(), self.settings.sync_timezone, ran=False)
        await self.session.commit()
        await self.session.refresh(workflow)
        logger.info("Workflow updated", workflow_id=str(workflow.id), fields=sorted(fields))
        return workflow

    async def set_enabled(
        self, workflow_id: UUID, tenant_id: UUID, enabled: bool, team_ids: list[str] | None = None
    ) -> Workflow:
        workflow = await self.get(workflow_id, tenant_id, team_ids)
        workflow.enabled = enabled
        reschedule(workflow, utc_now(), self.settings.sync_timezone, ran=False)
        await self.session.commit()
        await self.session.refresh(workflow)
        logger.info("Workflow enabled" if enabled else "Workflow disabled", workflow_id=str(workflow.id))
        return workflow

    async def delete(self, workflow_id: UUID, tenant_id: UUID, team_ids: list[str] | None = None) -> None:
        """Delete a workflow and its history. Refused while a run is in progress."""
        workflow = await self.get(workflow_id, tenant_id, team_ids)
        active = await self.executions.get_active_for_workflow(workflow.id)
        if active is not None and active.status == ExecutionStatus.RUNNING.value:
            raise ExecutionInProgressError("Cannot delete a workflow while an execution is running")
        await self.executions.delete_for_workflow(workflow.id)
        await self.session.delete(workflow)
        await self.session.commit()
        logger.info("Workflow deleted", workflow_id=str(workflow_id))

    async def list_executions(
        self,
        workflow_id: UUID,
        tenant_id: UUID,
        cursor: str | None,
        limit: int,
        team_ids: list[str] | None = None,
    ) -> tuple[list[WorkflowExecution], str | None, bool]:
        await self.get(workflow_id, tenant_id, team_ids)
        return await self.executions.list_for_workflow(workflow_id, cursor, limit)

    async def get_execution(
        self,
        workflow_id: UUID,
        execution_id: UUID,
        tenant_id: UUID,
        team_ids: list[str] | None = None,
    ) -> WorkflowExecution:
        await self.get(workflow_id, tenant_id, team_ids)
        execution = await self.executions.get_for_workflow(workflow_id, execution_id)
        if execution is None:
            raise NotFoundError("Execution not found")
        return execution

    async def get_execution_logs(
        self,
        workflow_id: UUID,
        execution_id: UUID,
        tenant_id: UUID,
        team_ids: list[str] | None = None,
        limit: int = 200,
    ) -> list[WorkflowExecutionLog]:
        execution = await self.get_execution(workflow_id, execution_id, tenant_id, team_ids)
        return await self.execution_logs.list_for_execution(execution.id, limit)

    async def get_progress(
        self,
        workflow_id: UUID,
        execution_id: UUID,
        tenant_id: UUID,
        team_ids: list[str] | None = None,
    ) -> ProgressSnapshot:
        """Latest broadcast snapshot, else one built from the stored row."""
        execution = await self.get_execution(workflow_id, execution_id, tenant_id, team_ids)
        latest = await self.broker.latest(execution.id)
        if latest is not None:
            return latest
        event = "finished" if execution.is_terminal else "progress"
        if execution.status == ExecutionStatus.CANCELLED.value:
            event = "cancelled"
        return snapshot_from_execution(execution, event)

    async def cancel_execution(
        self,
        workflow_id: UUID,
        execution_id: UUID,
        tenant_id: UUID,
        team_ids: list[str] | None = None,
    ) -> WorkflowExecution:
        """Request cancellation. Terminal executions are returned unchanged.

        A PENDING execution is cancelled immediately; a RUNNING one is
        flagged and stops at the engine's next checkpoint.
        """
        execution = await self.get_execution(workflow_id, execution_id, tenant_id, team_ids)
        if execution.is_terminal:
            return execution

        now = utc_now()
        if execution.status == ExecutionStatus.PENDING.value:
            won = await self.executions.transition(
                execution.id,
                [ExecutionStatus.PENDING],
                ExecutionStatus.CANCELLED,
                cancel_requested=True,
                completed_at=now,
                duration_ms=elapsed_ms(execution.created_at, now),
            )
            await self.session.commit()
            await self.session.refresh(execution)
            if won:
                logger.info("Pending execution cancelled", execution_id=str(execution.id))
                await self.broker.publish(snapshot_from_execution(execution, "cancelled"))
                return execution

        self.registry.request(execution.id)
        await self.executions.flag_cancel(execution.id)
        await self.session.commit()
        await self.session.refresh(execution)
        logger.info("Cancel requested", execution_id=str(execution.id), status=execution.status)
        return execution

