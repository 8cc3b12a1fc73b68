"""Workflow endpoints: definitions, schedules, triggers and executions."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, Request, Response, status

from src.syncflow.api.dependencies import (
    SchedulerServiceDep,
    WorkflowExecutor,
    WorkflowReader,
    WorkflowServiceDep,
    WorkflowWriter,
)
from src.syncflow.core.config import get_settings
from src.syncflow.core.rate_limit import limiter
from src.syncflow.schemas.pagination import PaginatedResponse
from src.syncflow.schemas.progress import ProgressSnapshot
from src.syncflow.schemas.workflow import (
    ExecutionLogRead,
    ExecutionRead,
    FriendlyScheduleRead,
    ScheduleDescription,
    TriggerRequest,
    WorkflowCreate,
    WorkflowRead,
    WorkflowUpdate,
)
from src.syncflow.services.cron import FriendlySchedule, parse_cron, to_cron, validate_cron
from src.syncflow.services.workflow_service import to_read

router = APIRouter(prefix="/workflows", tags=["workflows"])


def _describe(cron: str) -> ScheduleDescription:
    friendly = parse_cron(cron)
    return ScheduleDescription(
        cron=cron,
        friendly=FriendlyScheduleRead(
            unit=friendly.unit,
            every=friendly.every,
            at_minute=friendly.at_minute,
            at_hour=friendly.at_hour,
        )
        if friendly
        else None,
    )


@router.get(
    "/schedule/describe",
    response_model=ScheduleDescription,
    summary="Describe a cron string",
    description="Friendly fields for one of the simple shapes, null otherwise.",
)
async def describe_schedule(
    _principal: WorkflowReader,
    cron: Annotated[str, Query(min_length=1, max_length=100)],
) -> ScheduleDescription:
    return _describe(validate_cron(cron))


@router.post(
    "/schedule/compose",
    response_model=ScheduleDescription,
    summary="Build a cron string from friendly fields",
)
async def compose_schedule(_principal: WorkflowReader, data: FriendlyScheduleRead) -> ScheduleDescription:
    cron = to_cron(
        FriendlySchedule(unit=data.unit, every=data.every, at_minute=data.at_minute, at_hour=data.at_hour)
    )
    return _describe(cron)


@router.get("", response_model=list[WorkflowRead], summary="List workflows")
async def list_workflows(principal: WorkflowReader, service: WorkflowServiceDep) -> list[WorkflowRead]:
    workflows = await service.list_workflows(principal.tenant_id, principal.team_scope)
    return [to_read(w) for w in workflows]


@router.post(
    "",
    response_model=WorkflowRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create workflow",
    responses={400: {"description": "Invalid cron, date range or source selection"}},
)
async def create_workflow(
    data: WorkflowCreate, principal: WorkflowWriter, service: WorkflowServiceDep
) -> WorkflowRead:
    return to_read(await service.create(principal.tenant_id, data))


@router.get(
    "/{workflow_id}",
    response_model=WorkflowRead,
    summary="Get workflow",
    responses={404: {"description": "Workflow not found"}},
)
async def get_workflow(
    workflow_id: UUID, principal: WorkflowReader, service: WorkflowServiceDep
) -> WorkflowRead:
    return to_read(await service.get(workflow_id, principal.tenant_id, principal.team_scope))


@router.patch("/{workflow_id}", response_model=WorkflowRead, summary="Update workflow")
async def update_workflow(
    workflow_id: UUID, data: WorkflowUpdate, principal: WorkflowWriter, service: WorkflowServiceDep
) -> WorkflowRead:
    workflow = await service.update(workflow_id, principal.tenant_id, data, principal.team_scope)
    return to_read(workflow)


@router.delete(
    "/{workflow_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete workflow",
    responses={409: {"description": "An execution is running"}},
)
async def delete_workflow(
    workflow_id: UUID, principal: WorkflowWriter, service: WorkflowServiceDep
) -> Response:
    await service.delete(workflow_id, principal.tenant_id, principal.team_scope)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{workflow_id}/enable", response_model=WorkflowRead, summary="Enable workflow")
async def enable_workflow(
    workflow_id: UUID, principal: WorkflowWriter, service: WorkflowServiceDep
) -> WorkflowRead:
    return to_read(await service.set_enabled(workflow_id, principal.tenant_id, True, principal.team_scope))


@router.post("/{workflow_id}/disable", response_model=WorkflowRead, summary="Disable workflow")
async def disable_workflow(
    workflow_id: UUID, principal: WorkflowWriter, service: WorkflowServiceDep
) -> WorkflowRead:
    return to_read(await service.set_enabled(workflow_id, principal.tenant_id, False, principal.team_scope))


@router.post(
    "/{workflow_id}/trigger",
    response_model=ExecutionRead,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Run workflow now",
    description="Queue a MANUAL execution, optionally over an explicit since/until window.",
    responses={
        400: {"description": "Workflow disabled or invalid window"},
        409: {"description": "An execution is already pending or running"},
    },
)
@limiter.limit(get_settings().trigger_rate_limit)
async def trigger_workflow(
    request: Request,
    workflow_id: UUID,
    principal: WorkflowExecutor,
    workflows: WorkflowServiceDep,
    scheduler: SchedulerServiceDep,
    data: TriggerRequest | None = None,
) -> ExecutionRead:
    # Visibility check (team scoping) before the scheduler locks the row
    await workflows.get(workflow_id, principal.tenant_id, principal.team_scope)
    since = data.since if data else None
    until = data.until if data else None
    execution = await scheduler.trigger_manual(workflow_id, principal.tenant_id, since, until)
    return ExecutionRead.model_validate(execution)


@router.get(
    "/{workflow_id}/executions",
    response_model=PaginatedResponse[ExecutionRead],
    summary="List executions",
)
async def list_executions(
    workflow_id: UUID,
    principal: WorkflowReader,
    service: WorkflowServiceDep,
    cursor: Annotated[str | None, Query(description="Cursor for pagination")] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> PaginatedResponse[ExecutionRead]:
    items, next_cursor, has_more = await service.list_executions(
        workflow_id, principal.tenant_id, cursor, limit, principal.team_scope
    )
    return PaginatedResponse(
        items=[ExecutionRead.model_validate(e) for e in items],
        next_cursor=next_cursor,
        has_more=has_more,
    )


@router.get("/{workflow_id}/executions/{execution_id}", response_model=ExecutionRead, summary="Get execution")
async def get_execution(
    workflow_id: UUID, execution_id: UUID, principal: WorkflowReader, service: WorkflowServiceDep
) -> ExecutionRead:
    execution = await service.get_execution(workflow_id, execution_id, principal.tenant_id, principal.team_scope)
    return ExecutionRead.model_validate(execution)


@router.post(
    "/{workflow_id}/executions/{execution_id}/cancel",
    response_model=ExecutionRead,
    summary="Cancel execution",
    description="Idempotent: cancelling a finished execution returns it unchanged.",
)
async def cancel_execution(
    workflow_id: UUID, execution_id: UUID, principal: WorkflowExecutor, service: WorkflowServiceDep
) -> ExecutionRead:
    execution = await service.cancel_execution(
        workflow_id, execution_id, principal.tenant_id, principal.team_scope
    )
    return ExecutionRead.model_validate(execution)


@router.get(
    "/{workflow_id}/executions/{execution_id}/progress",
    response_model=ProgressSnapshot,
    summary="Latest progress snapshot",
)
async def get_execution_progress(
    workflow_id: UUID, execution_id: UUID, principal: WorkflowReader, service: WorkflowServiceDep
) -> ProgressSnapshot:
    return await service.get_progress(workflow_id, execution_id, principal.tenant_id, principal.team_scope)


@router.get(
    "/{workflow_id}/executions/{execution_id}/logs",
    response_model=list[ExecutionLogRead],
    summary="Execution event log",
    description="Events written by the engine while the execution ran, oldest first.",
)
async def get_execution_logs(
    workflow_id: UUID,
    execution_id: UUID,
    principal: WorkflowReader,
    service: WorkflowServiceDep,
    limit: Annotated[int, Query(ge=1, le=1000)] = 200,
) -> list[ExecutionLogRead]:
    logs = await service.get_execution_logs(
        workflow_id, execution_id, principal.tenant_id, principal.team_scope, limit
    )
    return [ExecutionLogRead.model_validate(log) for log in logs]
