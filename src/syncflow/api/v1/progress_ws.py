"""Live execution progress over WebSocket.

Browsers cannot set an Authorization header on a WebSocket handshake, so
the bearer token is passed as the `token` query parameter.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect, status

from src.syncflow.api.dependencies.auth import WORKFLOWS_READ, principal_from_token
from src.syncflow.core.db import get_session
from src.syncflow.core.logging import get_logger
from src.syncflow.models import ExecutionStatus
from src.syncflow.repositories import WorkflowExecutionRepository, WorkflowRepository
from src.syncflow.services.progress import progress_broker, snapshot_from_execution
from src.syncflow.services.workflow_service import is_visible

logger = get_logger(__name__)

router = APIRouter(tags=["progress"])


@router.websocket("/ws/executions/{execution_id}")
async def execution_progress(
    websocket: WebSocket,
    execution_id: UUID,
    token: Annotated[str | None, Query()] = None,
) -> None:
    """Stream snapshots until the execution reaches a terminal status."""
    try:
        principal = principal_from_token(token or "")
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    if not principal.has(WORKFLOWS_READ):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    async with get_session() as session:
        executions = WorkflowExecutionRepository(session)
        execution = await executions.get_for_tenant(execution_id, principal.tenant_id)
        workflow = await WorkflowRepository(session).get_by_id(execution.workflow_id) if execution else None
    # Team-scoped principals only see executions of workflows their teams can see
    if execution is None or workflow is None or not is_visible(workflow, principal.team_scope):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    initial_event = "finished" if execution.is_terminal else "progress"
    if execution.status == ExecutionStatus.CANCELLED.value:
        initial_event = "cancelled"
    initial = snapshot_from_execution(execution, initial_event)
    try:
        async for snapshot in progress_broker.subscribe(execution.id, initial=initial):
            await websocket.send_json(snapshot.to_message())
    except WebSocketDisconnect:
        logger.debug("Progress subscriber disconnected", execution_id=str(execution_id))
        return
    await websocket.close()
