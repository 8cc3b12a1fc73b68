"""Sync execution activities."""

from dataclasses import dataclass
from uuid import UUID

from temporalio import activity


@dataclass
class RunExecutionInput:
    execution_id: str
    tenant_id: str


@activity.defn
async def run_sync_execution(input: RunExecutionInput) -> str | None:
    """
    Run one workflow execution through the engine.

    Idempotency: the engine only starts executions that are still PENDING,
    so a retried activity after the run reached RUNNING or a terminal status
    returns that status without calling any provider again.

    Returns:
        Final execution status value, or None if the execution is gone
    """
    from src.syncflow.services.jobs import run_execution_job

    activity.logger.info(f"Running sync execution {input.execution_id} (tenant {input.tenant_id})")
    status = await run_execution_job(UUID(input.execution_id))
    activity.logger.info(f"Sync execution {input.execution_id} finished with status {status}")
    return status
