"""Sync Execution Workflow - runs one WorkflowExecution."""

from temporalio import workflow

with workflow.unsafe.imports_passed_through():
    from src.syncflow.temporal.activities import RunExecutionInput, run_sync_execution
    from src.syncflow.temporal.workflows._steps.common import execution_activity_opts


@workflow.defn
class SyncExecutionWorkflow:
    """
    Run a single execution to a terminal status.

    The workflow id is derived from the execution id, so dispatching the
    same execution twice starts at most one run.
    """

    @workflow.run
    async def run(self, input: RunExecutionInput) -> str | None:
        workflow.logger.info(f"Starting sync execution {input.execution_id}")
        return await workflow.execute_activity(
            run_sync_execution,
            input,
            **execution_activity_opts(),  # type: ignore[arg-type]
        )
