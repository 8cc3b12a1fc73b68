"""
Long-running system workflows: the workflow scheduler and the execution
reconciler.

Both loop on a fixed interval and continue-as-new after a bounded number
of iterations to keep their event history small.
"""

from dataclasses import dataclass
from datetime import timedelta

from temporalio import workflow
from temporalio.exceptions import ActivityError

with workflow.unsafe.imports_passed_through():
    from src.syncflow.temporal.activities import reconcile_stale_executions, scheduler_tick
    from src.syncflow.temporal.workflows._steps.common import short_activity_opts

SCHEDULER_WORKFLOW_ID = "syncflow-workflow-scheduler"
RECONCILER_WORKFLOW_ID = "syncflow-execution-reconciler"
ITERATIONS_PER_RUN = 500


@dataclass
class LoopInput:
    interval_seconds: int = 30
    iterations: int = ITERATIONS_PER_RUN


@workflow.defn
class WorkflowSchedulerWorkflow:
    """Calls the scheduler tick every `interval_seconds`."""

    @workflow.run
    async def run(self, input: LoopInput) -> None:
        for _ in range(input.iterations):
            try:
                fired = await workflow.execute_activity(scheduler_tick, **short_activity_opts())  # type: ignore[arg-type]
                if fired:
                    workflow.logger.info(f"Scheduler tick fired {fired} workflow(s)")
            except ActivityError as e:
                workflow.logger.warning(f"Scheduler tick failed: {e}")
            await workflow.sleep(timedelta(seconds=input.interval_seconds))
        workflow.continue_as_new(input)


@workflow.defn
class ExecutionReconcileWorkflow:
    """Periodically recovers executions abandoned by crashed workers."""

    @workflow.run
    async def run(self, input: LoopInput) -> None:
        for _ in range(input.iterations):
            try:
                await workflow.execute_activity(reconcile_stale_executions, **short_activity_opts())  # type: ignore[arg-type]
            except ActivityError as e:
                workflow.logger.warning(f"Reconciliation failed: {e}")
            await workflow.sleep(timedelta(seconds=input.interval_seconds))
        workflow.continue_as_new(input)
