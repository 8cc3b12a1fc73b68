"""Scheduler and reconciler activities."""

from temporalio import activity


@activity.defn
async def scheduler_tick() -> int:
    """Fire every due workflow once. Returns the number of executions created."""
    from src.syncflow.services.jobs import run_scheduler_tick

    return await run_scheduler_tick()


@activity.defn
async def reconcile_stale_executions() -> dict[str, int]:
    """Fail abandoned RUNNING executions and redispatch stuck PENDING ones."""
    from src.syncflow.services.jobs import reconcile_executions

    result = await reconcile_executions()
    if result["failed"] or result["redispatched"]:
        activity.logger.warning(
            f"Reconciled executions: {result['failed']} failed, {result['redispatched']} redispatched"
        )
    return result
