"""
Temporal Worker - Separate process from API.

Run with:
    uv run python -m src.syncflow.temporal.worker                     # Development mode (all workloads)
    uv run python -m src.syncflow.temporal.worker --workload sync     # Sync executions only
    uv run python -m src.syncflow.temporal.worker --workload webhooks # Webhook processing only
    uv run python -m src.syncflow.temporal.worker --workload jobs     # Scheduler + reconciler
"""

import argparse
import asyncio
from collections.abc import Sequence

import uvicorn
from fastapi import FastAPI
from temporalio.client import Client
from temporalio.exceptions import WorkflowAlreadyStartedError
from temporalio.worker import Worker

from src.syncflow.core.config import get_settings
from src.syncflow.core.db import dispose_engine
from src.syncflow.core.logging import get_logger, setup_logging
from src.syncflow.core.redis import close_redis
from src.syncflow.temporal.activities import (
    process_webhook_log,
    reconcile_stale_executions,
    run_sync_execution,
    scheduler_tick,
)
from src.syncflow.temporal.routing import QueueKind, route_for_system_job, task_queue_name
from src.syncflow.temporal.workflows import (
    RECONCILER_WORKFLOW_ID,
    SCHEDULER_WORKFLOW_ID,
    ExecutionReconcileWorkflow,
    LoopInput,
    SyncExecutionWorkflow,
    WebhookProcessingWorkflow,
    WorkflowSchedulerWorkflow,
)

logger = get_logger(__name__)

WORKER_HEALTH_PORT = 8001
RECONCILE_INTERVAL_SECONDS = 300
WORKLOADS = ("sync", "webhooks", "jobs", "all")


def parse_args() -> argparse.Namespace:
    """Parse CLI arguments for worker workload selection."""
    parser = argparse.ArgumentParser(description="Temporal worker")
    parser.add_argument(
        "--workload",
        choices=WORKLOADS,
        default="all",
        help="Worker workload type (default: all for development mode)",
    )
    return parser.parse_args()


def task_queues_for(workload: str, prefix: str, shards: int) -> list[str]:
    """Task queues polled by a workload, for wiring and health reporting."""
    queues: list[str] = []
    if workload in ("sync", "all"):
        queues += [task_queue_name(prefix, QueueKind.SYNC, s) for s in range(shards)]
    if workload in ("webhooks", "all"):
        queues += [task_queue_name(prefix, QueueKind.WEBHOOKS, s) for s in range(shards)]
    if workload in ("jobs", "all"):
        queues.append(task_queue_name(prefix, QueueKind.JOBS, 0))
    return queues


def create_worker(
    client: Client,
    task_queue: str,
    workflows: Sequence[type],
    activities: Sequence[object],
    *,
    max_concurrent_activities: int = 100,
) -> Worker:
    return Worker(
        client,
        task_queue=task_queue,
        workflows=list(workflows),
        activities=list(activities),  # type: ignore[arg-type]
        max_concurrent_activities=max_concurrent_activities,
    )


async def run_sync_workers(client: Client) -> None:
    """One worker per shard. Low activity concurrency: runs are long and paced."""
    settings = get_settings()
    workers = [
        create_worker(
            client,
            task_queue_name(settings.temporal_queue_prefix, QueueKind.SYNC, shard),
            workflows=[SyncExecutionWorkflow],
            activities=[run_sync_execution],
            max_concurrent_activities=10,
        )
        for shard in range(settings.temporal_queue_shards)
    ]
    logger.info(f"Starting {len(workers)} sync worker(s)")
    await asyncio.gather(*(w.run() for w in workers))


async def run_webhook_workers(client: Client) -> None:
    settings = get_settings()
    workers = [
        create_worker(
            client,
            task_queue_name(settings.temporal_queue_prefix, QueueKind.WEBHOOKS, shard),
            workflows=[WebhookProcessingWorkflow],
            activities=[process_webhook_log],
            max_concurrent_activities=50,
        )
        for shard in range(settings.temporal_queue_shards)
    ]
    logger.info(f"Starting {len(workers)} webhook worker(s)")
    await asyncio.gather(*(w.run() for w in workers))


async def start_system_workflows(client: Client) -> None:
    """Start the scheduler and reconciler loops if they are not already running."""
    settings = get_settings()
    route = route_for_system_job(namespace=settings.temporal_namespace, prefix=settings.temporal_queue_prefix)
    loops = [
        (WorkflowSchedulerWorkflow.run, SCHEDULER_WORKFLOW_ID, settings.scheduler_poll_seconds),
        (ExecutionReconcileWorkflow.run, RECONCILER_WORKFLOW_ID, RECONCILE_INTERVAL_SECONDS),
    ]
    for run, workflow_id, interval in loops:
        try:
            await client.start_workflow(
                run,
                LoopInput(interval_seconds=interval),
                id=workflow_id,
                task_queue=route.task_queue,
            )
            logger.info(f"Started system workflow {workflow_id}")
        except WorkflowAlreadyStartedError:
            logger.info(f"System workflow {workflow_id} already running")


async def run_jobs_workers(client: Client) -> None:
    """Scheduler and reconciler loops on the single jobs queue."""
    settings = get_settings()
    tq = task_queue_name(settings.temporal_queue_prefix, QueueKind.JOBS, 0)
    worker = create_worker(
        client,
        tq,
        workflows=[WorkflowSchedulerWorkflow, ExecutionReconcileWorkflow],
        activities=[scheduler_tick, reconcile_stale_executions],
        max_concurrent_activities=5,
    )
    await start_system_workflows(client)
    logger.info(f"Starting jobs worker on queue: {tq}")
    await worker.run()


def create_health_app(workload: str, task_queues: list[str]) -> FastAPI:
    health_app = FastAPI(title="Temporal Worker Health")

    @health_app.get("/health")
    async def health() -> dict[str, str | list[str]]:
        return {
            "status": "healthy",
            "service": "temporal-worker",
            "workload": workload,
            "task_queues": task_queues,
        }

    @health_app.get("/ready")
    async def ready() -> dict[str, str]:
        return {"status": "ready"}

    return health_app


async def run_health_server(workload: str, task_queues: list[str], port: int = WORKER_HEALTH_PORT) -> None:
    """Run a lightweight health server for K8s probes."""
    config = uvicorn.Config(
        create_health_app(workload, task_queues),
        host="0.0.0.0",
        port=port,
        log_level="warning",
    )
    server = uvicorn.Server(config)
    logger.info(f"Starting health server on port {port} (workload: {workload})")
    await server.serve()


async def main() -> None:
    args = parse_args()
    settings = get_settings()
    setup_logging(settings.debug)

    client = await Client.connect(
        settings.temporal_host,
        namespace=settings.temporal_namespace,
    )
    task_queues = task_queues_for(args.workload, settings.temporal_queue_prefix, settings.temporal_queue_shards)
    logger.info(f"Starting worker with workload: {args.workload}")
    logger.info(f"Polling task queues: {', '.join(task_queues)}")

    runners = {
        "sync": [run_sync_workers],
        "webhooks": [run_webhook_workers],
        "jobs": [run_jobs_workers],
        "all": [run_sync_workers, run_webhook_workers, run_jobs_workers],
    }[args.workload]

    try:
        health_task = asyncio.create_task(run_health_server(args.workload, task_queues))
        await asyncio.gather(*(runner(client) for runner in runners))
        await health_task
    finally:
        await close_redis()
        await dispose_engine()


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
