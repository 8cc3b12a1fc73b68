"""Entry points for background jobs.

Each job opens its own session and outbound HTTP client. Temporal
activities call these, and so does the dispatcher's inline fallback.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from src.syncflow.core.config import Settings, get_settings
from src.syncflow.core.db import get_session
from src.syncflow.core.logging import get_logger
from src.syncflow.models import WorkflowExecution
from src.syncflow.repositories import WorkflowExecutionRepository
from src.syncflow.services.dispatch import get_dispatcher
from src.syncflow.services.execution_engine import ExecutionEngine
from src.syncflow.services.providers import MetaAdsProvider, PancakePosProvider, build_http_client
from src.syncflow.services.reconciler import ExecutionReconciler
from src.syncflow.services.scheduler import SchedulerService
from src.syncflow.services.webhook_processor import WebhookProcessor

logger = get_logger(__name__)


@asynccontextmanager
async def open_providers(settings: Settings) -> AsyncIterator[tuple[MetaAdsProvider, PancakePosProvider]]:
    async with build_http_client(settings.provider_timeout_seconds) as client:
        meta = MetaAdsProvider(
            client,
            graph_url=settings.meta_graph_url,
            api_version=settings.meta_api_version,
            timezone=settings.sync_timezone,
            max_rate_limit_retries=settings.meta_max_rate_limit_retries,
        )
        pos = PancakePosProvider(
            client,
            api_url=settings.pancake_api_url,
            timezone=settings.sync_timezone,
            page_size=settings.pancake_page_size,
            retry_backoff_ms=settings.pos_retry_backoff_ms,
        )
        yield meta, pos


async def dispatch_next_pending(finished: WorkflowExecution) -> None:
    """Start the tenant's oldest PENDING execution if it was never handed to a worker."""
    async with get_session() as session:
        nxt = await WorkflowExecutionRepository(session).next_pending_for_tenant(finished.tenant_id)
        if nxt is None or nxt.id == finished.id or nxt.queue_job_id:
            return
        nxt.queue_job_id = await get_dispatcher().dispatch_execution(nxt)
        await session.commit()


async def run_execution_job(execution_id: UUID) -> str | None:
    """Run one execution to completion. Returns the final status value."""
    settings = get_settings()
    async with get_session() as session, open_providers(settings) as (meta, pos):
        engine = ExecutionEngine(session, meta, pos, settings=settings, on_finished=dispatch_next_pending)
        status = await engine.run(execution_id)
    return status.value if status else None


async def process_webhook_job(log_id: UUID) -> str | None:
    """Process one queued webhook log. Returns the process status value."""
    settings = get_settings()
    async with get_session() as session, build_http_client(settings.webhook_relay_timeout_seconds) as client:
        result = await WebhookProcessor(session, client, settings=settings).process(log_id)
    return result.process_status.value if result else None


async def run_scheduler_tick() -> int:
    """One scheduler pass. Returns the number of executions created."""
    async with get_session() as session:
        created = await SchedulerService(session, get_dispatcher()).tick()
    return len(created)


async def reconcile_executions() -> dict[str, int]:
    async with get_session() as session:
        return await ExecutionReconciler(session, get_dispatcher()).run()
