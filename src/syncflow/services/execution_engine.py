"""Execution engine: drives one WorkflowExecution through its fetch loop.

PENDING -> RUNNING -> COMPLETED | PARTIAL | FAILED | CANCELLED

Provider calls are strictly sequential. Every call is one "attempt"
(one ad account or one POS store for one day); the terminal status is
derived from how many attempts succeeded and failed.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Protocol
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.syncflow.core.config import Settings, get_settings
from src.syncflow.core.exceptions import InvalidRangeError, ProviderError
from src.syncflow.core.logging import bind_execution_context, get_logger, unbind_execution_context
from src.syncflow.models import (
    ExecutionStatus,
    IntegrationProvider,
    SyncSource,
    WorkflowExecution,
    WorkflowExecutionLog,
)
from src.syncflow.models.base import elapsed_ms, utc_now
from src.syncflow.repositories import (
    IntegrationRepository,
    WorkflowExecutionLogRepository,
    WorkflowExecutionRepository,
    WorkflowRepository,
)
from src.syncflow.schemas.progress import ProgressEvent, ProgressSnapshot
from src.syncflow.schemas.workflow import DateRangeSpec, WorkflowConfig
from src.syncflow.services.date_range import bounds, resolve_dates
from src.syncflow.services.ingest import MetaInsightIngestor, PosOrderIngestor
from src.syncflow.services.progress import ProgressBroker, progress_broker, snapshot_from_execution
from src.syncflow.services.scheduler import reschedule

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class InsightsProvider(Protocol):
    async def fetch_insights(
        self, account_id: str, day: date, access_token: str
    ) -> list[dict[str, Any]]: ...


class OrdersProvider(Protocol):
    async def fetch_orders(self, shop_id: str, api_key: str, day: date) -> list[dict[str, Any]]: ...


class CancelRegistry:
    """Process-local cancel flags, checked alongside the persisted flag.

    Lets a cancel issued in the same process take effect without waiting
    for the next database read.
    """

    def __init__(self) -> None:
        self._requested: set[str] = set()

    def request(self, execution_id: UUID | str) -> None:
        self._requested.add(str(execution_id))

    def is_requested(self, execution_id: UUID | str) -> bool:
        return str(execution_id) in self._requested

    def clear(self, execution_id: UUID | str) -> None:
        self._requested.discard(str(execution_id))

    def reset(self) -> None:
        """Drop all flags. For testing only."""
        self._requested.clear()


cancel_registry = CancelRegistry()


@dataclass
class SyncUnit:
    """One provider call target: an ad account or a POS store."""

    source: SyncSource
    key: str
    secret: str | None = None


@dataclass
class SourcePlan:
    source: SyncSource
    units: list[SyncUnit] = field(default_factory=list)
    delay_seconds: float = 0.0
    # Recorded once per day instead of calling the provider
    unavailable: str | None = None


@dataclass
class RunState:
    days_processed: int = 0
    meta_fetched: int = 0
    pos_fetched: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)
    succeeded: int = 0
    failed: int = 0
    units_done: int = 0
    units_total: int = 0

    def add_error(self, day: date, source: SyncSource | str, message: str, **ref: str) -> None:
        entry: dict[str, Any] = {"date": day.isoformat(), "source": str(getattr(source, "value", source))}
        entry.update(ref)
        entry["error"] = message
        self.errors.append(entry)
        self.failed += 1

    def counters(self) -> dict[str, Any]:
        return {
            "days_processed": self.days_processed,
            "meta_fetched": self.meta_fetched,
            "pos_fetched": self.pos_fetched,
            "errors": list(self.errors),
        }

    def terminal_status(self) -> ExecutionStatus:
        if not self.errors:
            return ExecutionStatus.COMPLETED
        if self.succeeded == 0:
            return ExecutionStatus.FAILED
        return ExecutionStatus.PARTIAL


def _event_message(snapshot: ProgressSnapshot) -> str:
    match snapshot.event:
        case "started":
            return f"Execution started, {snapshot.progress.total} provider calls planned"
        case "progress":
            return f"Processed {snapshot.progress.current}/{snapshot.progress.total} for {snapshot.date}"
        case "date_completed":
            return f"Finished {snapshot.date}"
        case "cancelled":
            return "Execution cancelled"
    return f"Execution finished with status {snapshot.status.value}"


def _event_level(snapshot: ProgressSnapshot) -> str:
    if snapshot.event != "finished":
        return "info"
    return {ExecutionStatus.FAILED: "error", ExecutionStatus.PARTIAL: "warn"}.get(snapshot.status, "info")


class ExecutionStopped(Exception):
    """The execution left RUNNING from outside (cancel or reconciler)."""

    def __init__(self, cancelled: bool):
        super().__init__("cancelled" if cancelled else "no longer running")
        self.cancelled = cancelled


class ExecutionEngine:
    """Runs a single PENDING execution to a terminal status.

    The engine commits after every provider call so progress, counters and
    the cancel flag are visible to other transactions while it runs.
    """

    def __init__(
        self,
        session: AsyncSession,
        meta: InsightsProvider,
        pos: OrdersProvider,
        *,
        broker: ProgressBroker = progress_broker,
        registry: CancelRegistry = cancel_registry,
        settings: Settings | None = None,
        sleep: Sleep = asyncio.sleep,
        on_finished: Callable[[WorkflowExecution], Awaitable[None]] | None = None,
    ):
        self.session = session
        self.meta = meta
        self.pos = pos
        self.broker = broker
        self.registry = registry
        self.settings = settings or get_settings()
        self.sleep = sleep
        self.on_finished = on_finished
        self.executions = WorkflowExecutionRepository(session)
        self.workflows = WorkflowRepository(session)
        self.integrations = IntegrationRepository(session)
        self.execution_logs = WorkflowExecutionLogRepository(session)
        self._log_seq = 0

    async def run(self, execution_id: UUID) -> ExecutionStatus | None:
        """Drive the execution. Returns its final status, or None if it does not exist.

        Executions that are not PENDING are left untouched.
        """
        execution = await self.executions.get_by_id(execution_id)
        if execution is None:
            logger.warning("Execution not found", execution_id=str(execution_id))
            return None
        if execution.status != ExecutionStatus.PENDING.value:
            logger.info(
                "Execution not pending, skipping",
                execution_id=str(execution_id),
                status=execution.status,
            )
            return execution.status_enum

        bind_execution_context(execution.id, execution.workflow_id)
        try:
            return await self._run(execution)
        finally:
            self.registry.clear(execution.id)
            unbind_execution_context()

    async def _run(self, execution: WorkflowExecution) -> ExecutionStatus:
        workflow = await self.workflows.get_by_id(execution.workflow_id)
        tz = self.settings.sync_timezone

        if workflow is None:
            return await self._fail_before_start(execution, "Workflow no longer exists")
        workflow_id = workflow.id
        try:
            config = WorkflowConfig.model_validate(workflow.config)
            spec = self._range_spec(execution, config)
            days = resolve_dates(spec, execution.created_at, tz)
        except (ValidationError, InvalidRangeError) as e:
            return await self._fail_before_start(execution, str(e))

        since, until = bounds(days)
        started_at = utc_now()
        won = await self.executions.transition(
            execution.id,
            [ExecutionStatus.PENDING],
            ExecutionStatus.RUNNING,
            started_at=started_at,
            total_days=len(days),
            date_range_since=since,
            date_range_until=until,
        )
        await self.session.commit()
        if not won:
            await self.session.refresh(execution)
            logger.info("Execution left PENDING before start", status=execution.status)
            return execution.status_enum
        await self.session.refresh(execution)
        logger.info("Execution started", days=len(days), since=since, until=until)

        state = RunState()
        plans: list[SourcePlan] = []
        try:
            plans = await self._plan_sources(execution.tenant_id, config)
            state.units_total = len(days) * sum(max(len(p.units), 1) for p in plans)
            await self._publish(execution, state, plans, "started")
            await self._loop(execution, days, plans, state)
            final = state.terminal_status()
        except ExecutionStopped as stop:
            if not stop.cancelled:
                await self.session.refresh(execution)
                logger.warning("Execution terminated externally", status=execution.status)
                return execution.status_enum
            final = ExecutionStatus.CANCELLED
        except Exception as e:
            logger.exception("Execution crashed")
            await self.session.rollback()
            await self.session.refresh(execution)
            state.errors.append({"source": "engine", "error": str(e) or type(e).__name__})
            self._record_error(execution, state)
            final = ExecutionStatus.FAILED

        await self._finish(execution, workflow_id, state, final, plans)
        return final

    def _range_spec(self, execution: WorkflowExecution, config: WorkflowConfig) -> DateRangeSpec:
        """Manual triggers may pin an explicit window on the execution row."""
        if execution.date_range_since and execution.date_range_until:
            return DateRangeSpec(
                type="absolute",
                since=date.fromisoformat(execution.date_range_since),
                until=date.fromisoformat(execution.date_range_until),
            )
        return config.effective_date_range()

    async def _plan_sources(self, tenant_id: UUID, config: WorkflowConfig) -> list[SourcePlan]:
        plans: list[SourcePlan] = []
        rate = config.rate_limit

        if config.sources.meta.enabled:
            delay = rate.meta_delay_ms if rate.meta_delay_ms is not None else self.settings.meta_delay_ms_default
            plan = SourcePlan(SyncSource.META, delay_seconds=delay / 1000)
            creds = await self.integrations.get_credentials(tenant_id, IntegrationProvider.META)
            token = (creds or {}).get("accessToken") or (creds or {}).get("access_token")
            accounts = await self.integrations.list_ad_accounts(tenant_id)
            if not token:
                plan.unavailable = "Meta integration not configured"
            elif not accounts:
                plan.unavailable = "No enabled Meta ad accounts"
            else:
                plan.units = [SyncUnit(SyncSource.META, a.account_id, token) for a in accounts]
            plans.append(plan)

        if config.sources.pos.enabled:
            delay = rate.pos_delay_ms if rate.pos_delay_ms is not None else self.settings.pos_delay_ms_default
            plan = SourcePlan(SyncSource.POS, delay_seconds=delay / 1000)
            stores = await self.integrations.list_pos_stores(tenant_id)
            if not stores:
                plan.unavailable = "No enabled POS stores"
            else:
                plan.units = [SyncUnit(SyncSource.POS, s.shop_id, s.api_key) for s in stores]
            plans.append(plan)

        return plans

    async def _loop(
        self,
        execution: WorkflowExecution,
        days: list[date],
        plans: list[SourcePlan],
        state: RunState,
    ) -> None:
        pending_delay = 0.0
        for day in days:
            for plan in plans:
                if plan.unavailable:
                    state.add_error(day, plan.source, plan.unavailable)
                    self._record_error(execution, state, level="warn")
                    state.units_done += 1
                    await self._save(execution, state)
                    continue

                for unit in plan.units:
                    await self._check_cancel(execution.id)
                    if pending_delay > 0:
                        await self.sleep(pending_delay)
                        await self._check_cancel(execution.id)

                    await self._attempt(execution, day, unit, state)
                    pending_delay = plan.delay_seconds
                    state.units_done += 1
                    await self._save(execution, state)
                    await self._publish(execution, state, plans, "progress", day)

            state.days_processed += 1
            await self._save(execution, state)
            await self._publish(execution, state, plans, "date_completed", day)

    async def _attempt(
        self, execution: WorkflowExecution, day: date, unit: SyncUnit, state: RunState
    ) -> None:
        """One provider call plus upsert. Failures are recorded, never raised."""
        tenant_id = execution.tenant_id
        ref = {"accountId": unit.key} if unit.source is SyncSource.META else {"shopId": unit.key}
        try:
            if unit.source is SyncSource.META:
                rows = await self.meta.fetch_insights(unit.key, day, unit.secret or "")
                await MetaInsightIngestor(self.session).ingest_fetched(tenant_id, unit.key, rows, day)
                state.meta_fetched += len(rows)
            else:
                rows = await self.pos.fetch_orders(unit.key, unit.secret or "", day)
                await PosOrderIngestor(self.session, self.settings.sync_timezone).ingest_fetched(
                    tenant_id, rows
                )
                state.pos_fetched += len(rows)
            await self.session.commit()
            state.succeeded += 1
            logger.info("Fetched", source=unit.source.value, unit=unit.key, day=day.isoformat(), records=len(rows))
        except ProviderError as e:
            state.add_error(day, unit.source, str(e), **ref)
            self._record_error(execution, state)
            logger.warning("Provider call failed", source=unit.source.value, unit=unit.key, day=day.isoformat(), error=str(e))
        except SQLAlchemyError as e:
            await self.session.rollback()
            # Rollback expires every loaded row; reload before the next read
            await self.session.refresh(execution)
            state.add_error(day, unit.source, f"Failed to store records: {e}", **ref)
            self._record_error(execution, state)
            logger.error("Upsert failed", source=unit.source.value, unit=unit.key, day=day.isoformat(), error=str(e))

    async def _check_cancel(self, execution_id: UUID) -> None:
        if self.registry.is_requested(execution_id):
            raise ExecutionStopped(cancelled=True)
        control = await self.executions.read_control_state(execution_id)
        if control is None:
            raise ExecutionStopped(cancelled=False)
        status, cancel_requested = control
        if cancel_requested or status == ExecutionStatus.CANCELLED.value:
            raise ExecutionStopped(cancelled=True)
        if status != ExecutionStatus.RUNNING.value:
            raise ExecutionStopped(cancelled=False)

    async def _save(self, execution: WorkflowExecution, state: RunState) -> None:
        """Persist counters; a RUNNING-guarded write so terminal rows stay frozen."""
        still_running = await self.executions.transition(
            execution.id, [ExecutionStatus.RUNNING], ExecutionStatus.RUNNING, **state.counters()
        )
        await self.session.commit()
        if not still_running:
            control = await self.executions.read_control_state(execution.id)
            raise ExecutionStopped(cancelled=bool(control and control[0] == ExecutionStatus.CANCELLED.value))
        for key, value in state.counters().items():
            setattr(execution, key, value)

    async def _publish(
        self,
        execution: WorkflowExecution,
        state: RunState,
        plans: list[SourcePlan] | None,
        event: ProgressEvent,
        day: date | None = None,
        status: ExecutionStatus | None = None,
    ) -> None:
        totals = {p.source: len(p.units) for p in plans or []}
        snapshot = snapshot_from_execution(
            execution,
            event,
            current=state.units_done,
            total=state.units_total,
            meta_total=totals.get(SyncSource.META),
            pos_total=totals.get(SyncSource.POS),
            date=day.isoformat() if day else None,
        )
        if status is not None:
            snapshot.status = status
        await self.broker.publish(snapshot)
        self._record(
            execution, event, _event_message(snapshot), _event_level(snapshot), snapshot.to_message()
        )
        await self.session.commit()

    def _record(
        self,
        execution: WorkflowExecution,
        event: str,
        message: str,
        level: str = "info",
        details: dict[str, Any] | None = None,
    ) -> None:
        """Queue an event log row; it is written with the next commit."""
        self._log_seq += 1
        self.execution_logs.add(
            WorkflowExecutionLog(
                execution_id=execution.id,
                tenant_id=execution.tenant_id,
                seq=self._log_seq,
                level=level,
                event=event,
                message=message,
                details=details or {},
            )
        )

    def _record_error(self, execution: WorkflowExecution, state: RunState, level: str = "error") -> None:
        error = state.errors[-1]
        self._record(execution, "error", error["error"], level, error)

    async def _fail_before_start(self, execution: WorkflowExecution, message: str) -> ExecutionStatus:
        now = utc_now()
        errors = [{"source": "engine", "error": message}]
        won = await self.executions.transition(
            execution.id,
            [ExecutionStatus.PENDING],
            ExecutionStatus.FAILED,
            errors=errors,
            started_at=now,
            completed_at=now,
            duration_ms=0,
        )
        await self.session.commit()
        await self.session.refresh(execution)
        if won:
            logger.warning("Execution failed before start", error=message)
            await self._publish(execution, RunState(errors=errors), None, "finished")
            await self._after_terminal(execution)
        return execution.status_enum

    async def _finish(
        self,
        execution: WorkflowExecution,
        workflow_id: UUID,
        state: RunState,
        final: ExecutionStatus,
        plans: list[SourcePlan] | None,
    ) -> None:
        completed_at = utc_now()
        duration = elapsed_ms(execution.started_at or completed_at, completed_at)
        won = await self.executions.transition(
            execution.id,
            [ExecutionStatus.RUNNING],
            final,
            completed_at=completed_at,
            duration_ms=duration,
            **state.counters(),
        )
        await self.session.commit()
        await self.session.refresh(execution)
        if not won:
            logger.warning("Execution already terminal", status=execution.status)
            return

        logger.info(
            "Execution finished",
            status=final.value,
            duration_ms=duration,
            meta_fetched=state.meta_fetched,
            pos_fetched=state.pos_fetched,
            errors=len(state.errors),
        )
        await self._reschedule(workflow_id, completed_at)
        event: ProgressEvent = "cancelled" if final is ExecutionStatus.CANCELLED else "finished"
        await self._publish(execution, state, plans, event)
        await self._after_terminal(execution)

    async def _reschedule(self, workflow_id: UUID, completed_at: datetime) -> None:
        workflow = await self.workflows.get_for_update(workflow_id)
        if workflow is None:
            return
        reschedule(workflow, completed_at, self.settings.sync_timezone)
        await self.session.commit()

    async def _after_terminal(self, execution: WorkflowExecution) -> None:
        if self.on_finished is None:
            return
        try:
            await self.on_finished(execution)
        except Exception:
            logger.exception("Post-run hook failed")
