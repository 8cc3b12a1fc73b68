"""In-flight work tracking for graceful shutdown.

Tracks HTTP requests and inline background jobs (executions and webhook
processing started without Temporal) so the lifespan can drain both.
"""

import asyncio
from collections import Counter
from collections.abc import AsyncGenerator, Coroutine
from contextlib import asynccontextmanager
from typing import Any

from src.syncflow.core.logging import get_logger

logger = get_logger(__name__)


class WorkTracker:
    """Counts units of in-flight work, grouped by kind."""

    def __init__(self) -> None:
        self._counts: Counter[str] = Counter()
        self._shutting_down = False
        self._lock = asyncio.Lock()
        self._drain_event = asyncio.Event()
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def is_shutting_down(self) -> bool:
        return self._shutting_down

    @property
    def in_flight_count(self) -> int:
        return sum(self._counts.values())

    def count(self, kind: str) -> int:
        return self._counts[kind]

    @asynccontextmanager
    async def track(self, kind: str = "request") -> AsyncGenerator[None]:
        async with self._lock:
            self._counts[kind] += 1
        try:
            yield
        finally:
            async with self._lock:
                self._counts[kind] -= 1
                if self.in_flight_count == 0 and self._shutting_down:
                    logger.info("All in-flight work drained")
                    self._drain_event.set()

    def spawn(self, coro: Coroutine[Any, Any, Any], kind: str) -> asyncio.Task[Any]:
        """Run a background job as a tracked task.

        The task reference is held until it finishes so it is not garbage collected.
        """

        async def _runner() -> Any:
            async with self.track(kind):
                return await coro

        task = asyncio.create_task(_runner())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def start_shutdown(self) -> None:
        logger.info("Work tracker entering shutdown mode", in_flight=dict(self._counts))
        self._shutting_down = True
        async with self._lock:
            if self.in_flight_count == 0:
                self._drain_event.set()

    async def wait_for_drain(self, timeout: float) -> bool:
        """Wait for all in-flight work. Returns False on timeout."""
        try:
            await asyncio.wait_for(self._drain_event.wait(), timeout=timeout)
            return True
        except TimeoutError:
            logger.warning(
                f"Shutdown timeout after {timeout}s - {self.in_flight_count} units still in-flight"
            )
            return False

    def reset(self) -> None:
        """Reset tracker state. For testing only."""
        self._counts.clear()
        self._shutting_down = False
        self._lock = asyncio.Lock()
        self._drain_event = asyncio.Event()
        self._tasks.clear()


work_tracker = WorkTracker()
