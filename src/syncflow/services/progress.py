"""Live execution progress fan-out.

One broker per process. Subscribers get a bounded in-memory queue; the
latest snapshot is mirrored to Redis so another process (or a late
subscriber) can pick it up, and published on a channel that API processes
bridge back into their local broker.
"""

import asyncio
import json
from collections import defaultdict
from collections.abc import AsyncIterator
from typing import Any
from uuid import UUID, uuid4

from pydantic import ValidationError
from redis.exceptions import RedisError

from src.syncflow.core.cache import (
    PROGRESS_CHANNEL_PATTERN,
    cache_progress,
    get_cached_progress,
    publish_progress,
)
from src.syncflow.core.logging import get_logger
from src.syncflow.core.redis import open_pubsub
from src.syncflow.models import WorkflowExecution
from src.syncflow.models.base import utc_now
from src.syncflow.schemas.progress import ProgressCounter, ProgressEvent, ProgressSnapshot

logger = get_logger(__name__)

SUBSCRIBER_QUEUE_SIZE = 100


def snapshot_from_execution(
    execution: WorkflowExecution,
    event: ProgressEvent = "progress",
    *,
    current: int | None = None,
    total: int | None = None,
    meta_total: int | None = None,
    pos_total: int | None = None,
    date: str | None = None,
) -> ProgressSnapshot:
    """Build a snapshot from the persisted execution row.

    Without unit counters, progress falls back to days processed over total days.
    """
    return ProgressSnapshot(
        execution_id=execution.id,
        progress=ProgressCounter(
            current=execution.days_processed if current is None else current,
            total=execution.total_days if total is None else total,
        ),
        meta_processed=execution.meta_fetched,
        meta_total=meta_total,
        pos_processed=execution.pos_fetched,
        pos_total=pos_total,
        status=execution.status_enum,
        event=event,
        date=date,
        timestamp=utc_now(),
    )


class ProgressBroker:
    """In-process pub/sub of progress snapshots keyed by execution id."""

    def __init__(self, queue_size: int = SUBSCRIBER_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._subscribers: dict[str, set[asyncio.Queue[ProgressSnapshot]]] = defaultdict(set)
        self._latest: dict[str, ProgressSnapshot] = {}
        # Tags our own Redis messages so the bridge does not loop them back
        self.origin = uuid4().hex

    def subscriber_count(self, execution_id: UUID | str) -> int:
        return len(self._subscribers.get(str(execution_id), ()))

    async def publish(self, snapshot: ProgressSnapshot, mirror: bool = True) -> None:
        """Deliver a snapshot to local subscribers and, optionally, to Redis.

        Redis failures are logged and ignored; progress is never allowed to
        fail the execution that emits it.
        """
        key = str(snapshot.execution_id)
        self._deliver(key, snapshot)
        if snapshot.is_terminal:
            self._latest.pop(key, None)
        else:
            self._latest[key] = snapshot

        if not mirror:
            return
        message = snapshot.to_message()
        try:
            await cache_progress(key, message)
            await publish_progress(key, {"origin": self.origin, "snapshot": message})
        except RedisError as e:
            logger.warning("Progress mirror failed", execution_id=key, error=str(e))

    def _deliver(self, key: str, snapshot: ProgressSnapshot) -> None:
        for queue in list(self._subscribers.get(key, ())):
            if queue.full():
                # Slow consumer: drop its oldest update, the newest always lands
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
            queue.put_nowait(snapshot)

    async def latest(self, execution_id: UUID | str) -> ProgressSnapshot | None:
        """Latest known snapshot, from memory first and then the Redis mirror."""
        key = str(execution_id)
        if key in self._latest:
            return self._latest[key]
        try:
            cached = await get_cached_progress(key)
        except RedisError as e:
            logger.warning("Progress cache read failed", execution_id=key, error=str(e))
            return None
        if cached is None:
            return None
        try:
            return ProgressSnapshot.model_validate(cached)
        except ValidationError:
            return None

    async def subscribe(
        self, execution_id: UUID | str, initial: ProgressSnapshot | None = None
    ) -> AsyncIterator[ProgressSnapshot]:
        """Yield the latest snapshot, then every update until a terminal one.

        `initial` is used when nothing newer is known (e.g. built from the
        database row). If the first snapshot is already terminal the stream
        ends right after it.
        """
        key = str(execution_id)
        queue: asyncio.Queue[ProgressSnapshot] = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers[key].add(queue)
        try:
            last = await self.latest(key) or initial
            if last is not None:
                yield last
                if last.is_terminal:
                    return
            while True:
                snapshot = await queue.get()
                if snapshot == last:
                    continue
                last = snapshot
                yield snapshot
                if snapshot.is_terminal:
                    return
        finally:
            subscribers = self._subscribers.get(key)
            if subscribers is not None:
                subscribers.discard(queue)
                if not subscribers:
                    self._subscribers.pop(key, None)

    def handle_bridge_message(self, data: Any) -> ProgressSnapshot | None:
        """Decode a Redis channel message published by another process."""
        try:
            payload = json.loads(data) if isinstance(data, (str, bytes)) else data
        except ValueError:
            return None
        if not isinstance(payload, dict) or payload.get("origin") == self.origin:
            return None
        try:
            return ProgressSnapshot.model_validate(payload.get("snapshot"))
        except ValidationError:
            logger.warning("Ignoring malformed progress message")
            return None

    async def run_redis_bridge(self) -> None:
        """Forward progress published by worker processes to local subscribers.

        Runs until cancelled. Returns immediately when Redis is not configured.
        """
        pubsub = await open_pubsub()
        if pubsub is None:
            logger.info("Progress bridge disabled (no Redis)")
            return
        await pubsub.psubscribe(PROGRESS_CHANNEL_PATTERN)
        logger.info("Progress bridge listening", pattern=PROGRESS_CHANNEL_PATTERN)
        try:
            async for message in pubsub.listen():
                if message.get("type") != "pmessage":
                    continue
                snapshot = self.handle_bridge_message(message.get("data"))
                if snapshot is not None:
                    await self.publish(snapshot, mirror=False)
        finally:
            await pubsub.aclose()

    def reset(self) -> None:
        """Drop all state. For testing only."""
        self._subscribers.clear()
        self._latest.clear()


progress_broker = ProgressBroker()
