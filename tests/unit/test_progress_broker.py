"""Tests for the in-process progress broker and its Redis mirror."""

import asyncio
import json
from uuid import uuid4

import pytest

from src.syncflow.core.cache import progress_key
from src.syncflow.models import ExecutionStatus
from src.syncflow.schemas.progress import ProgressCounter, ProgressSnapshot
from src.syncflow.services.progress import ProgressBroker

pytestmark = pytest.mark.unit


def snap(execution_id, current: int, status: ExecutionStatus = ExecutionStatus.RUNNING, total: int = 10):
    return ProgressSnapshot(
        execution_id=execution_id,
        progress=ProgressCounter(current=current, total=total),
        status=status,
        event="finished" if status.is_terminal else "progress",
    )


async def drain(stream) -> list[ProgressSnapshot]:
    return [s async for s in stream]


class TestSubscribe:
    async def test_initial_then_updates_until_terminal(self):
        broker = ProgressBroker()
        execution_id = uuid4()
        stream = broker.subscribe(execution_id, initial=snap(execution_id, 0))

        first = await anext(stream)
        assert first.progress.current == 0
        assert broker.subscriber_count(execution_id) == 1

        await broker.publish(snap(execution_id, 1), mirror=False)
        await broker.publish(snap(execution_id, 2, ExecutionStatus.COMPLETED), mirror=False)

        rest = await drain(stream)
        assert [s.progress.current for s in rest] == [1, 2]
        assert rest[-1].status == ExecutionStatus.COMPLETED
        assert broker.subscriber_count(execution_id) == 0

    async def test_terminal_initial_ends_stream(self):
        broker = ProgressBroker()
        execution_id = uuid4()
        stream = broker.subscribe(execution_id, initial=snap(execution_id, 5, ExecutionStatus.FAILED))

        assert [s.status for s in await drain(stream)] == [ExecutionStatus.FAILED]

    async def test_latest_snapshot_preferred_over_initial(self):
        broker = ProgressBroker()
        execution_id = uuid4()
        await broker.publish(snap(execution_id, 4), mirror=False)

        stream = broker.subscribe(execution_id, initial=snap(execution_id, 0))
        first = await anext(stream)
        await stream.aclose()

        assert first.progress.current == 4

    async def test_subscriber_without_initial_waits_for_publish(self):
        broker = ProgressBroker()
        execution_id = uuid4()
        task = asyncio.create_task(drain(broker.subscribe(execution_id)))

        while broker.subscriber_count(execution_id) == 0:
            await asyncio.sleep(0)
        await broker.publish(snap(execution_id, 10, ExecutionStatus.COMPLETED), mirror=False)

        received = await asyncio.wait_for(task, timeout=2)
        assert [s.status for s in received] == [ExecutionStatus.COMPLETED]

    async def test_slow_consumer_keeps_newest(self):
        broker = ProgressBroker(queue_size=2)
        execution_id = uuid4()
        stream = broker.subscribe(execution_id, initial=snap(execution_id, 0))
        await anext(stream)

        for i in range(1, 5):
            await broker.publish(snap(execution_id, i), mirror=False)
        await broker.publish(snap(execution_id, 5, ExecutionStatus.COMPLETED), mirror=False)

        rest = await drain(stream)
        assert [s.progress.current for s in rest] == [4, 5]

    async def test_other_executions_not_delivered(self):
        broker = ProgressBroker()
        mine, other = uuid4(), uuid4()
        stream = broker.subscribe(mine, initial=snap(mine, 0))
        await anext(stream)

        await broker.publish(snap(other, 3, ExecutionStatus.COMPLETED), mirror=False)
        await broker.publish(snap(mine, 1, ExecutionStatus.COMPLETED), mirror=False)

        assert [s.execution_id for s in await drain(stream)] == [mine]

    async def test_terminal_clears_latest(self):
        broker = ProgressBroker()
        execution_id = uuid4()
        await broker.publish(snap(execution_id, 1), mirror=False)
        await broker.publish(snap(execution_id, 2, ExecutionStatus.CANCELLED), mirror=False)

        assert await broker.latest(execution_id) is None


class TestRedisMirror:
    async def test_publish_caches_and_broadcasts(self, mock_redis):
        broker = ProgressBroker()
        execution_id = uuid4()
        pubsub = mock_redis.pubsub()
        await pubsub.subscribe(f"workflow:execution:{execution_id}:events")

        await broker.publish(snap(execution_id, 3))

        cached = json.loads(await mock_redis.get(progress_key(execution_id)))
        assert cached["executionId"] == str(execution_id)
        assert cached["progress"] == {"current": 3, "total": 10}

        message = None
        for _ in range(10):
            message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=0.1)
            if message is not None:
                break
        assert message is not None
        body = json.loads(message["data"])
        assert body["origin"] == broker.origin
        await pubsub.aclose()

    async def test_latest_falls_back_to_cache(self, mock_redis):
        writer = ProgressBroker()
        reader = ProgressBroker()
        execution_id = uuid4()

        await writer.publish(snap(execution_id, 6))

        latest = await reader.latest(execution_id)
        assert latest is not None
        assert latest.progress.current == 6

    async def test_corrupt_cache_entry_ignored(self, mock_redis):
        execution_id = uuid4()
        await mock_redis.set(progress_key(execution_id), "{not json")

        assert await ProgressBroker().latest(execution_id) is None

    async def test_without_redis(self, mock_redis_unavailable):
        broker = ProgressBroker()
        execution_id = uuid4()
        await broker.publish(snap(execution_id, 1))

        assert (await broker.latest(execution_id)).progress.current == 1
        assert await ProgressBroker().latest(execution_id) is None


class TestBridgeMessages:
    def test_foreign_message_decoded(self):
        broker = ProgressBroker()
        execution_id = uuid4()
        data = json.dumps({"origin": "other", "snapshot": snap(execution_id, 2).to_message()})

        decoded = broker.handle_bridge_message(data)
        assert decoded is not None
        assert decoded.progress.current == 2

    def test_own_message_ignored(self):
        broker = ProgressBroker()
        data = json.dumps({"origin": broker.origin, "snapshot": snap(uuid4(), 2).to_message()})
        assert broker.handle_bridge_message(data) is None

    @pytest.mark.parametrize("data", ["not json", json.dumps([1, 2]), json.dumps({"origin": "x", "snapshot": {}})])
    def test_malformed_ignored(self, data):
        assert ProgressBroker().handle_bridge_message(data) is None
