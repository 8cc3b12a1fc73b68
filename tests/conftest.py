"""Root test fixtures shared across all test types.

Tests run against a throwaway SQLite database per test (schema created
from the SQLModel metadata) and never reach Temporal: dispatch is disabled
and service tests use the recording dispatcher from tests.helpers.
"""

import os

# Set before any app imports: disables rate limiting and Temporal dispatch
os.environ.setdefault("APP_ENV", "testing")
os.environ["TEMPORAL_DISPATCH_ENABLED"] = "false"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-syncflow-tests-0123456789")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SYNC_TIMEZONE", "Asia/Manila")
os.environ.pop("REDIS_URL", None)

# ruff: noqa: E402 - Imports must be after env var setup
from collections.abc import AsyncGenerator
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from fakeredis import aioredis as fakeredis_aio
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel

from src.syncflow import models  # noqa: F401 - registers tables on the metadata
from src.syncflow.core import redis as redis_core
from src.syncflow.core.config import Settings, get_settings
from src.syncflow.core.db import get_session, set_engine
from src.syncflow.core.shutdown import work_tracker
from src.syncflow.services.execution_engine import cancel_registry
from src.syncflow.services.progress import progress_broker
from tests.helpers import RecordingDispatcher

# Clear settings cache to ensure test environment variables are picked up
get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _reset_process_state() -> None:
    """Module-level singletons carry state between tests otherwise."""
    progress_broker.reset()
    work_tracker.reset()
    cancel_registry.reset()
    redis_core.reset_redis_state()
    yield
    progress_broker.reset()
    work_tracker.reset()
    cancel_registry.reset()
    redis_core.reset_redis_state()


@pytest.fixture
def settings() -> Settings:
    """Settings with provider pacing disabled so loops run instantly."""
    return get_settings().model_copy(
        update={
            "meta_delay_ms_default": 0,
            "pos_delay_ms_default": 0,
            "pos_retry_backoff_ms": [0, 0, 0],
        }
    )


# --- Database fixtures ---


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    """Fresh file-backed SQLite database with every table created.

    Installed as the process engine so code that opens its own sessions
    (jobs, the WebSocket route) sees the same database.
    """
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'syncflow.db'}", poolclass=NullPool)
    async with test_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    set_engine(test_engine)
    yield test_engine
    set_engine(None)
    await test_engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Session on the test database.

    Services commit themselves; tests that insert rows directly must commit too.
    """
    async with get_session(engine) as session:
        yield session


@pytest.fixture
def tenant_id() -> UUID:
    return uuid4()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


# --- Redis fixtures ---


@pytest.fixture
async def fake_redis() -> AsyncGenerator[Redis]:
    """In-memory Redis implementation, no server required."""
    client = fakeredis_aio.FakeRedis(decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
async def mock_redis(fake_redis: Redis, monkeypatch: pytest.MonkeyPatch) -> AsyncGenerator[Redis]:
    """Patches get_redis() to return the fakeredis client.

    Patched in both modules that import get_redis so the progress cache
    and the pub/sub helper see the same client.
    """
    redis_core.reset_redis_state()

    async def _get_fake_redis() -> Redis:
        return fake_redis

    monkeypatch.setattr("src.syncflow.core.redis.get_redis", _get_fake_redis)
    monkeypatch.setattr("src.syncflow.core.cache.get_redis", _get_fake_redis)
    yield fake_redis
    redis_core.reset_redis_state()


@pytest.fixture
async def mock_redis_unavailable(monkeypatch: pytest.MonkeyPatch) -> AsyncGenerator[None]:
    """Patches get_redis() to return None (Redis not configured or down)."""
    redis_core.reset_redis_state()

    async def _get_none() -> None:
        return None

    monkeypatch.setattr("src.syncflow.core.redis.get_redis", _get_none)
    monkeypatch.setattr("src.syncflow.core.cache.get_redis", _get_none)
    yield
    redis_core.reset_redis_state()
