"""Integration test fixtures for the HTTP app.

Database fixtures live in tests/conftest.py; every test gets its own
SQLite file, so no cleanup is needed between tests.
"""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine

from src.syncflow import main
from src.syncflow.api.dependencies import get_job_dispatcher
from src.syncflow.core import redis as redis_core
from src.syncflow.main import create_app
from tests.helpers import FakeMeta, FakePos, RecordingDispatcher


@pytest.fixture(autouse=True)
async def _reset_redis_between_tests() -> AsyncGenerator[None]:
    """Redis clients hold a reference to the loop they were created on."""
    redis_core.reset_redis_state()
    yield
    await redis_core.close_redis()


@pytest.fixture(autouse=True)
def _reset_health_cache(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(main, "_health_cache", None)
    monkeypatch.setattr(main, "_health_cache_time", 0)


@pytest.fixture
async def client(engine: AsyncEngine, dispatcher: RecordingDispatcher) -> AsyncGenerator[AsyncClient]:
    """HTTP client against a fresh app with dispatch recorded instead of run.

    The lifespan is not started, so no Redis bridge or shutdown drain runs.
    """
    app = create_app()
    app.dependency_overrides[get_job_dispatcher] = lambda: dispatcher
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def fake_meta() -> FakeMeta:
    return FakeMeta()


@pytest.fixture
def fake_pos() -> FakePos:
    return FakePos()
