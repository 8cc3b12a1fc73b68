"""Tests for Temporal worker health check endpoints."""

import pytest
from httpx import ASGITransport, AsyncClient

from src.syncflow.temporal.worker import create_health_app

pytestmark = pytest.mark.integration


@pytest.fixture
async def worker_client():
    app = create_health_app("webhooks", ["syncflow-webhooks-0", "syncflow-webhooks-1"])
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://worker") as client:
        yield client


async def test_health_endpoint(worker_client):
    response = await worker_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "healthy",
        "service": "temporal-worker",
        "workload": "webhooks",
        "task_queues": ["syncflow-webhooks-0", "syncflow-webhooks-1"],
    }


async def test_ready_endpoint(worker_client):
    response = await worker_client.get("/ready")

    assert response.status_code == 200
    assert response.json() == {"status": "ready"}
