"""Tests for request_id in error responses."""

from uuid import uuid4

import pytest

from tests.helpers import auth_headers

pytestmark = pytest.mark.integration


async def test_not_found_includes_request_id(client) -> None:
    response = await client.get("/api/v1/nonexistent-endpoint")

    assert response.status_code == 404
    data = response.json()
    assert "detail" in data
    assert isinstance(data["request_id"], str)
    assert response.headers["x-request-id"] == data["request_id"]


async def test_domain_error_includes_request_id(client, tenant_id) -> None:
    response = await client.get(f"/api/v1/workflows/{uuid4()}", headers=auth_headers(tenant_id))

    assert response.status_code == 404
    assert response.json()["detail"] == "Workflow not found"
    assert response.json()["request_id"]


async def test_incoming_request_id_propagated(client) -> None:
    request_id = str(uuid4())

    response = await client.get("/api/v1/workflows", headers={"X-Request-ID": request_id})

    assert response.status_code == 401
    assert response.json()["request_id"] == request_id


async def test_different_requests_have_different_ids(client) -> None:
    first = (await client.get("/api/v1/endpoint1")).json()
    second = (await client.get("/api/v1/endpoint2")).json()

    assert first["request_id"] != second["request_id"]
