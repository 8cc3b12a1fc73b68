"""Webhook receive endpoint and tenant webhook settings."""

from uuid import uuid4

import pytest

from src.syncflow.core.shutdown import work_tracker
from src.syncflow.models import WebhookLogOrder
from tests.factories import WebhookLogFactory
from tests.helpers import auth_headers, create_webhook_config, pos_order

pytestmark = pytest.mark.integration

SETTINGS_URL = "/api/v1/integrations/pancake/webhook"
BODY = {"event": "order.updated", "data": pos_order("1001")}


def receive_url(tenant_id) -> str:
    return f"/api/v1/webhooks/pancake/{tenant_id}"


class TestReceive:
    async def test_accepted(self, client, db_session, tenant_id, dispatcher):
        _, key = await create_webhook_config(db_session, tenant_id)

        response = await client.post(
            receive_url(tenant_id), json=BODY, headers={"x-api-key": key, "x-request-id": "pancake-42"}
        )

        assert response.status_code == 202
        data = response.json()
        assert data["accepted"] is True
        assert data["requestId"] == "pancake-42"
        assert [str(i) for i in dispatcher.webhooks] == [data["logId"]]

    async def test_orders_alias(self, client, db_session, tenant_id):
        _, key = await create_webhook_config(db_session, tenant_id)

        response = await client.post(f"{receive_url(tenant_id)}/orders", json=BODY, params={"api_key": key})

        assert response.status_code == 202

    async def test_bad_key(self, client, db_session, tenant_id, dispatcher):
        await create_webhook_config(db_session, tenant_id)

        response = await client.post(receive_url(tenant_id), json=BODY, headers={"x-api-key": "nope"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid webhook API key"
        assert "request_id" in response.json()
        assert dispatcher.webhooks == []

    async def test_unknown_tenant(self, client):
        response = await client.post(receive_url("tenant-that-does-not-exist"), json=BODY)

        assert response.status_code == 404

    async def test_disabled(self, client, db_session, tenant_id):
        _, key = await create_webhook_config(db_session, tenant_id, enabled=False)

        response = await client.post(receive_url(tenant_id), json=BODY, headers={"x-api-key": key})

        assert response.status_code == 403

    async def test_refused_while_draining(self, client, db_session, tenant_id):
        _, key = await create_webhook_config(db_session, tenant_id)
        await work_tracker.start_shutdown()

        response = await client.post(receive_url(tenant_id), json=BODY, headers={"x-api-key": key})

        assert response.status_code == 503


class TestSettings:
    async def test_defaults_without_row(self, client, tenant_id):
        data = (await client.get(SETTINGS_URL, headers=auth_headers(tenant_id))).json()

        assert data["enabled"] is False
        assert data["hasApiKey"] is False
        assert data["headerKey"] == "x-api-key"
        assert data["webhookUrl"].endswith(f"/api/v1/webhooks/pancake/{tenant_id}")

    async def test_enable_and_rename_header(self, client, tenant_id):
        response = await client.patch(
            SETTINGS_URL, json={"enabled": True, "headerKey": "X-Pancake-Key"}, headers=auth_headers(tenant_id)
        )

        data = response.json()
        assert data["enabled"] is True
        assert data["headerKey"] == "x-pancake-key"

    async def test_rotate_key_then_receive(self, client, tenant_id):
        headers = auth_headers(tenant_id)
        await client.patch(SETTINGS_URL, json={"enabled": True}, headers=headers)

        first = (await client.post(f"{SETTINGS_URL}/rotate-key", headers=headers)).json()
        second = (await client.post(f"{SETTINGS_URL}/rotate-key", headers=headers)).json()

        assert first["apiKey"].startswith("nbm_")
        assert second["keyLast4"] == second["apiKey"][-4:]
        assert second["version"] == first["version"] + 1
        assert second["hasApiKey"] is True
        old = await client.post(receive_url(tenant_id), json=BODY, headers={"x-api-key": first["apiKey"]})
        new = await client.post(receive_url(tenant_id), json=BODY, headers={"x-api-key": second["apiKey"]})
        assert old.status_code == 401
        assert new.status_code == 202
        settings = (await client.get(SETTINGS_URL, headers=headers)).json()
        assert "apiKey" not in settings

    async def test_relay_requires_url(self, client, tenant_id):
        response = await client.patch(f"{SETTINGS_URL}/relay", json={"enabled": True}, headers=auth_headers(tenant_id))

        assert response.status_code == 400

    async def test_relay_update(self, client, tenant_id):
        response = await client.patch(
            f"{SETTINGS_URL}/relay",
            json={
                "enabled": True,
                "webhookUrl": "https://downstream.example.com/hook",
                "headerKey": "x-relay-key",
                "apiKey": "relay-secret",
            },
            headers=auth_headers(tenant_id),
        )

        data = response.json()
        assert data["relayEnabled"] is True
        assert data["relayWebhookUrl"] == "https://downstream.example.com/hook"
        assert data["relayHasApiKey"] is True
        assert "relayApiKey" not in data

    async def test_relay_key_kept_when_omitted(self, client, tenant_id):
        headers = auth_headers(tenant_id)
        await client.patch(
            f"{SETTINGS_URL}/relay",
            json={"enabled": True, "webhookUrl": "https://downstream.example.com/hook", "apiKey": "relay-secret"},
            headers=headers,
        )

        data = (await client.patch(f"{SETTINGS_URL}/relay", json={"enabled": False}, headers=headers)).json()

        assert data["relayEnabled"] is False
        assert data["relayHasApiKey"] is True
        assert data["relayWebhookUrl"] == "https://downstream.example.com/hook"

    async def test_requires_webhook_permission(self, client, tenant_id):
        headers = auth_headers(tenant_id, permissions=["workflows:read"])

        assert (await client.get(SETTINGS_URL, headers=headers)).status_code == 403


class TestLogs:
    async def _seed(self, db_session, tenant_id):
        processed = WebhookLogFactory.build(
            tenant_id=tenant_id, request_id="req-processed", process_status="PROCESSED", relay_status="SKIPPED"
        )
        failed = WebhookLogFactory.build(
            tenant_id=tenant_id,
            request_id="req-failed",
            process_status="FAILED",
            error_message="No POS store found for shop_id=shop-9",
        )
        other_tenant = WebhookLogFactory.build(tenant_id=uuid4(), request_id="req-other")
        db_session.add_all([processed, failed, other_tenant])
        await db_session.flush()
        db_session.add_all(
            [
                WebhookLogOrder(log_id=processed.id, shop_id="shop-1", order_id="1001", upsert_status="CREATED"),
                WebhookLogOrder(log_id=failed.id, shop_id="shop-9", order_id="2002", upsert_status="FAILED"),
            ]
        )
        await db_session.commit()
        return processed, failed

    async def test_lists_tenant_logs_with_orders(self, client, db_session, tenant_id):
        processed, failed = await self._seed(db_session, tenant_id)

        data = (await client.get(f"{SETTINGS_URL}/logs", headers=auth_headers(tenant_id))).json()

        assert data["total"] == 2
        assert data["total_pages"] == 1
        by_request = {item["requestId"]: item for item in data["items"]}
        assert set(by_request) == {"req-processed", "req-failed"}
        assert by_request["req-processed"]["orders"][0]["orderId"] == "1001"
        assert "payload" not in by_request["req-processed"]

    @pytest.mark.parametrize(
        "params, expected",
        [
            ({"processStatus": "FAILED"}, {"req-failed"}),
            ({"shopId": "shop-1"}, {"req-processed"}),
            ({"orderId": "2002"}, {"req-failed"}),
            ({"search": "shop-9"}, {"req-failed"}),
            ({"search": "req-proc"}, {"req-processed"}),
            ({"requestId": "req-failed"}, {"req-failed"}),
        ],
    )
    async def test_filters(self, client, db_session, tenant_id, params, expected):
        await self._seed(db_session, tenant_id)

        data = (await client.get(f"{SETTINGS_URL}/logs", params=params, headers=auth_headers(tenant_id))).json()

        assert {item["requestId"] for item in data["items"]} == expected

    @pytest.mark.parametrize("term, expected", [("%", {"req-100%"}), ("_", {"req_a"}), ("q_a", {"req_a"})])
    async def test_search_wildcards_match_literally(self, client, db_session, tenant_id, term, expected):
        db_session.add_all(
            [
                WebhookLogFactory.build(tenant_id=tenant_id, request_id="req-100%"),
                WebhookLogFactory.build(tenant_id=tenant_id, request_id="req_a"),
                WebhookLogFactory.build(tenant_id=tenant_id, request_id="reqxa"),
            ]
        )
        await db_session.commit()

        data = (
            await client.get(f"{SETTINGS_URL}/logs", params={"search": term}, headers=auth_headers(tenant_id))
        ).json()

        assert {item["requestId"] for item in data["items"]} == expected

    async def test_inverted_dates_rejected(self, client, tenant_id):
        response = await client.get(
            f"{SETTINGS_URL}/logs",
            params={"startDate": "2026-03-10", "endDate": "2026-03-01"},
            headers=auth_headers(tenant_id),
        )

        assert response.status_code == 400

    async def test_pagination(self, client, db_session, tenant_id):
        db_session.add_all([WebhookLogFactory.build(tenant_id=tenant_id) for _ in range(5)])
        await db_session.commit()

        data = (
            await client.get(f"{SETTINGS_URL}/logs", params={"page": 2, "limit": 2}, headers=auth_headers(tenant_id))
        ).json()

        assert len(data["items"]) == 2
        assert (data["page"], data["total"]) == (2, 5)

