"""Tests for order discovery in webhook payloads and status aggregation."""

import pytest

from src.syncflow.models import ProcessStatus, UpsertStatus
from src.syncflow.services.webhook_gate import headers_snapshot
from src.syncflow.services.webhook_processor import OrderOutcome, aggregate_status, extract_orders
from tests.helpers import pos_order

pytestmark = pytest.mark.unit


def ids(orders):
    return [(o.get("shop_id"), o.get("id")) for o in orders]


class TestExtractOrders:
    def test_bare_order(self):
        assert ids(extract_orders(pos_order("1"))) == [("shop-1", "1")]

    def test_list_of_orders(self):
        payload = [pos_order("1"), pos_order("2")]
        assert ids(extract_orders(payload)) == [("shop-1", "1"), ("shop-1", "2")]

    @pytest.mark.parametrize("key", ["body", "payload", "order", "data", "orders"])
    def test_container_keys(self, key):
        payload = {"event": "order.updated", key: pos_order("9")}
        assert ids(extract_orders(payload)) == [("shop-1", "9")]

    def test_nested_envelopes(self):
        payload = {"data": {"orders": [pos_order("1"), pos_order("2", shop_id="shop-2")]}}
        assert ids(extract_orders(payload)) == [("shop-1", "1"), ("shop-2", "2")]

    def test_breadth_first_order(self):
        payload = {
            "body": {"data": pos_order("deep")},
            "data": pos_order("shallow"),
        }
        assert ids(extract_orders(payload)) == [("shop-1", "shallow"), ("shop-1", "deep")]

    def test_order_like_envelope_does_not_hide_children(self):
        payload = {"id": "env", "shop_id": "shop-1", "orders": [pos_order("child")]}
        assert ids(extract_orders(payload)) == [("shop-1", "env"), ("shop-1", "child")]

    def test_duplicates_first_wins(self):
        first = pos_order("1", status=1)
        second = pos_order("1", status=2)
        found = extract_orders({"orders": [first, second]})
        assert len(found) == 1
        assert found[0]["status"] == 1

    def test_same_id_other_shop_is_distinct(self):
        found = extract_orders([pos_order("1"), pos_order("1", shop_id="shop-2")])
        assert len(found) == 2

    def test_unknown_keys_not_searched(self):
        assert extract_orders({"meta": pos_order("1")}) == []

    @pytest.mark.parametrize("payload", [None, 42, "text", [], {}, {"data": None}])
    def test_nothing_found(self, payload):
        assert extract_orders(payload) == []


def outcome(status: UpsertStatus) -> OrderOutcome:
    return OrderOutcome(shop_id="shop-1", order_id="1", status=1, upsert_status=status)


class TestAggregateStatus:
    def test_no_orders(self):
        assert aggregate_status([]) is ProcessStatus.SKIPPED

    def test_all_ok(self):
        outcomes = [outcome(UpsertStatus.CREATED), outcome(UpsertStatus.UPDATED), outcome(UpsertStatus.SKIPPED)]
        assert aggregate_status(outcomes) is ProcessStatus.PROCESSED

    def test_all_skipped_is_processed(self):
        assert aggregate_status([outcome(UpsertStatus.SKIPPED)]) is ProcessStatus.PROCESSED

    def test_some_failed(self):
        assert aggregate_status([outcome(UpsertStatus.CREATED), outcome(UpsertStatus.FAILED)]) is ProcessStatus.PARTIAL

    def test_all_failed(self):
        assert aggregate_status([outcome(UpsertStatus.FAILED)] * 2) is ProcessStatus.FAILED


def test_headers_snapshot_keeps_allowlist_only():
    snapshot = headers_snapshot(
        {
            "Content-Type": "application/json",
            "User-Agent": "pancake/1.0",
            "X-Api-Key": "secret",
            "Authorization": "Bearer x",
        }
    )
    assert snapshot == {"content-type": "application/json", "user-agent": "pancake/1.0"}
