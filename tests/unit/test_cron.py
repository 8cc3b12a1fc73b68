"""Tests for friendly schedule <-> cron translation and next-run evaluation."""

from datetime import datetime

import pytest
from hypothesis import given
from hypothesis import strategies as st

from src.syncflow.core.exceptions import InvalidCronError
from src.syncflow.services.cron import FriendlySchedule, next_run_after, parse_cron, to_cron, validate_cron

pytestmark = pytest.mark.unit


class TestToCron:
    def test_minutes(self):
        assert to_cron(FriendlySchedule(unit="minutes", every=15)) == "*/15 * * * *"

    def test_hours(self):
        assert to_cron(FriendlySchedule(unit="hours", every=2, at_minute=30)) == "30 */2 * * *"

    def test_days(self):
        assert to_cron(FriendlySchedule(unit="days", every=1, at_minute=5, at_hour=3)) == "5 3 */1 * *"

    def test_values_are_clamped(self):
        assert to_cron(FriendlySchedule(unit="minutes", every=0)) == "*/1 * * * *"
        assert to_cron(FriendlySchedule(unit="hours", every=99, at_minute=75)) == "59 */23 * * *"
        assert to_cron(FriendlySchedule(unit="days", every=40, at_minute=-3, at_hour=30)) == "0 23 */31 * *"


class TestParseCron:
    @pytest.mark.parametrize("expr", ["0 9 * * 1-5", "*/5 9-17 * * *", "15 10 1 * *"])
    def test_other_shapes_are_opaque(self, expr: str):
        assert parse_cron(expr) is None

    def test_empty(self):
        assert parse_cron(None) is None
        assert parse_cron("") is None

    def test_whitespace_is_normalized(self):
        assert parse_cron("  */10   *  * * * ") == FriendlySchedule(unit="minutes", every=10)

    def test_out_of_range_step_is_opaque(self):
        assert parse_cron("*/75 * * * *") is None


friendly = st.one_of(
    st.builds(FriendlySchedule, unit=st.just("minutes"), every=st.integers(1, 59)),
    st.builds(
        FriendlySchedule,
        unit=st.just("hours"),
        every=st.integers(1, 23),
        at_minute=st.integers(0, 59),
    ),
    st.builds(
        FriendlySchedule,
        unit=st.just("days"),
        every=st.integers(1, 31),
        at_minute=st.integers(0, 59),
        at_hour=st.integers(0, 23),
    ),
)


@given(schedule=friendly)
def test_friendly_round_trip(schedule: FriendlySchedule):
    """Any in-range friendly schedule survives to_cron -> parse_cron unchanged."""
    assert parse_cron(to_cron(schedule)) == schedule


class TestValidateCron:
    def test_valid_is_normalized(self):
        assert validate_cron(" 0  3 * * * ") == "0 3 * * *"

    @pytest.mark.parametrize("expr", ["", "not a cron", "61 * * * *", "* * * *", "0 0 0 0 0 0"])
    def test_invalid_rejected(self, expr: str):
        with pytest.raises(InvalidCronError):
            validate_cron(expr)


class TestNextRunAfter:
    def test_strictly_after(self):
        instant = datetime(2026, 3, 10, 4, 15)
        assert next_run_after("*/15 * * * *", instant, "UTC") == datetime(2026, 3, 10, 4, 30)

    def test_hours_are_tenant_local(self):
        # 03:00 Manila is 19:00 UTC the previous day
        nxt = next_run_after("0 3 * * *", datetime(2026, 3, 10, 12, 0), "Asia/Manila")
        assert nxt == datetime(2026, 3, 10, 19, 0)

    def test_result_is_naive_utc(self):
        nxt = next_run_after("*/5 * * * *", datetime(2026, 3, 10, 0, 0), "Asia/Manila")
        assert nxt.tzinfo is None
