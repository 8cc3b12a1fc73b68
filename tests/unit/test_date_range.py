"""Tests for date-range resolution."""

from datetime import date, datetime, timedelta

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from src.syncflow.core.exceptions import InvalidRangeError
from src.syncflow.schemas.workflow import DateRangeSpec, SourceToggle, SourcesConfig, WorkflowConfig
from src.syncflow.services.date_range import bounds, local_day, resolve_dates

pytestmark = pytest.mark.unit

# 2026-03-10 20:00 UTC is already 2026-03-11 in Manila (UTC+8)
LATE_UTC = datetime(2026, 3, 10, 20, 0)
MANILA = "Asia/Manila"


class TestLocalDay:
    def test_naive_reference_is_utc(self):
        assert local_day(LATE_UTC, MANILA) == date(2026, 3, 11)
        assert local_day(LATE_UTC, "UTC") == date(2026, 3, 10)


class TestResolveDates:
    def test_rolling_today(self):
        spec = DateRangeSpec(type="rolling")
        assert resolve_dates(spec, LATE_UTC, MANILA) == [date(2026, 3, 11)]

    def test_rolling_offset(self):
        spec = DateRangeSpec(type="rolling", offset_days=1)
        assert resolve_dates(spec, LATE_UTC, MANILA) == [date(2026, 3, 10)]

    def test_relative_includes_today(self):
        spec = DateRangeSpec(type="relative", days=3)
        assert resolve_dates(spec, LATE_UTC, MANILA) == [
            date(2026, 3, 9),
            date(2026, 3, 10),
            date(2026, 3, 11),
        ]

    def test_absolute_single_day(self):
        spec = DateRangeSpec(type="absolute", since=date(2026, 1, 5), until=date(2026, 1, 5))
        assert resolve_dates(spec, LATE_UTC, MANILA) == [date(2026, 1, 5)]

    def test_absolute_crosses_month(self):
        spec = DateRangeSpec(type="absolute", since=date(2026, 1, 30), until=date(2026, 2, 2))
        days = resolve_dates(spec, LATE_UTC, MANILA)
        assert days == [date(2026, 1, 30), date(2026, 1, 31), date(2026, 2, 1), date(2026, 2, 2)]

    def test_absolute_until_before_since_rejected(self):
        spec = DateRangeSpec(type="absolute", since=date(2026, 2, 2), until=date(2026, 2, 1))
        with pytest.raises(InvalidRangeError, match="before since"):
            resolve_dates(spec, LATE_UTC, MANILA)

    def test_absolute_ignores_reference(self):
        spec = DateRangeSpec(type="absolute", since=date(2025, 12, 1), until=date(2025, 12, 3))
        assert resolve_dates(spec, LATE_UTC, MANILA) == resolve_dates(spec, datetime(2030, 1, 1), MANILA)


@given(
    days=st.integers(min_value=1, max_value=120),
    reference=st.datetimes(min_value=datetime(2000, 1, 1), max_value=datetime(2090, 1, 1)),
)
@settings(max_examples=100)
def test_relative_is_contiguous_and_ends_today(days: int, reference: datetime):
    """relative(n) yields n consecutive ascending days ending on the local reference day."""
    resolved = resolve_dates(DateRangeSpec(type="relative", days=days), reference, MANILA)
    assert len(resolved) == days
    assert resolved[-1] == local_day(reference, MANILA)
    assert all(b - a == timedelta(days=1) for a, b in zip(resolved, resolved[1:], strict=False))


@given(
    since=st.dates(min_value=date(2000, 1, 1), max_value=date(2090, 1, 1)),
    length=st.integers(min_value=0, max_value=400),
)
@settings(max_examples=100)
def test_absolute_is_inclusive_and_distinct(since: date, length: int):
    until = since + timedelta(days=length)
    resolved = resolve_dates(DateRangeSpec(type="absolute", since=since, until=until), LATE_UTC, MANILA)
    assert resolved[0] == since
    assert resolved[-1] == until
    assert len(set(resolved)) == len(resolved) == length + 1


def test_bounds():
    assert bounds([]) == (None, None)
    assert bounds([date(2026, 3, 9), date(2026, 3, 10)]) == ("2026-03-09", "2026-03-10")


class TestEffectiveDateRange:
    def test_workflow_level_range_wins(self):
        config = WorkflowConfig(
            date_range=DateRangeSpec(type="rolling", offset_days=2),
            sources=SourcesConfig(pos=SourceToggle(enabled=True, date_range=DateRangeSpec(type="relative", days=7))),
        )
        assert config.effective_date_range().type == "rolling"

    def test_legacy_source_range_used_when_missing(self):
        config = WorkflowConfig.model_validate(
            {"sources": {"pos": {"enabled": True, "dateRange": {"type": "relative", "days": 7}}}}
        )
        spec = config.effective_date_range()
        assert spec.type == "relative"
        assert spec.days == 7

    def test_defaults_to_today(self):
        spec = WorkflowConfig().effective_date_range()
        assert resolve_dates(spec, LATE_UTC, MANILA) == [date(2026, 3, 11)]
