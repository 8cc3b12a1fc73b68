"""Cron translation between the dashboard's friendly schedule and cron strings.

Only three shapes are produced and recognised:

    minutes: */{every} * * * *
    hours:   {atMinute} */{every} * * *
    days:    {atMinute} {atHour} */{every} * *

Anything else is treated as an opaque cron string. The scheduler always
evaluates the stored string; the friendly form is for display only.
"""

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Literal
from zoneinfo import ZoneInfo

from croniter import croniter

from src.syncflow.core.exceptions import InvalidCronError

ScheduleUnit = Literal["minutes", "hours", "days"]

_STEP = r"\*/(\d{1,2})"
_NUM = r"(\d{1,2})"
_MINUTES_RE = re.compile(rf"^{_STEP} \* \* \* \*$")
_HOURS_RE = re.compile(rf"^{_NUM} {_STEP} \* \* \*$")
_DAYS_RE = re.compile(rf"^{_NUM} {_NUM} {_STEP} \* \*$")


@dataclass(frozen=True)
class FriendlySchedule:
    unit: ScheduleUnit
    every: int
    at_minute: int | None = None
    at_hour: int | None = None


def _clamp(value: int | None, low: int, high: int, default: int) -> int:
    if value is None:
        return default
    return min(high, max(low, int(value)))


def to_cron(schedule: FriendlySchedule) -> str:
    """Build the canonical cron string, clamping every field into range."""
    if schedule.unit == "minutes":
        every = _clamp(schedule.every, 1, 59, 1)
        return f"*/{every} * * * *"
    if schedule.unit == "hours":
        every = _clamp(schedule.every, 1, 23, 1)
        minute = _clamp(schedule.at_minute, 0, 59, 0)
        return f"{minute} */{every} * * *"
    every = _clamp(schedule.every, 1, 31, 1)
    hour = _clamp(schedule.at_hour, 0, 23, 0)
    minute = _clamp(schedule.at_minute, 0, 59, 0)
    return f"{minute} {hour} */{every} * *"


def parse_cron(expr: str | None) -> FriendlySchedule | None:
    """Recover friendly fields from one of the three shapes, else None.

    Values outside the clamped ranges do not round-trip, so they are
    reported as opaque too.
    """
    if not expr:
        return None
    normalized = " ".join(expr.split())

    if m := _MINUTES_RE.match(normalized):
        every = int(m.group(1))
        if 1 <= every <= 59:
            return FriendlySchedule(unit="minutes", every=every)
        return None

    if m := _HOURS_RE.match(normalized):
        minute, every = int(m.group(1)), int(m.group(2))
        if 0 <= minute <= 59 and 1 <= every <= 23:
            return FriendlySchedule(unit="hours", every=every, at_minute=minute)
        return None

    if m := _DAYS_RE.match(normalized):
        minute, hour, every = int(m.group(1)), int(m.group(2)), int(m.group(3))
        if 0 <= minute <= 59 and 0 <= hour <= 23 and 1 <= every <= 31:
            return FriendlySchedule(unit="days", every=every, at_minute=minute, at_hour=hour)
    return None


def validate_cron(expr: str) -> str:
    """Return the whitespace-normalized expression or raise InvalidCronError."""
    normalized = " ".join(expr.split())
    if len(normalized.split(" ")) != 5 or not croniter.is_valid(normalized):
        raise InvalidCronError("Invalid cron expression format")
    return normalized


def next_run_after(expr: str, instant: datetime, tz: str = "Asia/Manila") -> datetime:
    """Next fire time strictly after `instant`, as naive UTC.

    The expression is evaluated in `tz` (hour fields mean tenant-local hours).
    Naive inputs are treated as UTC.
    """
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    local = instant.astimezone(ZoneInfo(tz))
    try:
        nxt: datetime = croniter(validate_cron(expr), local).get_next(datetime)
    except (ValueError, KeyError) as e:
        raise InvalidCronError("Invalid cron expression format") from e
    return nxt.astimezone(UTC).replace(tzinfo=None)
