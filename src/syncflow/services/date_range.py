"""Date-range resolution.

Turns a declarative `DateRangeSpec` plus a reference instant into the list of
calendar days an execution fetches. Pure: same inputs, same days, so a
failed execution can be replayed over exactly the same window.
"""

from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

from src.syncflow.core.exceptions import InvalidRangeError
from src.syncflow.schemas.workflow import DateRangeSpec


def local_day(reference: datetime, tz: str) -> date:
    """Calendar day of `reference` in `tz`. Naive datetimes are treated as UTC."""
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=UTC)
    return reference.astimezone(ZoneInfo(tz)).date()


def date_span(start: date, end: date) -> list[date]:
    """Every day from start to end, inclusive."""
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def resolve_dates(spec: DateRangeSpec, reference: datetime, tz: str = "Asia/Manila") -> list[date]:
    """Resolve a range spec into ordered, distinct days (earliest first).

    `relative(days=n)` ends on (and includes) the reference day.

    Raises:
        InvalidRangeError: absolute range with until < since, or missing bounds
    """
    today = local_day(reference, tz)

    if spec.type == "rolling":
        return [today - timedelta(days=spec.offset_days or 0)]

    if spec.type == "relative":
        days = spec.days or 0
        if days < 1:
            raise InvalidRangeError("relative date range needs days >= 1")
        return date_span(today - timedelta(days=days - 1), today)

    if spec.since is None or spec.until is None:
        raise InvalidRangeError("absolute date range needs both since and until")
    if spec.until < spec.since:
        raise InvalidRangeError(
            f"Invalid date range: until ({spec.until}) is before since ({spec.since})"
        )
    return date_span(spec.since, spec.until)


def bounds(days: list[date]) -> tuple[str | None, str | None]:
    """(since, until) as ISO strings for persisting on the execution."""
    if not days:
        return None, None
    return days[0].isoformat(), days[-1].isoformat()
