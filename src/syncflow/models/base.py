from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Column
from sqlalchemy.dialects.postgresql import JSONB

# JSONB on PostgreSQL, plain JSON elsewhere (sqlite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def json_column(nullable: bool = False) -> Any:
    """Fresh JSON column for a SQLModel `sa_column`."""
    return Column(JSONType, nullable=nullable)


def utc_now() -> datetime:
    """Return current UTC time as naive datetime (for PostgreSQL TIMESTAMP).

    Database columns use TIMESTAMP WITHOUT TIME ZONE, so we strip tzinfo.
    All times are stored in UTC by convention.
    """
    return datetime.now(UTC).replace(tzinfo=None)


def elapsed_ms(start: datetime, end: datetime) -> int:
    """Non-negative whole milliseconds between two naive UTC instants."""
    return max(0, int((end - start).total_seconds() * 1000))
