"""Pagination schemas: cursor-based for feeds, page-based for filtered logs."""

import base64
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """Cursor-paginated response (execution history).

    The cursor is opaque; clients pass it back to get the next page.
    """

    items: list[T]
    next_cursor: str | None = Field(
        default=None,
        description="Opaque cursor for fetching the next page. None if no more pages.",
    )
    has_more: bool = Field(
        default=False,
        description="Whether there are more items after this page.",
    )


class PagedResponse(BaseModel, Generic[T]):
    """Page/limit response for filterable listings (webhook logs)."""

    items: list[T]
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, items: list[T], page: int, limit: int, total: int) -> "PagedResponse[T]":
        pages = (total + limit - 1) // limit if limit else 0
        return cls(items=items, page=page, limit=limit, total=total, total_pages=pages)


def encode_cursor(value: str) -> str:
    """Encode a cursor value to base64."""
    return base64.urlsafe_b64encode(value.encode()).decode()


def decode_cursor(cursor: str) -> str:
    """Decode a base64 cursor value.

    Raises:
        ValueError: If cursor is invalid
    """
    try:
        return base64.urlsafe_b64decode(cursor.encode()).decode()
    except Exception as e:
        raise ValueError("Invalid cursor") from e
