"""Cursor-paginated list envelope: ``{"data": [...], "meta": {...}}``."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


class PageMeta(BaseModel):
    next_cursor: str | None
    has_more: bool
    total: int | None = None


class PaginatedResponse(BaseModel, Generic[T]):
    data: list[T]
    meta: PageMeta

    @classmethod
    def from_listing(cls, listing: Mapping[str, Any], item_schema: type[T]) -> PaginatedResponse[T]:
        """Build the envelope from a service listing of ORM rows."""
        return cls(
            data=[item_schema.model_validate(row) for row in listing["data"]],
            meta=PageMeta(
                next_cursor=listing["next_cursor"],
                has_more=listing["has_more"],
                total=listing.get("total"),
            ),
        )
