from __future__ import annotations

from datetime import datetime
from math import ceil
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")

SortOrder = Literal["ASC", "DESC"]


class MessageResponse(BaseModel):
    message: str


class PageParams(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)
    sort_by: str = "created_at"
    sort_order: SortOrder = "DESC"

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class PageMeta(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


class Page(BaseModel, Generic[T]):
    data: list[T]
    meta: PageMeta


def build_meta(total: int, page: int, limit: int) -> PageMeta:
    total_pages = ceil(total / limit) if limit else 0
    return PageMeta(
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_previous_page=page > 1,
    )


def resolve_sort(sort_by: str | None, allowed: tuple[str, ...], default: str = "created_at") -> str:
    """Fall back to the default column for anything outside the allow-list."""
    value = str(sort_by or "").strip()
    return value if value in allowed else default


def as_iso(value: datetime | None) -> str:
    if value is None:
        return ""
    return value.isoformat()
