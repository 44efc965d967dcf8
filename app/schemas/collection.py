from __future__ import annotations

from pydantic import BaseModel, Field


class CollectionCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    description: str | None = Field(default=None, max_length=1000)
    is_public: bool = False
    cover_image: str | None = None


class CollectionUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    description: str | None = Field(default=None, max_length=1000)
    is_public: bool | None = None
    cover_image: str | None = None


class CollectionOut(BaseModel):
    id: int
    owner_id: int
    name: str
    description: str | None = None
    is_public: bool
    cover_image: str | None = None
    posts_count: int = 0
    created_at: str
    updated_at: str
