from __future__ import annotations

from pydantic import BaseModel, Field


class LikeOut(BaseModel):
    id: int
    user_id: int
    resource_type: str
    resource_id: int
    created_at: str


class LikeStatusOut(BaseModel):
    resource_type: str
    resource_id: int
    likes_count: int
    is_liked: bool = False


class ShareIn(BaseModel):
    comment: str | None = Field(default=None, max_length=1000)


class ShareOut(BaseModel):
    id: int
    user_id: int
    resource_type: str
    resource_id: int
    comment: str | None = None
    created_at: str


class ShareStatusOut(BaseModel):
    resource_type: str
    resource_id: int
    shares_count: int
    is_shared: bool = False
