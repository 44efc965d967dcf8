from __future__ import annotations

from pydantic import BaseModel, Field


class CommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=5000)
    parent_comment_id: int | None = None


class CommentUpdate(BaseModel):
    content: str = Field(min_length=1, max_length=5000)


class CommentOut(BaseModel):
    id: int
    resource_type: str
    resource_id: int
    author_id: int
    content: str
    is_edited: bool = False
    parent_comment_id: int | None = None
    likes_count: int = 0
    replies_count: int = 0
    created_at: str
    updated_at: str
    replies: list[CommentOut] = Field(default_factory=list)
