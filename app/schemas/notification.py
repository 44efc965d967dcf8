from __future__ import annotations

from pydantic import BaseModel, Field


class NotificationOut(BaseModel):
    id: int
    user_id: int
    kind: str
    title: str
    body: str
    actor_id: int | None = None
    payload: dict = Field(default_factory=dict)
    is_read: bool
    created_at: str
