from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

ReactionType = Literal["like", "love", "laugh", "wow", "sad", "angry"]
ReportReason = Literal[
    "spam",
    "harassment",
    "hate_speech",
    "violence",
    "copyright",
    "false_information",
    "inappropriate_content",
    "other",
]


class PostCreate(BaseModel):
    content: str | None = None
    media_url: str | None = None
    media_urls: list[str] = Field(default_factory=list)
    video_ids: list[int] = Field(default_factory=list)
    link_url: str | None = None
    link_title: str | None = None
    link_description: str | None = None
    link_image: str | None = None
    is_public: bool = True
    allow_comments: bool = True
    is_draft: bool = False
    scheduled_date: datetime | None = None
    parent_post_id: int | None = None


class PostUpdate(BaseModel):
    content: str | None = None
    media_url: str | None = None
    media_urls: list[str] | None = None
    link_url: str | None = None
    link_title: str | None = None
    link_description: str | None = None
    link_image: str | None = None
    is_public: bool | None = None
    allow_comments: bool | None = None


class PostOut(BaseModel):
    id: int
    author_id: int
    content: str | None = None
    media_url: str | None = None
    media_urls: list[str] = Field(default_factory=list)
    link_url: str | None = None
    link_title: str | None = None
    link_description: str | None = None
    link_image: str | None = None
    is_public: bool
    allow_comments: bool
    is_pinned: bool
    is_edited: bool
    is_draft: bool
    is_archived: bool
    scheduled_date: str | None = None
    post_type: str
    hashtags: list[str] = Field(default_factory=list)
    mentions: list[str] = Field(default_factory=list)
    likes_count: int = 0
    comments_count: int = 0
    shares_count: int = 0
    views_count: int = 0
    bookmarks_count: int = 0
    reports_count: int = 0
    parent_post_id: int | None = None
    created_at: str
    updated_at: str
    is_liked: bool = False
    is_shared: bool = False


class PinIn(BaseModel):
    is_pinned: bool


class ScheduleIn(BaseModel):
    scheduled_date: datetime


class BookmarkIn(BaseModel):
    note: str | None = Field(default=None, max_length=500)


class ReportIn(BaseModel):
    reason: ReportReason
    description: str | None = Field(default=None, max_length=1000)


class ReportOut(BaseModel):
    id: int
    post_id: int
    user_id: int
    reason: str
    description: str | None = None
    status: str
    created_at: str


class BookmarkOut(BaseModel):
    id: int
    post_id: int
    user_id: int
    note: str | None = None
    created_at: str


class ReactionIn(BaseModel):
    reaction_type: ReactionType = "like"


class ReactionOut(BaseModel):
    id: int
    user_id: int
    post_id: int | None = None
    comment_id: int | None = None
    reaction_type: str
    created_at: str


class ViewIn(BaseModel):
    referrer: str | None = None


class PostAnalyticsOut(BaseModel):
    post_id: int
    views: int
    likes: int
    comments: int
    shares: int
    bookmarks: int
    reactions: int
    reaction_breakdown: dict[str, int]
    total_engagements: int
    engagement_rate: float
