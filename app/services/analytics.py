from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import session as db_session
from app.models.analytics import PostAnalytics, UserAnalytics, ViewTrack
from app.models.common import utcnow
from app.models.media import Photo, Video
from app.models.social import Bookmark, Comment, Like, Post, Reaction, Report, Share
from app.models.user import Follow
from app.services.cache import cache
from app.services.resources import ResourceType

logger = logging.getLogger(__name__)

_background: set[asyncio.Task] = set()


async def _count(db: AsyncSession, stmt) -> int:
    return int((await db.execute(stmt)).scalar_one() or 0)


async def _live_comment_count(db: AsyncSession, resource_type: ResourceType, resource_id: int) -> int:
    return await _count(
        db,
        select(func.count())
        .select_from(Comment)
        .where(
            Comment.resource_type == resource_type.value,
            Comment.resource_id == resource_id,
            Comment.deleted_at.is_(None),
        ),
    )


def engagement_rate(total_engagements: int, views: int) -> float:
    if views <= 0:
        return 0.0
    return round(total_engagements / views * 100, 2)


async def calculate_post_analytics(db: AsyncSession, post_id: int) -> PostAnalytics | None:
    post = (await db.execute(select(Post).where(Post.id == post_id))).scalar_one_or_none()
    if post is None:
        return None

    def _by_resource(model):
        return (
            select(func.count())
            .select_from(model)
            .where(model.resource_type == ResourceType.POST.value, model.resource_id == post_id)
        )

    likes = await _count(db, _by_resource(Like))
    shares = await _count(db, _by_resource(Share))
    comments = await _live_comment_count(db, ResourceType.POST, post_id)
    bookmarks = await _count(db, select(func.count()).select_from(Bookmark).where(Bookmark.post_id == post_id))
    reports = await _count(db, select(func.count()).select_from(Report).where(Report.post_id == post_id))
    reactions = await _count(db, select(func.count()).select_from(Reaction).where(Reaction.post_id == post_id))
    tracked_views = await _count(
        db,
        select(func.count())
        .select_from(ViewTrack)
        .where(ViewTrack.resource_type == ResourceType.POST.value, ViewTrack.resource_id == post_id),
    )
    views = max(tracked_views, int(post.views_count or 0))
    total = likes + comments + shares + reactions

    row = (await db.execute(select(PostAnalytics).where(PostAnalytics.post_id == post_id))).scalar_one_or_none()
    if row is None:
        row = PostAnalytics(post_id=post_id)
        db.add(row)
    row.views = views
    row.likes = likes
    row.comments = comments
    row.shares = shares
    row.bookmarks = bookmarks
    row.reports = reports
    row.reactions = reactions
    row.total_engagements = total
    row.engagement_rate = engagement_rate(total, views)
    row.last_calculated_at = utcnow()

    # Comment writes leave the resource counter to this recalculation.
    await db.execute(update(Post).where(Post.id == post_id).values(comments_count=comments))
    await db.commit()
    await cache.invalidate_by_tags("post", f"post:{post_id}")
    return row


async def _sync_media_comments(db: AsyncSession, model, resource_type: ResourceType, resource_id: int) -> dict | None:
    exists = (await db.execute(select(model.id).where(model.id == resource_id))).scalar_one_or_none()
    if exists is None:
        return None
    comments = await _live_comment_count(db, resource_type, resource_id)
    await db.execute(update(model).where(model.id == resource_id).values(comments_count=comments))
    await db.commit()
    await cache.invalidate_by_tags(resource_type.value, f"{resource_type.value}:{resource_id}")
    return {"id": resource_id, "comments": comments}


async def calculate_video_analytics(db: AsyncSession, video_id: int) -> dict | None:
    return await _sync_media_comments(db, Video, ResourceType.VIDEO, video_id)


async def calculate_photo_analytics(db: AsyncSession, photo_id: int) -> dict | None:
    return await _sync_media_comments(db, Photo, ResourceType.PHOTO, photo_id)


async def calculate_user_analytics(db: AsyncSession, user_id: int) -> UserAnalytics:
    """Upsert the author's rollup: audience, output and engagement received on their posts."""
    own_posts = select(Post.id).where(Post.author_id == user_id)

    def _received(model):
        return (
            select(func.count())
            .select_from(model)
            .where(model.resource_type == ResourceType.POST.value, model.resource_id.in_(own_posts))
        )

    followers = await _count(db, select(func.count()).select_from(Follow).where(Follow.following_id == user_id))
    following = await _count(db, select(func.count()).select_from(Follow).where(Follow.follower_id == user_id))
    posts = await _count(db, select(func.count()).select_from(Post).where(Post.author_id == user_id))
    videos = await _count(
        db,
        select(func.count()).select_from(Video).where(Video.owner_id == user_id, Video.deleted_at.is_(None)),
    )
    comments_written = await _count(
        db,
        select(func.count()).select_from(Comment).where(Comment.author_id == user_id, Comment.deleted_at.is_(None)),
    )
    likes = await _count(db, _received(Like))
    shares = await _count(db, _received(Share))
    comments = await _count(db, _received(Comment).where(Comment.deleted_at.is_(None)))
    views = await _count(db, select(func.coalesce(func.sum(Post.views_count), 0)).where(Post.author_id == user_id))

    row = (await db.execute(select(UserAnalytics).where(UserAnalytics.user_id == user_id))).scalar_one_or_none()
    if row is None:
        row = UserAnalytics(user_id=user_id)
        db.add(row)
    row.followers = followers
    row.following = following
    row.posts = posts
    row.videos = videos
    row.comments_written = comments_written
    row.likes_received = likes
    row.comments_received = comments
    row.shares_received = shares
    row.views_received = views
    row.engagement_rate = engagement_rate(likes + comments + shares, views)
    row.last_calculated_at = utcnow()
    await db.commit()
    return row


async def recalculate_resource(db: AsyncSession, resource_type: ResourceType, resource_id: int) -> Any:
    if resource_type == ResourceType.POST:
        return await calculate_post_analytics(db, resource_id)
    if resource_type == ResourceType.VIDEO:
        return await calculate_video_analytics(db, resource_id)
    if resource_type == ResourceType.PHOTO:
        return await calculate_photo_analytics(db, resource_id)
    return None


async def _run_in_session(job: Callable[..., Awaitable[Any]], args: tuple) -> None:
    try:
        async with db_session.SessionLocal() as db:
            await job(db, *args)
    except Exception:
        logger.exception(
            "Background analytics job failed",
            extra={"context": {"job": getattr(job, "__name__", repr(job)), "args": list(args)}},
        )


def schedule(job: Callable[..., Awaitable[Any]], *args: Any) -> asyncio.Task:
    """Run `job(db, *args)` on its own session without blocking the caller."""
    task = asyncio.create_task(_run_in_session(job, args))
    _background.add(task)
    task.add_done_callback(_background.discard)
    return task


async def drain_background() -> None:
    while _background:
        await asyncio.gather(*list(_background), return_exceptions=True)
