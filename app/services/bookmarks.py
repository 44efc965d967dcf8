from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.social import Bookmark, Post
from app.schemas.common import as_iso
from app.schemas.post import BookmarkOut
from app.services import analytics
from app.services.cache import cache
from app.services.resources import ResourceType, bump_counter
from app.services.sanitize import sanitize_optional_text

logger = logging.getLogger(__name__)


def bookmark_out(row: Bookmark) -> BookmarkOut:
    return BookmarkOut(
        id=row.id,
        post_id=row.post_id,
        user_id=row.user_id,
        note=row.note,
        created_at=as_iso(row.created_at),
    )


async def _find_bookmark(db: AsyncSession, user_id: int, post_id: int) -> Bookmark | None:
    return (
        await db.execute(select(Bookmark).where(Bookmark.user_id == user_id, Bookmark.post_id == post_id))
    ).scalar_one_or_none()


async def bookmark_post(db: AsyncSession, *, user_id: int, post_id: int, note: str | None = None) -> Bookmark:
    try:
        post = (await db.execute(select(Post.id).where(Post.id == post_id))).scalar_one_or_none()
        if post is None:
            raise HTTPException(status_code=404, detail="Post not found")
        if await _find_bookmark(db, user_id, post_id) is not None:
            raise HTTPException(status_code=400, detail="Post already bookmarked")

        row = Bookmark(user_id=user_id, post_id=post_id, note=sanitize_optional_text(note))
        db.add(row)
        try:
            await db.flush()
        except IntegrityError as exc:
            await db.rollback()
            raise HTTPException(status_code=400, detail="Post already bookmarked") from exc
        await bump_counter(db, ResourceType.POST, post_id, "bookmarks_count", 1)
        await db.commit()
        await db.refresh(row)
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to bookmark post", extra={"context": {"user_id": user_id, "post_id": post_id}})
        raise HTTPException(status_code=500, detail="Failed to bookmark post") from exc

    await cache.invalidate_by_tags("post", f"post:{post_id}", f"user:{user_id}:bookmarks")
    analytics.schedule(analytics.calculate_post_analytics, post_id)
    return row


async def unbookmark_post(db: AsyncSession, *, user_id: int, post_id: int) -> None:
    try:
        row = await _find_bookmark(db, user_id, post_id)
        if row is None:
            raise HTTPException(status_code=404, detail="Bookmark not found")
        result = await db.execute(delete(Bookmark).where(Bookmark.id == row.id))
        if result.rowcount:
            await bump_counter(db, ResourceType.POST, post_id, "bookmarks_count", -1)
        await db.commit()
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to unbookmark post", extra={"context": {"user_id": user_id, "post_id": post_id}})
        raise HTTPException(status_code=500, detail="Failed to unbookmark post") from exc

    await cache.invalidate_by_tags("post", f"post:{post_id}", f"user:{user_id}:bookmarks")
    analytics.schedule(analytics.calculate_post_analytics, post_id)
