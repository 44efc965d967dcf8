from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.common import utcnow
from app.models.media import Video
from app.services import storage
from app.services.cache import cache

logger = logging.getLogger(__name__)

VIDEO_MIME_TYPES = frozenset({"video/mp4", "video/webm", "video/quicktime"})


async def create_video_from_uploaded_file(
    db: AsyncSession,
    *,
    user_id: int,
    video_url: str,
    storage_key: str,
    mime_type: str,
    size_bytes: int,
    title: str,
    source_post_id: int | None = None,
) -> Video:
    row = Video(
        owner_id=user_id,
        title=title[:255],
        video_url=video_url,
        storage_key=storage_key,
        mime_type=mime_type,
        size_bytes=size_bytes,
        status="ready",
        source_post_id=source_post_id,
    )
    db.add(row)
    await db.commit()
    await db.refresh(row)
    await cache.invalidate_by_tags("video", f"user:{user_id}:videos")
    return row


async def find_ready_videos(db: AsyncSession, *, user_id: int, video_ids: list[int]) -> list[Video]:
    """Load the user's own videos in one query; missing ids are a BadRequest."""
    if not video_ids:
        return []
    rows = (
        await db.execute(
            select(Video).where(Video.id.in_(video_ids), Video.owner_id == user_id, Video.deleted_at.is_(None))
        )
    ).scalars().all()
    found = {r.id for r in rows}
    missing = [str(v) for v in video_ids if v not in found]
    if missing:
        raise HTTPException(status_code=400, detail=f"Videos not found: {', '.join(missing)}")
    by_id = {r.id: r for r in rows}
    return [by_id[v] for v in dict.fromkeys(video_ids) if by_id[v].status == "ready" and by_id[v].video_url]


async def delete_video(db: AsyncSession, *, user_id: int, video_id: int) -> None:
    row = (
        await db.execute(select(Video).where(Video.id == video_id, Video.deleted_at.is_(None)))
    ).scalar_one_or_none()
    if row is None:
        raise HTTPException(status_code=404, detail="Video not found")
    if row.owner_id != user_id:
        raise HTTPException(status_code=403, detail="You can only delete your own videos")

    row.deleted_at = utcnow()
    await db.commit()

    if row.storage_key:
        try:
            await storage.delete_file(row.storage_key, user_id)
        except Exception:
            logger.exception(
                "Failed to delete stored video file",
                extra={"context": {"video_id": video_id, "key": row.storage_key}},
            )
    await cache.invalidate_by_tags("video", f"video:{video_id}", f"user:{user_id}:videos")


async def delete_videos_for_urls(db: AsyncSession, *, user_id: int, urls: list[str], post_id: int) -> int:
    """Best-effort cleanup of library videos derived from a post's media."""
    if not urls:
        return 0
    deleted = 0
    try:
        rows = (
            await db.execute(
                select(Video).where(
                    Video.owner_id == user_id,
                    Video.video_url.in_(urls),
                    Video.deleted_at.is_(None),
                )
            )
        ).scalars().all()
    except Exception:
        logger.exception(
            "Failed to load videos associated with post",
            extra={"context": {"post_id": post_id, "video_urls": urls}},
        )
        return 0

    for row in rows:
        try:
            await delete_video(db, user_id=user_id, video_id=row.id)
            deleted += 1
        except Exception:
            logger.exception(
                "Failed to delete video when deleting post",
                extra={"context": {"post_id": post_id, "video_id": row.id, "video_url": row.video_url}},
            )
    return deleted
