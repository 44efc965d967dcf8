from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.social import REPORT_REASONS, Post, Report
from app.schemas.common import as_iso
from app.schemas.post import ReportOut
from app.services import analytics
from app.services.cache import cache
from app.services.resources import ResourceType, bump_counter
from app.services.sanitize import sanitize_optional_text

logger = logging.getLogger(__name__)


def report_out(row: Report) -> ReportOut:
    return ReportOut(
        id=row.id,
        post_id=row.post_id,
        user_id=row.user_id,
        reason=row.reason,
        description=row.description,
        status=row.status,
        created_at=as_iso(row.created_at),
    )


async def report_post(
    db: AsyncSession,
    *,
    user_id: int,
    post_id: int,
    reason: str,
    description: str | None = None,
) -> Report:
    try:
        if reason not in REPORT_REASONS:
            raise HTTPException(status_code=400, detail=f"Invalid report reason: {reason}")
        post = (await db.execute(select(Post).where(Post.id == post_id))).scalar_one_or_none()
        if post is None:
            raise HTTPException(status_code=404, detail="Post not found")
        if post.author_id == user_id:
            raise HTTPException(status_code=400, detail="You cannot report your own post")

        existing = (
            await db.execute(select(Report.id).where(Report.user_id == user_id, Report.post_id == post_id))
        ).scalar_one_or_none()
        if existing is not None:
            raise HTTPException(status_code=400, detail="You have already reported this post")

        row = Report(
            user_id=user_id,
            post_id=post_id,
            reason=reason,
            description=sanitize_optional_text(description),
            status="pending",
        )
        db.add(row)
        try:
            await db.flush()
        except IntegrityError as exc:
            await db.rollback()
            raise HTTPException(status_code=400, detail="You have already reported this post") from exc
        await bump_counter(db, ResourceType.POST, post_id, "reports_count", 1)
        await db.commit()
        await db.refresh(row)
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to report post", extra={"context": {"user_id": user_id, "post_id": post_id}})
        raise HTTPException(status_code=500, detail="Failed to report post") from exc

    await cache.invalidate_by_tags("post", f"post:{post_id}")
    logger.info(
        "Post reported",
        extra={"context": {"user_id": user_id, "post_id": post_id, "report_id": row.id, "reason": reason}},
    )
    analytics.schedule(analytics.calculate_post_analytics, post_id)
    return row
