from __future__ import annotations

import logging
from collections import defaultdict

from fastapi import HTTPException
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.common import utcnow
from app.models.social import Comment
from app.schemas.comment import CommentOut
from app.schemas.common import Page, as_iso, build_meta
from app.services import analytics
from app.services.cache import cache
from app.services.events import ResourceCommented, event_bus
from app.services.resources import (
    COMMENTABLE,
    ResourceInfo,
    ResourceType,
    bump_counter,
    find_resource,
    parse_resource_type,
)
from app.services.sanitize import sanitize_text
from app.services.users import ensure_user

logger = logging.getLogger(__name__)

MAX_REPLIES_PER_COMMENT = 10
DEFAULT_PAGE_SIZE = 20


def comment_out(row: Comment, replies: list[Comment] | None = None) -> CommentOut:
    return CommentOut(
        id=row.id,
        resource_type=row.resource_type,
        resource_id=row.resource_id,
        author_id=row.author_id,
        content=row.content,
        is_edited=row.is_edited,
        parent_comment_id=row.parent_comment_id,
        likes_count=row.likes_count,
        replies_count=row.replies_count,
        created_at=as_iso(row.created_at),
        updated_at=as_iso(row.updated_at),
        replies=[comment_out(r) for r in (replies or [])],
    )


async def _require_resource(db: AsyncSession, kind: ResourceType, resource_id: int) -> ResourceInfo:
    info = await find_resource(db, kind, resource_id)
    if info is None:
        raise HTTPException(status_code=404, detail=f"{kind.value} with ID {resource_id} not found")
    return info


async def _get_live_comment(db: AsyncSession, comment_id: int) -> Comment:
    row = (
        await db.execute(select(Comment).where(Comment.id == comment_id, Comment.deleted_at.is_(None)))
    ).scalar_one_or_none()
    if row is None:
        raise HTTPException(status_code=404, detail="Comment not found")
    return row


def _tags(kind: str, resource_id: int, comment_id: int) -> list[str]:
    return ["comment", f"comment:{comment_id}", f"{kind}:{resource_id}", f"{kind}:{resource_id}:comments"]


async def _replies_by_parent(db: AsyncSession, parent_ids: list[int]) -> dict[int, list[Comment]]:
    if not parent_ids:
        return {}
    rows = (
        await db.execute(
            select(Comment)
            .where(Comment.parent_comment_id.in_(parent_ids), Comment.deleted_at.is_(None))
            .order_by(Comment.created_at.asc(), Comment.id.asc())
        )
    ).scalars().all()
    grouped: dict[int, list[Comment]] = defaultdict(list)
    for row in rows:
        if len(grouped[row.parent_comment_id]) < MAX_REPLIES_PER_COMMENT:
            grouped[row.parent_comment_id].append(row)
    return grouped


async def create_comment(
    db: AsyncSession,
    *,
    user_id: int,
    resource_type: str | ResourceType,
    resource_id: int,
    content: str,
    parent_comment_id: int | None = None,
) -> Comment:
    kind = parse_resource_type(resource_type, COMMENTABLE)
    try:
        resource = await _require_resource(db, kind, resource_id)
        if not resource.allows_comments:
            raise HTTPException(status_code=403, detail=f"Comments are disabled for this {kind.value}")
        await ensure_user(db, user_id)

        clean = sanitize_text(content)
        if not clean:
            raise HTTPException(status_code=400, detail="Comment content is required")

        try:
            if parent_comment_id is not None:
                parent = (
                    await db.execute(
                        select(Comment).where(
                            Comment.id == parent_comment_id,
                            Comment.resource_type == kind.value,
                            Comment.resource_id == resource_id,
                            Comment.deleted_at.is_(None),
                        )
                    )
                ).scalar_one_or_none()
                if parent is None:
                    raise HTTPException(status_code=404, detail="Parent comment not found")
                if parent.parent_comment_id is not None:
                    raise HTTPException(status_code=400, detail="Replies can only be one level deep")

            row = Comment(
                resource_type=kind.value,
                resource_id=resource_id,
                author_id=user_id,
                content=clean,
                parent_comment_id=parent_comment_id,
            )
            db.add(row)
            await db.flush()
            if parent_comment_id is not None:
                await bump_counter(db, ResourceType.COMMENT, parent_comment_id, "replies_count", 1)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        await db.refresh(row)
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception(
            "Failed to create comment",
            extra={"context": {"user_id": user_id, "resource_type": kind.value, "resource_id": resource_id}},
        )
        raise HTTPException(status_code=500, detail="Failed to create comment") from exc

    await cache.invalidate_by_tags(*_tags(kind.value, resource_id, row.id))

    if resource.owner_id != user_id:
        await event_bus.publish(
            ResourceCommented(
                actor_id=user_id,
                owner_id=resource.owner_id,
                resource_type=kind.value,
                resource_id=resource_id,
                comment_id=row.id,
                parent_comment_id=parent_comment_id,
            )
        )

    try:
        await analytics.recalculate_resource(db, kind, resource_id)
    except Exception:
        logger.exception(
            "Analytics recalculation after comment failed",
            extra={"context": {"resource_type": kind.value, "resource_id": resource_id}},
        )
    return row


async def get_comments(
    db: AsyncSession,
    *,
    resource_type: str | ResourceType,
    resource_id: int,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> Page[CommentOut]:
    kind = parse_resource_type(resource_type, COMMENTABLE)
    try:
        await _require_resource(db, kind, resource_id)

        where = (
            Comment.resource_type == kind.value,
            Comment.resource_id == resource_id,
            Comment.parent_comment_id.is_(None),
            Comment.deleted_at.is_(None),
        )
        total = int((await db.execute(select(func.count()).select_from(Comment).where(*where))).scalar_one() or 0)
        rows = (
            await db.execute(
                select(Comment)
                .where(*where)
                .order_by(Comment.created_at.desc(), Comment.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
        ).scalars().all()
        replies = await _replies_by_parent(db, [r.id for r in rows])
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception(
            "Failed to get comments",
            extra={"context": {"resource_type": kind.value, "resource_id": resource_id}},
        )
        raise HTTPException(status_code=500, detail="Failed to get comments") from exc

    return Page[CommentOut](
        data=[comment_out(r, replies.get(r.id, [])) for r in rows],
        meta=build_meta(total, page, limit),
    )


async def get_comment(db: AsyncSession, comment_id: int) -> CommentOut:
    row = await _get_live_comment(db, comment_id)
    replies = await _replies_by_parent(db, [row.id])
    return comment_out(row, replies.get(row.id, []))


async def update_comment(db: AsyncSession, *, user_id: int, comment_id: int, content: str) -> Comment:
    try:
        row = await _get_live_comment(db, comment_id)
        if row.author_id != user_id:
            raise HTTPException(status_code=403, detail="You can only edit your own comments")
        clean = sanitize_text(content)
        if not clean:
            raise HTTPException(status_code=400, detail="Comment content is required")
        row.content = clean
        row.is_edited = True
        await db.commit()
        await db.refresh(row)
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to update comment", extra={"context": {"user_id": user_id, "comment_id": comment_id}})
        raise HTTPException(status_code=500, detail="Failed to update comment") from exc

    await cache.invalidate_by_tags(*_tags(row.resource_type, row.resource_id, row.id))
    return row


async def delete_comment(db: AsyncSession, *, user_id: int, comment_id: int) -> int:
    """Soft-delete a comment together with its replies; returns how many rows were removed."""
    try:
        row = await _get_live_comment(db, comment_id)
        if row.author_id != user_id:
            raise HTTPException(status_code=403, detail="You can only delete your own comments")

        kind = ResourceType(row.resource_type)
        resource_id = row.resource_id
        now = utcnow()
        try:
            if row.parent_comment_id is not None:
                await bump_counter(db, ResourceType.COMMENT, row.parent_comment_id, "replies_count", -1)
            replies = await db.execute(
                update(Comment)
                .where(Comment.parent_comment_id == row.id, Comment.deleted_at.is_(None))
                .values(deleted_at=now)
                .execution_options(synchronize_session=False)
            )
            row.deleted_at = now
            removed = 1 + int(replies.rowcount or 0)
            await bump_counter(db, kind, resource_id, "comments_count", -removed)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to delete comment", extra={"context": {"user_id": user_id, "comment_id": comment_id}})
        raise HTTPException(status_code=500, detail="Failed to delete comment") from exc

    await cache.invalidate_by_tags(*_tags(kind.value, resource_id, comment_id))
    analytics.schedule(analytics.recalculate_resource, kind, resource_id)
    try:
        await analytics.calculate_user_analytics(db, user_id)
    except Exception:
        logger.exception("User analytics recalculation failed", extra={"context": {"user_id": user_id}})
    return removed
