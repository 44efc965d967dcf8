from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.social import Like
from app.schemas.common import as_iso
from app.schemas.engagement import LikeOut
from app.services import analytics
from app.services.cache import cache
from app.services.events import ResourceLiked, event_bus
from app.services.resources import LIKEABLE, ResourceType, bump_counter, get_resource, parse_resource_type

logger = logging.getLogger(__name__)


def like_out(row: Like) -> LikeOut:
    return LikeOut(
        id=row.id,
        user_id=row.user_id,
        resource_type=row.resource_type,
        resource_id=row.resource_id,
        created_at=as_iso(row.created_at),
    )


def _tags(resource_type: ResourceType, resource_id: int, user_id: int, like_id: int | None = None) -> list[str]:
    tags = [
        "like",
        f"{resource_type.value}:{resource_id}",
        f"{resource_type.value}:{resource_id}:likes",
        f"user:{user_id}:likes",
    ]
    if like_id is not None:
        tags.insert(1, f"like:{like_id}")
    if resource_type == ResourceType.POST:
        tags.append("post")
    return tags


async def _find_like(db: AsyncSession, user_id: int, resource_type: ResourceType, resource_id: int) -> Like | None:
    return (
        await db.execute(
            select(Like).where(
                Like.user_id == user_id,
                Like.resource_type == resource_type.value,
                Like.resource_id == resource_id,
            )
        )
    ).scalar_one_or_none()


async def like_resource(db: AsyncSession, *, user_id: int, resource_type: str | ResourceType, resource_id: int) -> Like:
    kind = parse_resource_type(resource_type, LIKEABLE)
    try:
        resource = await get_resource(db, kind, resource_id)

        existing = await _find_like(db, user_id, kind, resource_id)
        if existing is not None:
            return existing

        row = Like(user_id=user_id, resource_type=kind.value, resource_id=resource_id)
        db.add(row)
        try:
            await db.flush()
        except IntegrityError:
            # A concurrent request inserted the same like first.
            await db.rollback()
            existing = await _find_like(db, user_id, kind, resource_id)
            if existing is None:
                raise
            return existing
        await bump_counter(db, kind, resource_id, "likes_count", 1)
        await db.commit()
        await db.refresh(row)
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception(
            "Failed to like resource",
            extra={"context": {"user_id": user_id, "resource_type": kind.value, "resource_id": resource_id}},
        )
        raise HTTPException(status_code=500, detail="Failed to like resource") from exc

    await cache.invalidate_by_tags(*_tags(kind, resource_id, user_id, row.id))
    if resource.owner_id != user_id:
        await event_bus.publish(
            ResourceLiked(
                actor_id=user_id,
                owner_id=resource.owner_id,
                resource_type=kind.value,
                resource_id=resource_id,
                like_id=row.id,
            )
        )
    analytics.schedule(analytics.recalculate_resource, kind, resource_id)
    return row


async def unlike_resource(
    db: AsyncSession, *, user_id: int, resource_type: str | ResourceType, resource_id: int
) -> None:
    kind = parse_resource_type(resource_type, LIKEABLE)
    try:
        existing = await _find_like(db, user_id, kind, resource_id)
        if existing is None:
            return
        like_id = existing.id
        result = await db.execute(delete(Like).where(Like.id == like_id))
        if result.rowcount:
            await bump_counter(db, kind, resource_id, "likes_count", -1)
        await db.commit()
    except Exception as exc:
        logger.exception(
            "Failed to unlike resource",
            extra={"context": {"user_id": user_id, "resource_type": kind.value, "resource_id": resource_id}},
        )
        raise HTTPException(status_code=500, detail="Failed to unlike resource") from exc

    await cache.invalidate_by_tags(*_tags(kind, resource_id, user_id, like_id))
    analytics.schedule(analytics.recalculate_resource, kind, resource_id)


async def has_liked(db: AsyncSession, *, user_id: int, resource_type: str | ResourceType, resource_id: int) -> bool:
    kind = parse_resource_type(resource_type, LIKEABLE)
    return await _find_like(db, user_id, kind, resource_id) is not None


async def get_likes_count(db: AsyncSession, *, resource_type: str | ResourceType, resource_id: int) -> int:
    kind = parse_resource_type(resource_type, LIKEABLE)
    return int(
        (
            await db.execute(
                select(func.count())
                .select_from(Like)
                .where(Like.resource_type == kind.value, Like.resource_id == resource_id)
            )
        ).scalar_one()
        or 0
    )


async def get_likes_for_resources(
    db: AsyncSession,
    *,
    user_id: int | None,
    resource_type: str | ResourceType,
    resource_ids: list[int],
) -> set[int]:
    """Ids among `resource_ids` that the user has liked, in one query."""
    if user_id is None or not resource_ids:
        return set()
    kind = parse_resource_type(resource_type, LIKEABLE)
    rows = (
        await db.execute(
            select(Like.resource_id).where(
                Like.user_id == user_id,
                Like.resource_type == kind.value,
                Like.resource_id.in_(resource_ids),
            )
        )
    ).scalars().all()
    return set(rows)
