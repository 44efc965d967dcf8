from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.social import Share
from app.schemas.common import as_iso
from app.schemas.engagement import ShareOut
from app.services import analytics
from app.services.cache import cache
from app.services.events import ResourceShared, event_bus
from app.services.resources import SHAREABLE, ResourceType, bump_counter, get_resource, parse_resource_type
from app.services.sanitize import sanitize_optional_text

logger = logging.getLogger(__name__)


def share_out(row: Share) -> ShareOut:
    return ShareOut(
        id=row.id,
        user_id=row.user_id,
        resource_type=row.resource_type,
        resource_id=row.resource_id,
        comment=row.comment,
        created_at=as_iso(row.created_at),
    )


def _tags(resource_type: ResourceType, resource_id: int, user_id: int) -> list[str]:
    tags = [
        "share",
        f"{resource_type.value}:{resource_id}",
        f"{resource_type.value}:{resource_id}:shares",
        f"user:{user_id}:shares",
    ]
    if resource_type == ResourceType.POST:
        tags.append("post")
    return tags


async def _find_share(db: AsyncSession, user_id: int, resource_type: ResourceType, resource_id: int) -> Share | None:
    return (
        await db.execute(
            select(Share).where(
                Share.user_id == user_id,
                Share.resource_type == resource_type.value,
                Share.resource_id == resource_id,
            )
        )
    ).scalar_one_or_none()


async def share_resource(
    db: AsyncSession,
    *,
    user_id: int,
    resource_type: str | ResourceType,
    resource_id: int,
    comment: str | None = None,
) -> Share:
    kind = parse_resource_type(resource_type, SHAREABLE)
    label = kind.value.capitalize()
    try:
        resource = await get_resource(db, kind, resource_id)
        if resource.owner_id == user_id:
            raise HTTPException(status_code=400, detail="You cannot share your own content")
        if await _find_share(db, user_id, kind, resource_id) is not None:
            raise HTTPException(status_code=400, detail=f"{label} already shared")

        row = Share(
            user_id=user_id,
            resource_type=kind.value,
            resource_id=resource_id,
            comment=sanitize_optional_text(comment),
        )
        db.add(row)
        try:
            await db.flush()
        except IntegrityError as exc:
            await db.rollback()
            raise HTTPException(status_code=400, detail=f"{label} already shared") from exc
        await bump_counter(db, kind, resource_id, "shares_count", 1)
        await db.commit()
        await db.refresh(row)
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception(
            "Failed to share resource",
            extra={"context": {"user_id": user_id, "resource_type": kind.value, "resource_id": resource_id}},
        )
        raise HTTPException(status_code=500, detail="Failed to share resource") from exc

    await cache.invalidate_by_tags(*_tags(kind, resource_id, user_id))
    await event_bus.publish(
        ResourceShared(
            actor_id=user_id,
            owner_id=resource.owner_id,
            resource_type=kind.value,
            resource_id=resource_id,
            share_id=row.id,
        )
    )
    analytics.schedule(analytics.recalculate_resource, kind, resource_id)
    return row


async def unshare_resource(
    db: AsyncSession, *, user_id: int, resource_type: str | ResourceType, resource_id: int
) -> None:
    kind = parse_resource_type(resource_type, SHAREABLE)
    try:
        existing = await _find_share(db, user_id, kind, resource_id)
        if existing is None:
            raise HTTPException(status_code=400, detail=f"{kind.value.capitalize()} not shared by user")
        result = await db.execute(delete(Share).where(Share.id == existing.id))
        if result.rowcount:
            await bump_counter(db, kind, resource_id, "shares_count", -1)
        await db.commit()
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception(
            "Failed to unshare resource",
            extra={"context": {"user_id": user_id, "resource_type": kind.value, "resource_id": resource_id}},
        )
        raise HTTPException(status_code=500, detail="Failed to unshare resource") from exc

    await cache.invalidate_by_tags(*_tags(kind, resource_id, user_id))
    analytics.schedule(analytics.recalculate_resource, kind, resource_id)


async def has_shared(db: AsyncSession, *, user_id: int, resource_type: str | ResourceType, resource_id: int) -> bool:
    kind = parse_resource_type(resource_type, SHAREABLE)
    return await _find_share(db, user_id, kind, resource_id) is not None


async def get_shares_count(db: AsyncSession, *, resource_type: str | ResourceType, resource_id: int) -> int:
    kind = parse_resource_type(resource_type, SHAREABLE)
    return int(
        (
            await db.execute(
                select(func.count())
                .select_from(Share)
                .where(Share.resource_type == kind.value, Share.resource_id == resource_id)
            )
        ).scalar_one()
        or 0
    )


async def get_shares_for_resources(
    db: AsyncSession,
    *,
    user_id: int | None,
    resource_type: str | ResourceType,
    resource_ids: list[int],
) -> set[int]:
    if user_id is None or not resource_ids:
        return set()
    kind = parse_resource_type(resource_type, SHAREABLE)
    rows = (
        await db.execute(
            select(Share.resource_id).where(
                Share.user_id == user_id,
                Share.resource_type == kind.value,
                Share.resource_id.in_(resource_ids),
            )
        )
    ).scalars().all()
    return set(rows)
