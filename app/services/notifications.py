from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import session as db_session
from app.models.notification import Notification
from app.schemas.common import Page, as_iso, build_meta
from app.schemas.notification import NotificationOut
from app.services.events import EngagementEvent, ResourceCommented, ResourceLiked, ResourceShared, event_bus

logger = logging.getLogger(__name__)

_TITLES = {
    "liked": "New like",
    "commented": "New comment",
    "shared": "New share",
}


def notification_out(row: Notification) -> NotificationOut:
    return NotificationOut(
        id=row.id,
        user_id=row.user_id,
        kind=row.kind,
        title=row.title,
        body=row.body,
        actor_id=row.actor_id,
        payload=row.payload or {},
        is_read=row.is_read,
        created_at=as_iso(row.created_at),
    )


async def create_notification(
    db: AsyncSession,
    *,
    user_id: int,
    kind: str,
    title: str,
    body: str,
    actor_id: int | None = None,
    payload: dict | None = None,
) -> Notification:
    row = Notification(
        user_id=user_id,
        actor_id=actor_id,
        kind=kind,
        title=title,
        body=body,
        payload=payload or {},
    )
    db.add(row)
    await db.commit()
    await db.refresh(row)
    return row


async def persist_engagement(event: EngagementEvent) -> None:
    """Event listener; writes the owner's notification on its own session."""
    body = f"User {event.actor_id} {event.verb} your {event.resource_type}"
    try:
        async with db_session.SessionLocal() as db:
            await create_notification(
                db,
                user_id=event.owner_id,
                actor_id=event.actor_id,
                kind=event.name,
                title=_TITLES.get(event.verb, "New activity"),
                body=body,
                payload=event.payload(),
            )
    except Exception:
        logger.exception(
            "Failed to persist notification",
            extra={"context": {"event": event.name, "owner_id": event.owner_id}},
        )


def register_notification_listeners() -> None:
    for event_type in (ResourceLiked, ResourceCommented, ResourceShared):
        event_bus.subscribe(event_type, persist_engagement)


async def list_notifications(
    db: AsyncSession, *, user_id: int, page: int = 1, limit: int = 20, unread_only: bool = False
) -> Page[NotificationOut]:
    where = [Notification.user_id == user_id]
    if unread_only:
        where.append(Notification.is_read.is_(False))
    total = int((await db.execute(select(func.count()).select_from(Notification).where(*where))).scalar_one() or 0)
    rows = (
        await db.execute(
            select(Notification)
            .where(*where)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
    ).scalars().all()
    return Page[NotificationOut](data=[notification_out(r) for r in rows], meta=build_meta(total, page, limit))


async def mark_read(db: AsyncSession, *, user_id: int, notification_id: int) -> NotificationOut:
    row = (
        await db.execute(
            select(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
        )
    ).scalar_one_or_none()
    if row is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    row.is_read = True
    await db.commit()
    await db.refresh(row)
    return notification_out(row)


async def mark_all_read(db: AsyncSession, *, user_id: int) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    await db.commit()
    return int(result.rowcount or 0)
