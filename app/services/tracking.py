from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from fastapi import Request
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.analytics import ViewTrack
from app.models.common import utcnow

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ViewerContext:
    ip_address: str | None = None
    user_agent: str | None = None
    referrer: str | None = None


def viewer_context_from_request(request: Request, referrer: str | None = None) -> ViewerContext:
    forwarded = request.headers.get("x-forwarded-for", "")
    ip = forwarded.split(",")[0].strip() if forwarded else ""
    if not ip and request.client is not None:
        ip = request.client.host
    return ViewerContext(
        ip_address=ip or None,
        user_agent=(request.headers.get("user-agent") or "")[:500] or None,
        referrer=(referrer or request.headers.get("referer") or "")[:1200] or None,
    )


async def has_recent_view(
    db: AsyncSession,
    *,
    resource_type: str,
    resource_id: int,
    viewer_user_id: int | None,
    ip_address: str | None,
    window_minutes: int,
) -> bool:
    if viewer_user_id is None and not ip_address:
        return False
    window_start = utcnow() - timedelta(minutes=window_minutes)
    stmt = (
        select(func.count())
        .select_from(ViewTrack)
        .where(
            ViewTrack.resource_type == resource_type,
            ViewTrack.resource_id == resource_id,
            ViewTrack.created_at >= window_start,
        )
    )
    if viewer_user_id is not None:
        stmt = stmt.where(ViewTrack.viewer_user_id == viewer_user_id)
    else:
        stmt = stmt.where(ViewTrack.ip_address == ip_address)
    return int((await db.execute(stmt)).scalar_one() or 0) > 0


async def track_view(
    db: AsyncSession,
    *,
    resource_type: str,
    resource_id: int,
    owner_id: int,
    viewer: ViewerContext,
    viewer_user_id: int | None = None,
    window_minutes: int | None = None,
) -> bool:
    """Record a view unless the same viewer was seen inside the window. Returns whether it was recorded.

    The row is added to the session but not committed.
    """
    window = settings.view_dedup_window_minutes if window_minutes is None else window_minutes
    if await has_recent_view(
        db,
        resource_type=resource_type,
        resource_id=resource_id,
        viewer_user_id=viewer_user_id,
        ip_address=viewer.ip_address,
        window_minutes=window,
    ):
        return False

    db.add(
        ViewTrack(
            resource_type=resource_type,
            resource_id=resource_id,
            owner_id=owner_id,
            viewer_user_id=viewer_user_id,
            ip_address=viewer.ip_address,
            user_agent=viewer.user_agent,
            referrer=viewer.referrer,
        )
    )
    await db.flush()
    return True
