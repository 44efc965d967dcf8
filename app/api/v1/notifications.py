from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.common import MessageResponse, Page
from app.schemas.notification import NotificationOut
from app.services import notifications
from app.services.auth import AuthUser, get_current_user

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=Page[NotificationOut])
async def list_notifications(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    unread_only: bool = False,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> Page[NotificationOut]:
    return await notifications.list_notifications(
        db, user_id=current_user.user_id, page=page, limit=limit, unread_only=unread_only
    )


@router.post("/{notification_id}/read", response_model=NotificationOut)
async def mark_notification_read(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> NotificationOut:
    return await notifications.mark_read(db, user_id=current_user.user_id, notification_id=notification_id)


@router.post("/read-all", response_model=MessageResponse)
async def mark_all_notifications_read(
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> MessageResponse:
    count = await notifications.mark_all_read(db, user_id=current_user.user_id)
    return MessageResponse(message=f"{count} notifications marked as read")
