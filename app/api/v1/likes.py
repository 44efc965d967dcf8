from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.common import MessageResponse
from app.schemas.engagement import LikeOut, LikeStatusOut
from app.services import likes
from app.services.auth import AuthUser, get_current_user, get_optional_user
from app.services.resources import LIKEABLE, parse_resource_type

router = APIRouter(prefix="/likes", tags=["likes"])


@router.post("/resources/{resource_type}/{resource_id}", response_model=LikeOut)
async def like_resource(
    resource_type: str,
    resource_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> LikeOut:
    row = await likes.like_resource(
        db, user_id=current_user.user_id, resource_type=resource_type, resource_id=resource_id
    )
    return likes.like_out(row)


@router.delete("/resources/{resource_type}/{resource_id}", response_model=MessageResponse)
async def unlike_resource(
    resource_type: str,
    resource_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> MessageResponse:
    await likes.unlike_resource(db, user_id=current_user.user_id, resource_type=resource_type, resource_id=resource_id)
    return MessageResponse(message="Like removed")


@router.get("/resources/{resource_type}/{resource_id}", response_model=LikeStatusOut)
async def like_status(
    resource_type: str,
    resource_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser | None = Depends(get_optional_user),
) -> LikeStatusOut:
    kind = parse_resource_type(resource_type, LIKEABLE)
    count = await likes.get_likes_count(db, resource_type=kind, resource_id=resource_id)
    is_liked = False
    if current_user is not None:
        is_liked = await likes.has_liked(db, user_id=current_user.user_id, resource_type=kind, resource_id=resource_id)
    return LikeStatusOut(resource_type=kind.value, resource_id=resource_id, likes_count=count, is_liked=is_liked)
