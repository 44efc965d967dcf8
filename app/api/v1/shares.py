from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.common import MessageResponse
from app.schemas.engagement import ShareIn, ShareOut, ShareStatusOut
from app.services import shares
from app.services.auth import AuthUser, get_current_user, get_optional_user
from app.services.resources import SHAREABLE, parse_resource_type

router = APIRouter(prefix="/shares", tags=["shares"])


@router.post("/resources/{resource_type}/{resource_id}", response_model=ShareOut, status_code=201)
async def share_resource(
    resource_type: str,
    resource_id: int,
    payload: ShareIn | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> ShareOut:
    row = await shares.share_resource(
        db,
        user_id=current_user.user_id,
        resource_type=resource_type,
        resource_id=resource_id,
        comment=payload.comment if payload is not None else None,
    )
    return shares.share_out(row)


@router.delete("/resources/{resource_type}/{resource_id}", response_model=MessageResponse)
async def unshare_resource(
    resource_type: str,
    resource_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> MessageResponse:
    await shares.unshare_resource(
        db, user_id=current_user.user_id, resource_type=resource_type, resource_id=resource_id
    )
    return MessageResponse(message="Share removed")


@router.get("/resources/{resource_type}/{resource_id}", response_model=ShareStatusOut)
async def share_status(
    resource_type: str,
    resource_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser | None = Depends(get_optional_user),
) -> ShareStatusOut:
    kind = parse_resource_type(resource_type, SHAREABLE)
    count = await shares.get_shares_count(db, resource_type=kind, resource_id=resource_id)
    is_shared = False
    if current_user is not None:
        is_shared = await shares.has_shared(
            db, user_id=current_user.user_id, resource_type=kind, resource_id=resource_id
        )
    return ShareStatusOut(resource_type=kind.value, resource_id=resource_id, shares_count=count, is_shared=is_shared)
