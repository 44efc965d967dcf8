from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.comment import CommentCreate, CommentOut, CommentUpdate
from app.schemas.common import MessageResponse, Page
from app.services import comments
from app.services.auth import AuthUser, get_current_user

router = APIRouter(prefix="/comments", tags=["comments"])


@router.post("/resources/{resource_type}/{resource_id}", response_model=CommentOut, status_code=201)
async def create_comment(
    resource_type: str,
    resource_id: int,
    payload: CommentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> CommentOut:
    row = await comments.create_comment(
        db,
        user_id=current_user.user_id,
        resource_type=resource_type,
        resource_id=resource_id,
        content=payload.content,
        parent_comment_id=payload.parent_comment_id,
    )
    return comments.comment_out(row)


@router.get("/resources/{resource_type}/{resource_id}", response_model=Page[CommentOut])
async def list_comments(
    resource_type: str,
    resource_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=comments.DEFAULT_PAGE_SIZE, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> Page[CommentOut]:
    return await comments.get_comments(
        db, resource_type=resource_type, resource_id=resource_id, page=page, limit=limit
    )


@router.get("/{comment_id}", response_model=CommentOut)
async def get_comment(comment_id: int, db: AsyncSession = Depends(get_db)) -> CommentOut:
    return await comments.get_comment(db, comment_id)


@router.patch("/{comment_id}", response_model=CommentOut)
async def update_comment(
    comment_id: int,
    payload: CommentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> CommentOut:
    row = await comments.update_comment(
        db, user_id=current_user.user_id, comment_id=comment_id, content=payload.content
    )
    return comments.comment_out(row)


@router.delete("/{comment_id}", response_model=MessageResponse)
async def delete_comment(
    comment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> MessageResponse:
    await comments.delete_comment(db, user_id=current_user.user_id, comment_id=comment_id)
    return MessageResponse(message="Comment deleted")
