from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import page_params
from app.db.session import get_db
from app.schemas.collection import CollectionCreate, CollectionOut, CollectionUpdate
from app.schemas.common import MessageResponse, Page, PageParams
from app.schemas.post import PostOut
from app.services import collections
from app.services.auth import AuthUser, get_current_user, get_optional_user

router = APIRouter(prefix="/collections", tags=["collections"])


@router.post("", response_model=CollectionOut, status_code=201)
async def create_collection(
    payload: CollectionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> CollectionOut:
    return await collections.create_collection(db, user_id=current_user.user_id, data=payload)


@router.get("/users/{user_id}", response_model=list[CollectionOut])
async def list_user_collections(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser | None = Depends(get_optional_user),
) -> list[CollectionOut]:
    viewer_id = current_user.user_id if current_user is not None else None
    return await collections.get_user_collections(db, owner_id=user_id, viewer_id=viewer_id)


@router.patch("/{collection_id}", response_model=CollectionOut)
async def update_collection(
    collection_id: int,
    payload: CollectionUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> CollectionOut:
    return await collections.update_collection(
        db, user_id=current_user.user_id, collection_id=collection_id, data=payload
    )


@router.delete("/{collection_id}", response_model=MessageResponse)
async def delete_collection(
    collection_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> MessageResponse:
    await collections.delete_collection(db, user_id=current_user.user_id, collection_id=collection_id)
    return MessageResponse(message="Collection deleted")


@router.get("/{collection_id}/posts", response_model=Page[PostOut])
async def collection_posts(
    collection_id: int,
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser | None = Depends(get_optional_user),
) -> Page[PostOut]:
    viewer_id = current_user.user_id if current_user is not None else None
    return await collections.get_collection_posts(
        db, collection_id=collection_id, params=params, viewer_id=viewer_id
    )


@router.post("/{collection_id}/posts/{post_id}", response_model=CollectionOut)
async def add_post(
    collection_id: int,
    post_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> CollectionOut:
    return await collections.add_post_to_collection(
        db, user_id=current_user.user_id, collection_id=collection_id, post_id=post_id
    )


@router.delete("/{collection_id}/posts/{post_id}", response_model=CollectionOut)
async def remove_post(
    collection_id: int,
    post_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
) -> CollectionOut:
    return await collections.remove_post_from_collection(
        db, user_id=current_user.user_id, collection_id=collection_id, post_id=post_id
    )
