from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy import delete, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.social import Collection, Post, collection_posts
from app.schemas.collection import CollectionCreate, CollectionOut, CollectionUpdate
from app.schemas.common import Page, PageParams, as_iso
from app.schemas.post import PostOut
from app.services.cache import cache
from app.services.posts import paginate_posts
from app.services.sanitize import sanitize_optional_text, sanitize_optional_url, sanitize_text

logger = logging.getLogger(__name__)

COLLECTION_SORT_FIELDS = ("created_at", "likes_count", "comments_count", "views_count")


def collection_out(row: Collection, posts_count: int) -> CollectionOut:
    return CollectionOut(
        id=row.id,
        owner_id=row.owner_id,
        name=row.name,
        description=row.description,
        is_public=row.is_public,
        cover_image=row.cover_image,
        posts_count=posts_count,
        created_at=as_iso(row.created_at),
        updated_at=as_iso(row.updated_at),
    )


async def posts_count(db: AsyncSession, collection_id: int) -> int:
    return int(
        (
            await db.execute(
                select(func.count())
                .select_from(collection_posts)
                .where(collection_posts.c.collection_id == collection_id)
            )
        ).scalar_one()
        or 0
    )


async def _counts(db: AsyncSession, collection_ids: list[int]) -> dict[int, int]:
    if not collection_ids:
        return {}
    rows = (
        await db.execute(
            select(collection_posts.c.collection_id, func.count())
            .where(collection_posts.c.collection_id.in_(collection_ids))
            .group_by(collection_posts.c.collection_id)
        )
    ).all()
    return {cid: int(n) for cid, n in rows}


async def _owned_collection(db: AsyncSession, collection_id: int, user_id: int) -> Collection:
    row = (
        await db.execute(select(Collection).where(Collection.id == collection_id, Collection.owner_id == user_id))
    ).scalar_one_or_none()
    if row is None:
        raise HTTPException(status_code=404, detail="Collection not found")
    return row


async def _invalidate(collection_id: int, user_id: int) -> None:
    await cache.invalidate_by_tags("collection", f"collection:{collection_id}", f"user:{user_id}:collections")


async def create_collection(db: AsyncSession, *, user_id: int, data: CollectionCreate) -> CollectionOut:
    name = sanitize_text(data.name)
    if not name:
        raise HTTPException(status_code=400, detail="Collection name is required")
    try:
        row = Collection(
            owner_id=user_id,
            name=name,
            description=sanitize_optional_text(data.description),
            is_public=data.is_public,
            cover_image=sanitize_optional_url(data.cover_image),
        )
        db.add(row)
        await db.commit()
        await db.refresh(row)
    except Exception as exc:
        logger.exception("Failed to create collection", extra={"context": {"user_id": user_id}})
        raise HTTPException(status_code=500, detail="Failed to create collection") from exc

    await _invalidate(row.id, user_id)
    return collection_out(row, 0)


async def update_collection(
    db: AsyncSession, *, user_id: int, collection_id: int, data: CollectionUpdate
) -> CollectionOut:
    row = await _owned_collection(db, collection_id, user_id)
    fields = data.model_dump(exclude_unset=True)
    if "name" in fields and data.name is not None:
        name = sanitize_text(data.name)
        if not name:
            raise HTTPException(status_code=400, detail="Collection name is required")
        row.name = name
    if "description" in fields:
        row.description = sanitize_optional_text(data.description)
    if "cover_image" in fields:
        row.cover_image = sanitize_optional_url(data.cover_image)
    if data.is_public is not None:
        row.is_public = data.is_public
    await db.commit()
    await db.refresh(row)

    await _invalidate(collection_id, user_id)
    return collection_out(row, await posts_count(db, collection_id))


async def delete_collection(db: AsyncSession, *, user_id: int, collection_id: int) -> None:
    await _owned_collection(db, collection_id, user_id)
    await db.execute(delete(collection_posts).where(collection_posts.c.collection_id == collection_id))
    await db.execute(delete(Collection).where(Collection.id == collection_id))
    await db.commit()
    await _invalidate(collection_id, user_id)


async def get_user_collections(db: AsyncSession, *, owner_id: int, viewer_id: int | None = None) -> list[CollectionOut]:
    stmt = select(Collection).where(Collection.owner_id == owner_id)
    if viewer_id != owner_id:
        stmt = stmt.where(Collection.is_public.is_(True))
    rows = (await db.execute(stmt.order_by(Collection.created_at.desc(), Collection.id.desc()))).scalars().all()
    counts = await _counts(db, [r.id for r in rows])
    return [collection_out(r, counts.get(r.id, 0)) for r in rows]


async def add_post_to_collection(db: AsyncSession, *, user_id: int, collection_id: int, post_id: int) -> CollectionOut:
    try:
        collection = await _owned_collection(db, collection_id, user_id)
        post = (await db.execute(select(Post).where(Post.id == post_id))).scalar_one_or_none()
        if post is None:
            raise HTTPException(status_code=404, detail="Post not found")
        if post.is_draft:
            raise HTTPException(status_code=400, detail="Cannot add draft posts to collections")
        if post.is_archived:
            raise HTTPException(status_code=400, detail="Cannot add archived posts to collections")

        present = (
            await db.execute(
                select(collection_posts.c.post_id).where(
                    collection_posts.c.collection_id == collection_id,
                    collection_posts.c.post_id == post_id,
                )
            )
        ).scalar_one_or_none()
        if present is not None:
            raise HTTPException(status_code=400, detail="Post already in collection")

        await db.execute(insert(collection_posts).values(collection_id=collection_id, post_id=post_id))
        await db.commit()
    except HTTPException:
        raise
    except Exception as exc:
        await db.rollback()
        logger.exception(
            "Failed to add post to collection",
            extra={"context": {"user_id": user_id, "collection_id": collection_id, "post_id": post_id}},
        )
        raise HTTPException(status_code=500, detail="Failed to add post to collection") from exc

    await _invalidate(collection_id, user_id)
    return collection_out(collection, await posts_count(db, collection_id))


async def remove_post_from_collection(
    db: AsyncSession, *, user_id: int, collection_id: int, post_id: int
) -> CollectionOut:
    try:
        collection = await _owned_collection(db, collection_id, user_id)
        result = await db.execute(
            delete(collection_posts).where(
                collection_posts.c.collection_id == collection_id,
                collection_posts.c.post_id == post_id,
            )
        )
        if not result.rowcount:
            await db.rollback()
            raise HTTPException(status_code=404, detail="Post not found in collection")
        await db.commit()
    except HTTPException:
        raise
    except Exception as exc:
        await db.rollback()
        logger.exception(
            "Failed to remove post from collection",
            extra={"context": {"user_id": user_id, "collection_id": collection_id, "post_id": post_id}},
        )
        raise HTTPException(status_code=500, detail="Failed to remove post from collection") from exc

    await _invalidate(collection_id, user_id)
    return collection_out(collection, await posts_count(db, collection_id))


async def get_collection_posts(
    db: AsyncSession, *, collection_id: int, params: PageParams, viewer_id: int | None = None
) -> Page[PostOut]:
    collection = (await db.execute(select(Collection).where(Collection.id == collection_id))).scalar_one_or_none()
    if collection is None:
        raise HTTPException(status_code=404, detail="Collection not found")
    if not collection.is_public and collection.owner_id != viewer_id:
        raise HTTPException(status_code=403, detail="You do not have access to this collection")

    try:
        member_ids = select(collection_posts.c.post_id).where(collection_posts.c.collection_id == collection_id)
        stmt = select(Post).where(Post.id.in_(member_ids), Post.is_draft.is_(False), Post.is_archived.is_(False))
        return await paginate_posts(db, stmt, params, viewer_id, allowed_sort=COLLECTION_SORT_FIELDS)
    except Exception as exc:
        logger.exception("Failed to get collection posts", extra={"context": {"collection_id": collection_id}})
        raise HTTPException(status_code=500, detail="Failed to get collection posts") from exc
