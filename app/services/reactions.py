from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.social import REACTION_TYPES, Reaction
from app.schemas.common import as_iso
from app.schemas.post import ReactionOut
from app.services.cache import cache
from app.services.resources import ResourceType, get_resource
from app.services.users import ensure_user

logger = logging.getLogger(__name__)


def reaction_out(row: Reaction) -> ReactionOut:
    return ReactionOut(
        id=row.id,
        user_id=row.user_id,
        post_id=row.post_id,
        comment_id=row.comment_id,
        reaction_type=row.reaction_type,
        created_at=as_iso(row.created_at),
    )


def _check_target(post_id: int | None, comment_id: int | None) -> None:
    if post_id is None and comment_id is None:
        raise HTTPException(status_code=400, detail="Either postId or commentId must be provided")
    if post_id is not None and comment_id is not None:
        raise HTTPException(status_code=400, detail="Cannot react to both post and comment")


async def _find_reaction(
    db: AsyncSession, user_id: int, post_id: int | None, comment_id: int | None
) -> Reaction | None:
    stmt = select(Reaction).where(Reaction.user_id == user_id)
    if post_id is not None:
        stmt = stmt.where(Reaction.post_id == post_id)
    else:
        stmt = stmt.where(Reaction.comment_id == comment_id)
    return (await db.execute(stmt)).scalar_one_or_none()


async def _invalidate(post_id: int | None, comment_id: int | None) -> None:
    if post_id is not None:
        await cache.invalidate_by_tags("post", f"post:{post_id}")
    if comment_id is not None:
        await cache.invalidate_by_tags("comment", f"comment:{comment_id}")


async def react(
    db: AsyncSession,
    *,
    user_id: int,
    reaction_type: str,
    post_id: int | None = None,
    comment_id: int | None = None,
) -> Reaction:
    try:
        _check_target(post_id, comment_id)
        if reaction_type not in REACTION_TYPES:
            raise HTTPException(status_code=400, detail=f"Invalid reaction type: {reaction_type}")

        existing = await _find_reaction(db, user_id, post_id, comment_id)
        if existing is not None:
            existing.reaction_type = reaction_type
            await db.commit()
            await db.refresh(existing)
            await _invalidate(post_id, comment_id)
            return existing

        await ensure_user(db, user_id)
        if post_id is not None:
            await get_resource(db, ResourceType.POST, post_id)
        else:
            await get_resource(db, ResourceType.COMMENT, comment_id)

        row = Reaction(user_id=user_id, reaction_type=reaction_type, post_id=post_id, comment_id=comment_id)
        db.add(row)
        await db.commit()
        await db.refresh(row)
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception(
            "Failed to react to post/comment",
            extra={"context": {"user_id": user_id, "post_id": post_id, "comment_id": comment_id}},
        )
        raise HTTPException(status_code=500, detail="Failed to react to post/comment") from exc

    await _invalidate(post_id, comment_id)
    logger.info(
        "Post/comment reacted",
        extra={"context": {"user_id": user_id, "reaction_id": row.id, "reaction_type": reaction_type}},
    )
    return row


async def remove_reaction(
    db: AsyncSession,
    *,
    user_id: int,
    post_id: int | None = None,
    comment_id: int | None = None,
) -> None:
    try:
        if post_id is None and comment_id is None:
            raise HTTPException(status_code=400, detail="Either postId or commentId must be provided")
        row = await _find_reaction(db, user_id, post_id, comment_id)
        if row is None:
            raise HTTPException(status_code=404, detail="Reaction not found")
        await db.delete(row)
        await db.commit()
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception(
            "Failed to remove reaction",
            extra={"context": {"user_id": user_id, "post_id": post_id, "comment_id": comment_id}},
        )
        raise HTTPException(status_code=500, detail="Failed to remove reaction") from exc

    await _invalidate(post_id, comment_id)
