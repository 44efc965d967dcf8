from __future__ import annotations

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import Follow, User
from app.services.cache import cache


def user_payload(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "display_name": user.display_name,
        "avatar_url": user.avatar_url,
    }


async def get_user_by_id(db: AsyncSession, user_id: int) -> User:
    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def ensure_user(db: AsyncSession, user_id: int) -> dict:
    """Cache-backed existence check; returns the user's public fields."""

    async def _load() -> dict:
        return user_payload(await get_user_by_id(db, user_id))

    user = await cache.get_or_set_user("id", user_id, _load)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def get_user_by_websocket_id(db: AsyncSession, websocket_id: str) -> User | None:
    return (await db.execute(select(User).where(User.websocket_id == websocket_id))).scalar_one_or_none()


async def following_ids(db: AsyncSession, user_id: int) -> set[int]:
    rows = (await db.execute(select(Follow.following_id).where(Follow.follower_id == user_id))).scalars().all()
    return set(rows)
