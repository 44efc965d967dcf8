from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from fastapi import HTTPException
from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.media import Photo, Video
from app.models.social import Comment, Post


class ResourceType(str, Enum):
    POST = "post"
    VIDEO = "video"
    PHOTO = "photo"
    COMMENT = "comment"


@dataclass(slots=True)
class ResourceInfo:
    resource_type: ResourceType
    resource_id: int
    owner_id: int
    allows_comments: bool


@dataclass(slots=True)
class ResourceStore:
    model: type
    owner_column: str
    allows_comments: str | bool
    soft_delete: bool


# Article is part of the wider product but has no store in this service.
_REGISTRY: dict[ResourceType, ResourceStore] = {
    ResourceType.POST: ResourceStore(Post, "author_id", "allow_comments", soft_delete=False),
    ResourceType.VIDEO: ResourceStore(Video, "owner_id", True, soft_delete=True),
    ResourceType.PHOTO: ResourceStore(Photo, "owner_id", True, soft_delete=True),
    ResourceType.COMMENT: ResourceStore(Comment, "author_id", False, soft_delete=True),
}

COMMENTABLE = frozenset({ResourceType.POST, ResourceType.VIDEO, ResourceType.PHOTO})
LIKEABLE = frozenset({ResourceType.POST, ResourceType.VIDEO, ResourceType.PHOTO, ResourceType.COMMENT})
SHAREABLE = frozenset({ResourceType.POST, ResourceType.VIDEO, ResourceType.PHOTO})


def parse_resource_type(raw: str | ResourceType, allowed: frozenset[ResourceType]) -> ResourceType:
    try:
        kind = ResourceType(str(getattr(raw, "value", raw)).strip().lower())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid resource type: {raw}") from exc
    if kind not in allowed:
        raise HTTPException(status_code=400, detail=f"Invalid resource type: {kind.value}")
    return kind


def _store(resource_type: ResourceType) -> ResourceStore:
    return _REGISTRY[resource_type]


async def find_resource(db: AsyncSession, resource_type: ResourceType, resource_id: int) -> ResourceInfo | None:
    store = _store(resource_type)
    model = store.model
    stmt = select(model).where(model.id == resource_id)
    if store.soft_delete:
        stmt = stmt.where(model.deleted_at.is_(None))
    row = (await db.execute(stmt)).scalar_one_or_none()
    if row is None:
        return None

    allows = store.allows_comments
    if isinstance(allows, str):
        allows = bool(getattr(row, allows))
    return ResourceInfo(
        resource_type=resource_type,
        resource_id=resource_id,
        owner_id=int(getattr(row, store.owner_column)),
        allows_comments=bool(allows),
    )


async def get_resource(db: AsyncSession, resource_type: ResourceType, resource_id: int) -> ResourceInfo:
    info = await find_resource(db, resource_type, resource_id)
    if info is None:
        raise HTTPException(status_code=404, detail=f"{resource_type.value.capitalize()} not found")
    return info


def counter_update(resource_type: ResourceType, resource_id: int, column: str, delta: int):
    """Atomic `SET col = col + delta`; negative deltas never drop below zero."""
    model = _store(resource_type).model
    col = getattr(model, column)
    if delta >= 0:
        value = col + delta
    else:
        value = case((col + delta < 0, 0), else_=col + delta)
    return update(model).where(model.id == resource_id).values({column: value})


async def bump_counter(
    db: AsyncSession,
    resource_type: ResourceType,
    resource_id: int,
    column: str,
    delta: int,
) -> None:
    await db.execute(counter_update(resource_type, resource_id, column, delta))
