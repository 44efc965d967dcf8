from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from app.models.common import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EngagementEvent:
    actor_id: int
    owner_id: int
    resource_type: str
    resource_id: int
    occurred_at: datetime = field(default_factory=utcnow)

    verb = ""

    @property
    def name(self) -> str:
        return f"{self.resource_type}.{self.verb}"

    def payload(self) -> dict[str, Any]:
        return {
            "actor_id": self.actor_id,
            "owner_id": self.owner_id,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
        }


@dataclass(frozen=True, slots=True)
class ResourceLiked(EngagementEvent):
    like_id: int = 0

    verb = "liked"

    def payload(self) -> dict[str, Any]:
        return {**EngagementEvent.payload(self), "like_id": self.like_id}


@dataclass(frozen=True, slots=True)
class ResourceCommented(EngagementEvent):
    comment_id: int = 0
    parent_comment_id: int | None = None

    verb = "commented"

    def payload(self) -> dict[str, Any]:
        return {
            **EngagementEvent.payload(self),
            "comment_id": self.comment_id,
            "parent_comment_id": self.parent_comment_id,
        }


@dataclass(frozen=True, slots=True)
class ResourceShared(EngagementEvent):
    share_id: int = 0

    verb = "shared"

    def payload(self) -> dict[str, Any]:
        return {**EngagementEvent.payload(self), "share_id": self.share_id}


Handler = Callable[[Any], Awaitable[None]]


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: type[EngagementEvent], handler: Handler) -> None:
        if handler not in self._handlers[event_type]:
            self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: type[EngagementEvent], handler: Handler) -> None:
        if handler in self._handlers.get(event_type, []):
            self._handlers[event_type].remove(handler)

    async def publish(self, event: EngagementEvent) -> None:
        for handler in list(self._handlers.get(type(event), [])):
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    "Event handler failed",
                    extra={"context": {"event": event.name, "handler": getattr(handler, "__name__", repr(handler))}},
                )


event_bus = EventBus()
