from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from fastapi import WebSocket

from app.services.events import EngagementEvent, ResourceCommented, ResourceLiked, ResourceShared, event_bus

logger = logging.getLogger(__name__)


def user_room(user_id: int) -> str:
    return f"user:{user_id}"


class RoomManager:
    """In-process rooms of live sockets. Nothing is persisted or replayed."""

    def __init__(self) -> None:
        self.rooms: dict[str, set[WebSocket]] = defaultdict(set)
        self.lock = asyncio.Lock()

    async def connect(self, room: str, ws: WebSocket) -> None:
        async with self.lock:
            self.rooms[room].add(ws)

    async def disconnect(self, room: str, ws: WebSocket) -> None:
        async with self.lock:
            if room in self.rooms and ws in self.rooms[room]:
                self.rooms[room].remove(ws)
                if not self.rooms[room]:
                    self.rooms.pop(room, None)

    async def broadcast(self, room: str, message: dict) -> int:
        async with self.lock:
            targets = list(self.rooms.get(room, ()))
        delivered = 0
        for ws in targets:
            try:
                await ws.send_json(message)
                delivered += 1
            except Exception:
                logger.warning("Dropping dead websocket", extra={"context": {"room": room}})
                await self.disconnect(room, ws)
        return delivered


ws_manager = RoomManager()


def event_message(event: EngagementEvent) -> dict:
    return {
        "type": f"{event.resource_type}_{event.verb}",
        **event.payload(),
        "timestamp": event.occurred_at.isoformat(),
    }


async def relay_engagement(event: EngagementEvent) -> None:
    await ws_manager.broadcast(user_room(event.owner_id), event_message(event))


def register_gateway_listeners() -> None:
    for event_type in (ResourceLiked, ResourceCommented, ResourceShared):
        event_bus.subscribe(event_type, relay_engagement)
