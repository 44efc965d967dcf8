from __future__ import annotations

import logging
import re

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.db import session as db_session
from app.services.users import get_user_by_websocket_id
from app.services.ws import user_room, ws_manager

logger = logging.getLogger(__name__)

posts_ws_router = APIRouter(tags=["ws-posts"])

UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


@posts_ws_router.websocket("/posts")
async def ws_posts(websocket: WebSocket) -> None:
    await websocket.accept()

    room = ""
    try:
        websocket_id = (websocket.query_params.get("websocketId") or "").strip()
        if not UUID_RE.match(websocket_id):
            await websocket.close(code=4401)
            return

        async with db_session.SessionLocal() as db:
            me = await get_user_by_websocket_id(db, websocket_id)
        if me is None:
            await websocket.close(code=4401)
            return

        room = user_room(me.id)
        await ws_manager.connect(room, websocket)
        logger.info("Posts socket connected", extra={"context": {"user_id": me.id}})

        while True:
            msg = (await websocket.receive_text()).strip().lower()
            if msg == "ping":
                await websocket.send_json({"type": "pong"})
            elif msg == "subscribe_posts":
                await ws_manager.connect(room, websocket)
                await websocket.send_json({"type": "subscribed", "room": room})

    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("Posts socket failed")
        try:
            await websocket.close(code=1011)
        except Exception:
            pass
    finally:
        if room:
            await ws_manager.disconnect(room, websocket)
