from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models.user import User
from app.services.auth import decode_access_token, extract_user_id
from app.services.realtime import RealtimeBroadcaster, order_room, restaurant_room

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


def _user_for_token(db: Session, token: Any) -> User | None:
    if not isinstance(token, str) or not token:
        return None
    try:
        payload = decode_access_token(token)
    except ValueError:
        return None
    user_id = extract_user_id(payload)
    if user_id is None:
        return None
    user = db.query(User).filter(User.id == user_id).first()
    # Release the pooled connection; the socket may stay open for hours.
    db.close()
    if user is None or not user.is_active:
        return None
    return user


async def _handle(websocket: WebSocket, broadcaster: RealtimeBroadcaster, db: Session, message: Any) -> None:
    if not isinstance(message, dict):
        await websocket.send_json({"event": "error", "data": {"message": "Invalid message"}})
        return

    action = message.get("action")
    if action == "join_restaurant":
        user = _user_for_token(db, message.get("token"))
        if user is None:
            await websocket.send_json({"event": "error", "data": {"message": "Authentication required"}})
            return
        room = restaurant_room(user.restaurant_id)
        broadcaster.join(room, websocket)
        logger.info("Realtime: user %s joined %s", user.id, room)
        await websocket.send_json({"event": "joined", "room": room})
        return

    if action == "join_order":
        try:
            order_id = int(message.get("order_id"))
        except (TypeError, ValueError):
            await websocket.send_json({"event": "error", "data": {"message": "order_id is required"}})
            return
        room = order_room(order_id)
        broadcaster.join(room, websocket)
        await websocket.send_json({"event": "joined", "room": room})
        return

    await websocket.send_json({"event": "error", "data": {"message": f"Unknown action: {action}"}})


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, db: Session = Depends(get_db)):
    broadcaster: RealtimeBroadcaster = websocket.app.state.broadcaster
    await websocket.accept()
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                message = None
            await _handle(websocket, broadcaster, db, message)
    except WebSocketDisconnect:
        pass
    finally:
        broadcaster.leave(websocket)
        logger.debug("Realtime: connection closed")
