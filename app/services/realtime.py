from __future__ import annotations

import asyncio
import logging
import threading
from collections import defaultdict
from typing import Any, DefaultDict, Protocol, Set

from fastapi.encoders import jsonable_encoder


class RoomConnection(Protocol):
    async def send_json(self, data: Any) -> None:
        ...


def restaurant_room(restaurant_id: int) -> str:
    return f"restaurant_{restaurant_id}"


def order_room(order_id: int) -> str:
    return f"order-{order_id}"


class RealtimeBroadcaster:
    """Room-based fan-out of lifecycle events to WebSocket clients.

    ``emit`` may be called from the event loop or from the threadpool that
    runs sync route handlers; delivery always happens on the loop given to
    ``bind_loop``. A connection that fails to receive is dropped from every
    room and the failure is logged, never raised to the emitter.
    """

    def __init__(self) -> None:
        self._rooms: DefaultDict[str, Set[RoomConnection]] = defaultdict(set)
        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._pending: Set[asyncio.Task] = set()
        self._logger = logging.getLogger(__name__)

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def join(self, room: str, connection: RoomConnection) -> None:
        with self._lock:
            self._rooms[room].add(connection)
        self._logger.debug("Realtime: connection joined %s", room)

    def leave(self, connection: RoomConnection, room: str | None = None) -> None:
        with self._lock:
            rooms = [room] if room is not None else list(self._rooms)
            for name in rooms:
                members = self._rooms.get(name)
                if not members:
                    continue
                members.discard(connection)
                if not members:
                    self._rooms.pop(name, None)

    def room_size(self, room: str) -> int:
        with self._lock:
            return len(self._rooms.get(room, ()))

    def emit(self, room: str, event: str, payload: dict[str, Any]) -> None:
        with self._lock:
            members = list(self._rooms.get(room, ()))
        if not members:
            self._logger.debug("Realtime: no listeners for %s in %s", event, room)
            return

        message = {"event": event, "room": room, "data": jsonable_encoder(payload)}
        coroutine = self._deliver(room, members, message)

        try:
            running_loop = asyncio.get_running_loop()
        except RuntimeError:
            running_loop = None

        if running_loop is not None:
            task = running_loop.create_task(coroutine)
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            return

        loop = self._loop
        if loop is None or loop.is_closed():
            coroutine.close()
            self._logger.warning("Realtime: no event loop bound, dropping %s for %s", event, room)
            return
        asyncio.run_coroutine_threadsafe(coroutine, loop)

    async def _deliver(self, room: str, members: list[RoomConnection], message: dict[str, Any]) -> None:
        for connection in members:
            try:
                await connection.send_json(message)
            except Exception:
                self._logger.exception("Realtime: delivery failed for %s in %s", message.get("event"), room)
                self.leave(connection)
