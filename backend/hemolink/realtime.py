from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, Set

import socketio
from fastapi import WebSocket
from loguru import logger


class LiveUpdateHub:
    """Fans events out to socket.io rooms and to raw WebSocket subscribers."""

    def __init__(self, sio_server: socketio.AsyncServer) -> None:
        self.sio = sio_server
        self.websockets: Dict[str | None, Set[WebSocket]] = defaultdict(set)

    async def connect(self, websocket: WebSocket, room: str | None = None) -> None:
        await websocket.accept()
        self.websockets[room].add(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        for room in list(self.websockets):
            self.websockets[room].discard(websocket)
            if not self.websockets[room]:
                del self.websockets[room]

    async def emit(self, event: str, payload: Dict[str, Any], room: str | None = None) -> None:
        message = {"event": event, "room": room, "payload": payload}
        if room is None:
            targets = set().union(*self.websockets.values())
        else:
            targets = self.websockets.get(None, set()) | self.websockets.get(room, set())
        stale = []
        for connection in targets:
            try:
                await connection.send_json(message)
            except Exception:
                stale.append(connection)
        for connection in stale:
            self.disconnect(connection)
        await self.sio.emit(event, payload, room=room)
        logger.debug("Emitted {} to {}", event, room or "everyone")


sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins="*")
hub = LiveUpdateHub(sio)


@sio.event
async def connect(sid, environ):  # pragma: no cover - socket handshake
    logger.debug("Socket connected: {}", sid)


@sio.on("join-room")
async def join_room(sid, room):  # pragma: no cover - socket handshake
    await sio.enter_room(sid, str(room))
    logger.debug("Socket {} joined room {}", sid, room)


@sio.on("leave-room")
async def leave_room(sid, room):  # pragma: no cover - socket handshake
    await sio.leave_room(sid, str(room))


@sio.event
async def disconnect(sid):  # pragma: no cover - socket handshake
    logger.debug("Socket disconnected: {}", sid)
