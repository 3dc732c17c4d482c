"""
WebSocket connection manager.
Tracks live connections per user and room membership per socket, and
delivers event envelopes to the sockets of a room.
"""
from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    Manages active WebSocket connections keyed by user_id (string).

    A user may hold several sockets (one per tab). Each socket joins any
    number of rooms such as ``user:<id>``, ``project:<id>``, ``task:<id>``
    or ``team:<id>``.
    """

    def __init__(self) -> None:
        self._connections: dict[str, list[WebSocket]] = {}
        self._rooms: dict[str, set[WebSocket]] = {}
        self._socket_rooms: dict[WebSocket, set[str]] = {}
        self._socket_users: dict[WebSocket, str] = {}
        # Sockets that failed a send; the endpoint still owns their disconnect
        self._unreachable: set[WebSocket] = set()

    async def connect(self, websocket: WebSocket, user_id: str) -> bool:
        """Register an accepted socket. Returns True for the user's first connection."""
        first = not self._connections.get(user_id)
        self._connections.setdefault(user_id, []).append(websocket)
        self._socket_users[websocket] = user_id
        self._socket_rooms[websocket] = set()
        self.join(websocket, f"user:{user_id}")
        logger.info("WebSocket connected: user_id=%s", user_id)
        return first

    def disconnect(self, websocket: WebSocket, user_id: str) -> bool:
        """Drop a socket from every room. Returns True when the user has no sockets left."""
        self._detach(websocket)
        self._unreachable.discard(websocket)
        self._socket_users.pop(websocket, None)

        connections = self._connections.get(user_id)
        if connections is None:
            return False
        if websocket in connections:
            connections.remove(websocket)
        logger.info("WebSocket disconnected: user_id=%s", user_id)
        if not connections:
            del self._connections[user_id]
            return True
        return False

    # ── Rooms ─────────────────────────────────────────────────────────────────

    def join(self, websocket: WebSocket, room: str) -> None:
        self._rooms.setdefault(room, set()).add(websocket)
        self._socket_rooms.setdefault(websocket, set()).add(room)

    def leave(self, websocket: WebSocket, room: str) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.discard(websocket)
            if not members:
                del self._rooms[room]
        self._socket_rooms.get(websocket, set()).discard(room)

    def rooms_of(self, websocket: WebSocket) -> set[str]:
        return set(self._socket_rooms.get(websocket, set()))

    def room_size(self, room: str) -> int:
        return len(self._rooms.get(room, ()))

    def _detach(self, websocket: WebSocket) -> None:
        for room in self._socket_rooms.pop(websocket, set()):
            members = self._rooms.get(room)
            if members is not None:
                members.discard(websocket)
                if not members:
                    del self._rooms[room]

    # ── Delivery ──────────────────────────────────────────────────────────────

    async def _send(self, websockets: list[WebSocket], message: str) -> None:
        for ws in websockets:
            try:
                await ws.send_text(message)
            except Exception:
                logger.debug("Dropping unreachable WebSocket", exc_info=True)
                # Presence is left to the endpoint's disconnect()
                self._detach(ws)
                self._unreachable.add(ws)

    def _live(self, websockets: list[WebSocket]) -> list[WebSocket]:
        return [ws for ws in websockets if ws not in self._unreachable]

    async def send_personal_message(self, user_id: str, data: dict[str, Any]) -> None:
        """Send a JSON message to all connections for a specific user."""
        connections = self._live(self._connections.get(user_id, []))
        if connections:
            await self._send(connections, json.dumps(data, default=str))

    async def emit_to_room(
        self,
        room: str,
        data: dict[str, Any],
        *,
        exclude: WebSocket | None = None,
        exclude_user_id: str | None = None,
    ) -> int:
        """Send ``data`` to every socket in ``room``. Returns the number of targets."""
        targets = [
            ws
            for ws in self._rooms.get(room, set())
            if ws is not exclude and self._socket_users.get(ws) != exclude_user_id
        ]
        if targets:
            await self._send(targets, json.dumps(data, default=str))
        return len(targets)

    async def dispatch(self, envelope: dict[str, Any]) -> int:
        """Deliver an event envelope ``{"type", "room", "data"}`` to its room."""
        envelope = dict(envelope)
        exclude_user_id = envelope.pop("exclude_user_id", None)
        room = envelope.get("room")
        if room is None:
            await self.broadcast(envelope)
            return self.connected_user_count
        return await self.emit_to_room(room, envelope, exclude_user_id=exclude_user_id)

    async def broadcast(self, data: dict[str, Any]) -> None:
        """Send a JSON message to every connected client."""
        sockets = self._live(
            [ws for connections in self._connections.values() for ws in connections]
        )
        if sockets:
            await self._send(sockets, json.dumps(data, default=str))

    async def send_ping(self, websocket: WebSocket) -> bool:
        """Send a heartbeat ping. Returns False if the socket is gone."""
        try:
            await websocket.send_text(json.dumps({"type": "ping"}))
        except Exception:
            return False
        return True

    # ── Presence ──────────────────────────────────────────────────────────────

    def is_connected(self, user_id: str) -> bool:
        return bool(self._live(self._connections.get(user_id, [])))

    @property
    def connected_user_count(self) -> int:
        return len(self._connections)


# Singleton instance shared across the application
ws_manager = ConnectionManager()
