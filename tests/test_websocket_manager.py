"""
ConnectionManager tests using in-memory stand-ins for WebSocket objects.
"""
from __future__ import annotations

import json

import pytest

from taskhub.services.websocket_service import ConnectionManager

pytestmark = pytest.mark.asyncio


class FakeSocket:
    def __init__(self, *, broken: bool = False) -> None:
        self.sent: list[dict] = []
        self.broken = broken

    async def send_text(self, text: str) -> None:
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(text))


@pytest.fixture
def manager() -> ConnectionManager:
    return ConnectionManager()


class TestConnections:
    async def test_first_and_last_connection(self, manager: ConnectionManager) -> None:
        tab_one, tab_two = FakeSocket(), FakeSocket()

        assert await manager.connect(tab_one, "u1") is True
        assert await manager.connect(tab_two, "u1") is False
        assert manager.connected_user_count == 1
        assert manager.room_size("user:u1") == 2

        assert manager.disconnect(tab_one, "u1") is False
        assert manager.is_connected("u1") is True
        assert manager.disconnect(tab_two, "u1") is True
        assert manager.is_connected("u1") is False
        assert manager.room_size("user:u1") == 0

    async def test_disconnect_leaves_every_room(self, manager: ConnectionManager) -> None:
        ws = FakeSocket()
        await manager.connect(ws, "u1")
        manager.join(ws, "task:t1")
        manager.join(ws, "project:p1")

        manager.disconnect(ws, "u1")
        assert manager.room_size("task:t1") == 0
        assert manager.room_size("project:p1") == 0
        assert manager.rooms_of(ws) == set()

    async def test_personal_message_reaches_every_tab(self, manager: ConnectionManager) -> None:
        tab_one, tab_two = FakeSocket(), FakeSocket()
        await manager.connect(tab_one, "u1")
        await manager.connect(tab_two, "u1")

        await manager.send_personal_message("u1", {"type": "hello"})
        assert tab_one.sent == tab_two.sent == [{"type": "hello"}]


class TestRooms:
    async def test_emit_only_to_room_members(self, manager: ConnectionManager) -> None:
        inside, outside = FakeSocket(), FakeSocket()
        await manager.connect(inside, "u1")
        await manager.connect(outside, "u2")
        manager.join(inside, "task:t1")

        delivered = await manager.emit_to_room("task:t1", {"type": "task:updated"})
        assert delivered == 1
        assert inside.sent == [{"type": "task:updated"}]
        assert outside.sent == []

    async def test_leave(self, manager: ConnectionManager) -> None:
        ws = FakeSocket()
        await manager.connect(ws, "u1")
        manager.join(ws, "team:x")
        manager.leave(ws, "team:x")
        assert await manager.emit_to_room("team:x", {"type": "noop"}) == 0

    async def test_dispatch_excludes_sender(self, manager: ConnectionManager) -> None:
        typist, reader = FakeSocket(), FakeSocket()
        await manager.connect(typist, "u1")
        await manager.connect(reader, "u2")
        manager.join(typist, "task:t1")
        manager.join(reader, "task:t1")

        envelope = {
            "type": "task:typing",
            "room": "task:t1",
            "data": {"user_id": "u1"},
            "exclude_user_id": "u1",
        }
        assert await manager.dispatch(envelope) == 1
        assert typist.sent == []
        assert reader.sent == [
            {"type": "task:typing", "room": "task:t1", "data": {"user_id": "u1"}}
        ]

    async def test_dispatch_without_room_broadcasts(self, manager: ConnectionManager) -> None:
        a, b = FakeSocket(), FakeSocket()
        await manager.connect(a, "u1")
        await manager.connect(b, "u2")

        await manager.dispatch({"type": "user:online", "room": None, "data": {"user_id": "u3"}})
        assert len(a.sent) == len(b.sent) == 1


class TestDeadSockets:
    async def test_unreachable_socket_is_dropped(self, manager: ConnectionManager) -> None:
        dead, alive = FakeSocket(broken=True), FakeSocket()
        await manager.connect(dead, "u1")
        await manager.connect(alive, "u2")

        await manager.broadcast({"type": "ping"})
        assert manager.is_connected("u1") is False
        assert alive.sent == [{"type": "ping"}]

    async def test_dropped_socket_leaves_rooms(self, manager: ConnectionManager) -> None:
        dead = FakeSocket(broken=True)
        await manager.connect(dead, "u1")
        manager.join(dead, "project:1")

        assert await manager.emit_to_room("project:1", {"type": "x"}) == 1
        assert manager.room_size("project:1") == 0
        assert await manager.emit_to_room("project:1", {"type": "x"}) == 0

    async def test_last_disconnect_after_failed_send(self, manager: ConnectionManager) -> None:
        dead = FakeSocket(broken=True)
        await manager.connect(dead, "u1")

        await manager.send_personal_message("u1", {"type": "hello"})
        # The endpoint's own disconnect must still see the last connection go
        assert manager.disconnect(dead, "u1") is True
        assert manager.connected_user_count == 0

    async def test_failed_send_keeps_other_tabs(self, manager: ConnectionManager) -> None:
        dead, alive = FakeSocket(broken=True), FakeSocket()
        await manager.connect(dead, "u1")
        await manager.connect(alive, "u1")

        await manager.send_personal_message("u1", {"type": "hello"})
        await manager.send_personal_message("u1", {"type": "again"})
        assert alive.sent == [{"type": "hello"}, {"type": "again"}]
        assert manager.disconnect(dead, "u1") is False
        assert manager.is_connected("u1") is True

    async def test_send_ping_reports_failure(self, manager: ConnectionManager) -> None:
        assert await manager.send_ping(FakeSocket()) is True
        assert await manager.send_ping(FakeSocket(broken=True)) is False
