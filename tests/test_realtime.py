"""
Room authorization, client message handling and WebSocket handshake tests.
"""
from __future__ import annotations

import asyncio
import json
import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from taskhub.api.v1 import websocket as websocket_module
from taskhub.api.v1.websocket import handle_client_message
from taskhub.core.config import settings
from taskhub.core.security import create_access_token
from taskhub.db.base import Base
from taskhub.db.session import get_db
from taskhub.main import app
from taskhub.models.user import User
from taskhub.realtime import events
from taskhub.realtime.rooms import authorize_room, parse_room
from taskhub.services.websocket_service import ws_manager


class FakeSocket:
    def __init__(self) -> None:
        self.sent: list[dict] = []

    async def send_text(self, text: str) -> None:
        self.sent.append(json.loads(text))


async def _load_user(db: AsyncSession, payload: dict) -> User:
    user = await db.get(User, uuid.UUID(payload["id"]))
    assert user is not None
    return user


@pytest.fixture
def send(session_factory: async_sessionmaker[AsyncSession]):
    """Apply a client message using the test database."""

    async def _send(websocket, user: User, message):
        return await handle_client_message(
            websocket, user, message, session_factory=session_factory
        )

    return _send


class TestParseRoom:
    def test_valid(self) -> None:
        room_id = uuid.uuid4()
        assert parse_room(f"task:{room_id}") == ("task", room_id)

    @pytest.mark.parametrize("room", ["", "task", "task:", "board:" + str(uuid.uuid4()), "team:abc"])
    def test_malformed(self, room: str) -> None:
        assert parse_room(room) is None


@pytest.mark.asyncio
class TestAuthorizeRoom:
    async def test_own_user_room_only(
        self, db: AsyncSession, registered_user: dict, other_user: tuple
    ) -> None:
        user = await _load_user(db, registered_user)
        assert await authorize_room(db, user=user, room=f"user:{user.id}") is True
        assert await authorize_room(db, user=user, room=f"user:{other_user[0]['id']}") is False

    async def test_team_room(
        self,
        client: AsyncClient,
        db: AsyncSession,
        registered_user: dict,
        auth_headers: dict,
        other_user: tuple,
    ) -> None:
        team = (await client.post("/api/v1/teams/", json={"name": "Crew"}, headers=auth_headers)).json()
        owner = await _load_user(db, registered_user)
        outsider = await _load_user(db, other_user[0])

        room = f"team:{team['id']}"
        assert await authorize_room(db, user=owner, room=room) is True
        assert await authorize_room(db, user=outsider, room=room) is False

    async def test_project_room(
        self,
        client: AsyncClient,
        db: AsyncSession,
        registered_user: dict,
        auth_headers: dict,
        other_user: tuple,
    ) -> None:
        project = (
            await client.post("/api/v1/projects/", json={"name": "Apollo"}, headers=auth_headers)
        ).json()
        owner = await _load_user(db, registered_user)
        outsider = await _load_user(db, other_user[0])

        room = f"project:{project['id']}"
        assert await authorize_room(db, user=owner, room=room) is True
        assert await authorize_room(db, user=outsider, room=room) is False

    async def test_task_room_follows_visibility(
        self,
        client: AsyncClient,
        db: AsyncSession,
        registered_user: dict,
        auth_headers: dict,
        other_user: tuple,
    ) -> None:
        task = (
            await client.post("/api/v1/tasks/", json={"title": "Secret"}, headers=auth_headers)
        ).json()
        owner = await _load_user(db, registered_user)
        outsider = await _load_user(db, other_user[0])

        room = f"task:{task['id']}"
        assert await authorize_room(db, user=owner, room=room) is True
        assert await authorize_room(db, user=outsider, room=room) is False

    async def test_unknown_entities(self, db: AsyncSession, registered_user: dict) -> None:
        user = await _load_user(db, registered_user)
        assert await authorize_room(db, user=user, room=f"task:{uuid.uuid4()}") is False
        assert await authorize_room(db, user=user, room="nonsense") is False


@pytest.mark.asyncio
class TestClientMessages:
    async def test_join_allowed_and_denied(
        self,
        client: AsyncClient,
        db: AsyncSession,
        registered_user: dict,
        auth_headers: dict,
        other_user: tuple,
        send,
    ) -> None:
        task = (
            await client.post("/api/v1/tasks/", json={"title": "Room"}, headers=auth_headers)
        ).json()
        await db.commit()
        owner = await _load_user(db, registered_user)
        outsider = await _load_user(db, other_user[0])
        room = f"task:{task['id']}"

        owner_ws, outsider_ws = FakeSocket(), FakeSocket()
        try:
            reply = await send(owner_ws, owner, {"type": "join", "room": room})
            assert reply == {"type": "joined", "room": room}
            assert room in ws_manager.rooms_of(owner_ws)

            reply = await send(outsider_ws, outsider, {"type": "join", "room": room})
            assert reply["type"] == "error"
            assert room not in ws_manager.rooms_of(outsider_ws)
        finally:
            ws_manager.disconnect(owner_ws, str(owner.id))
            ws_manager.disconnect(outsider_ws, str(outsider.id))

    async def test_cannot_leave_own_room(
        self, db: AsyncSession, registered_user: dict, send
    ) -> None:
        user = await _load_user(db, registered_user)
        reply = await send(FakeSocket(), user, {"type": "leave", "room": f"user:{user.id}"})
        assert reply["type"] == "error"

    async def test_typing_requires_room(
        self, db: AsyncSession, registered_user: dict, send
    ) -> None:
        user = await _load_user(db, registered_user)
        reply = await send(FakeSocket(), user, {"type": "typing", "task_id": str(uuid.uuid4())})
        assert reply == {"type": "error", "message": "Join the task room before typing"}

    async def test_typing_reaches_others_only(
        self,
        client: AsyncClient,
        db: AsyncSession,
        registered_user: dict,
        auth_headers: dict,
        other_user: tuple,
        send,
    ) -> None:
        other, _ = other_user
        task = (
            await client.post(
                "/api/v1/tasks/",
                json={"title": "Pair", "assigned_to_id": other["id"]},
                headers=auth_headers,
            )
        ).json()
        owner = await _load_user(db, registered_user)
        reader = await _load_user(db, other)
        room = events.task_room(task["id"])

        typist_ws, reader_ws = FakeSocket(), FakeSocket()
        await ws_manager.connect(typist_ws, str(owner.id))
        await ws_manager.connect(reader_ws, str(reader.id))
        try:
            ws_manager.join(typist_ws, room)
            ws_manager.join(reader_ws, room)

            reply = await send(
                typist_ws, owner, {"type": "typing", "task_id": task["id"], "is_typing": True}
            )
            assert reply is None
            assert typist_ws.sent == []
            assert reader_ws.sent[-1]["type"] == events.TASK_TYPING
            assert reader_ws.sent[-1]["data"]["username"] == "testuser"
        finally:
            ws_manager.disconnect(typist_ws, str(owner.id))
            ws_manager.disconnect(reader_ws, str(reader.id))

    async def test_mark_notification_read(
        self,
        client: AsyncClient,
        db: AsyncSession,
        auth_headers: dict,
        other_user: tuple,
        send,
    ) -> None:
        other, other_headers = other_user
        await client.post(
            "/api/v1/tasks/",
            json={"title": "Ping me", "assigned_to_id": other["id"]},
            headers=auth_headers,
        )
        notification = (await client.get("/api/v1/notifications/", headers=other_headers)).json()[
            "items"
        ][0]
        await db.commit()
        user = await _load_user(db, other)

        reply = await send(
            FakeSocket(),
            user,
            {"type": "notification:read", "notification_id": notification["id"]},
        )
        assert reply == {"type": "notification:read", "notification_id": notification["id"]}

        db.expire_all()
        count = await client.get("/api/v1/notifications/unread-count", headers=other_headers)
        assert count.json()["unread"] == 0

    async def test_count_and_mark_all_read(
        self,
        client: AsyncClient,
        db: AsyncSession,
        auth_headers: dict,
        other_user: tuple,
        send,
    ) -> None:
        other, other_headers = other_user
        for title in ("First", "Second"):
            await client.post(
                "/api/v1/tasks/",
                json={"title": title, "assigned_to_id": other["id"]},
                headers=auth_headers,
            )
        await db.commit()
        user = await _load_user(db, other)
        ws = FakeSocket()

        reply = await send(ws, user, {"type": "notification:get_count"})
        assert reply == {"type": "notification:count", "unread": 2}

        reply = await send(ws, user, {"type": "notification:mark_all_read"})
        assert reply == {"type": "notification:all_read", "updated": 2}
        assert await send(ws, user, {"type": "notification:get_count"}) == {
            "type": "notification:count",
            "unread": 0,
        }

        db.expire_all()
        count = await client.get("/api/v1/notifications/unread-count", headers=other_headers)
        assert count.json()["unread"] == 0

    async def test_bad_notification_id(
        self, db: AsyncSession, registered_user: dict, send
    ) -> None:
        user = await _load_user(db, registered_user)
        reply = await send(
            FakeSocket(), user, {"type": "notification:read", "notification_id": "nope"}
        )
        assert reply == {"type": "error", "message": "Invalid notification_id"}

    async def test_unknown_and_malformed_messages(
        self, db: AsyncSession, registered_user: dict, send
    ) -> None:
        user = await _load_user(db, registered_user)
        ws = FakeSocket()
        assert (await send(ws, user, {"type": "dance"}))["type"] == "error"
        assert (await send(ws, user, ["join"]))["type"] == "error"
        assert await send(ws, user, {"type": "pong"}) is None


@pytest.mark.asyncio
class TestEmit:
    async def test_local_delivery_without_redis(self) -> None:
        ws = FakeSocket()
        user_id = str(uuid.uuid4())
        await ws_manager.connect(ws, user_id)
        try:
            await events.emit(events.user_room(user_id), events.NOTIFICATION_NEW, {"id": "n1"})
        finally:
            ws_manager.disconnect(ws, user_id)
        assert ws.sent == [
            {"type": "notification:new", "room": f"user:{user_id}", "data": {"id": "n1"}}
        ]


class TestHandshake:
    def _close_code(self, url: str) -> int:
        client = TestClient(app)
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(url) as ws:
                ws.receive_json()
        return exc_info.value.code

    def test_missing_token(self) -> None:
        assert self._close_code(f"/api/v1/ws/{uuid.uuid4()}") == websocket_module.CLOSE_UNAUTHENTICATED

    def test_garbage_token(self) -> None:
        code = self._close_code(f"/api/v1/ws/{uuid.uuid4()}?token=not-a-jwt")
        assert code == websocket_module.CLOSE_UNAUTHENTICATED

    def test_token_for_another_user(self) -> None:
        token = create_access_token(str(uuid.uuid4()), "user")
        code = self._close_code(f"/api/v1/ws/{uuid.uuid4()}?token={token}")
        assert code == websocket_module.CLOSE_FORBIDDEN


@pytest.fixture
def live_client(tmp_path, monkeypatch: pytest.MonkeyPatch):
    """
    TestClient running the app on its own event loop.

    The database is a file so every connection the app opens, on whichever
    loop, sees the same data.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'live.db'}", poolclass=NullPool)

    async def create_tables() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_tables())
    factory = async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )

    async def override_get_db():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    monkeypatch.setattr(app.state, "session_factory", factory)
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
    asyncio.run(engine.dispose())


def _sign_up(client: TestClient, name: str) -> tuple[str, dict[str, str], str]:
    email = f"{name}@example.com"
    user = client.post(
        "/api/v1/auth/register",
        json={"email": email, "username": name, "password": "LivePass1"},
    ).json()
    token = client.post(
        "/api/v1/auth/login", json={"email": email, "password": "LivePass1"}
    ).json()["access_token"]
    return user["id"], {"Authorization": f"Bearer {token}"}, token


class TestLiveConnection:
    def test_connected_then_online(self, live_client: TestClient) -> None:
        user_id, _, token = _sign_up(live_client, "alice")

        with live_client.websocket_connect(f"/api/v1/ws/{user_id}?token={token}") as ws:
            assert ws.receive_json() == {"type": "connected", "user_id": user_id}
            assert ws.receive_json() == {
                "type": events.USER_ONLINE,
                "room": None,
                "data": {"user_id": user_id},
            }
            ws.send_json({"type": "notification:get_count"})
            assert ws.receive_json() == {"type": "notification:count", "unread": 0}

    def test_offline_after_last_socket(self, live_client: TestClient) -> None:
        alice_id, _, alice_token = _sign_up(live_client, "alice")
        bob_id, bob_headers, bob_token = _sign_up(live_client, "bob")
        bob_url = f"/api/v1/ws/{bob_id}?token={bob_token}"

        with live_client.websocket_connect(f"/api/v1/ws/{alice_id}?token={alice_token}") as alice:
            alice.receive_json()
            alice.receive_json()

            with live_client.websocket_connect(bob_url) as first_tab:
                first_tab.receive_json()
                assert alice.receive_json()["data"] == {"user_id": bob_id}

                # A second tab is not a new presence
                with live_client.websocket_connect(bob_url) as second_tab:
                    assert second_tab.receive_json()["type"] == "connected"
                assert live_client.get("/api/v1/users/me", headers=bob_headers).json()[
                    "last_seen_at"
                ] is None

            offline = alice.receive_json()
            assert offline == {
                "type": events.USER_OFFLINE,
                "room": None,
                "data": {"user_id": bob_id},
            }

        profile = live_client.get("/api/v1/users/me", headers=bob_headers).json()
        assert profile["last_seen_at"] is not None
        assert not ws_manager.is_connected(alice_id)
        assert not ws_manager.is_connected(bob_id)

    def test_heartbeat_ping(self, live_client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "WS_HEARTBEAT_SECONDS", 0.05)
        user_id, _, token = _sign_up(live_client, "carol")

        with live_client.websocket_connect(f"/api/v1/ws/{user_id}?token={token}") as ws:
            kinds = [ws.receive_json()["type"] for _ in range(3)]
            assert kinds[:2] == ["connected", events.USER_ONLINE]
            assert kinds[2] == "ping"
            ws.send_json({"type": "pong"})
            assert ws.receive_json() == {"type": "ping"}
