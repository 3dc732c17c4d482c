"""
WebSocket endpoint.
Clients connect with a valid JWT access token as a query parameter, join
rooms, send typing indicators and receive event envelopes.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskhub.core.config import settings
from taskhub.core.security import decode_access_token, token_subject
from taskhub.crud.notification import crud_notification
from taskhub.crud.user import crud_user
from taskhub.models.user import User
from taskhub.realtime import events
from taskhub.realtime.rooms import authorize_room
from taskhub.services.websocket_service import ws_manager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])

CLOSE_UNAUTHENTICATED = 4001
CLOSE_FORBIDDEN = 4003

SessionFactory = async_sessionmaker[AsyncSession]


def get_session_factory(websocket: WebSocket) -> SessionFactory:
    """Session factory installed on the application at startup."""
    return websocket.app.state.session_factory


async def _reject(websocket: WebSocket, code: int, reason: str) -> None:
    await websocket.accept()
    await websocket.close(code=code, reason=reason)


async def _authenticate(
    websocket: WebSocket, user_id: str, session_factory: SessionFactory
) -> User | None:
    token = websocket.query_params.get("token")
    if not token:
        await _reject(websocket, CLOSE_UNAUTHENTICATED, "Missing authentication token")
        return None

    try:
        subject = token_subject(decode_access_token(token))
    except JWTError:
        await _reject(websocket, CLOSE_UNAUTHENTICATED, "Invalid or expired token")
        return None

    if str(subject) != user_id:
        await _reject(websocket, CLOSE_FORBIDDEN, "Token user_id mismatch")
        return None

    async with session_factory() as db:
        user = await crud_user.get(db, subject)
    if user is None or not user.is_active:
        await _reject(websocket, CLOSE_UNAUTHENTICATED, "User not found or inactive")
        return None
    return user


@router.websocket("/ws/{user_id}")
async def websocket_endpoint(websocket: WebSocket, user_id: str) -> None:
    """
    WebSocket endpoint for real-time events.

    Query parameters:
        token: A valid JWT access token for ``user_id``.

    The server sends:
        - {"type": "connected", "user_id": "..."} once authenticated.
        - {"type": "ping"} every WS_HEARTBEAT_SECONDS.
        - {"type": <event>, "room": <room>, "data": {...}} for every event
          published to a room the socket is in.

    The client may send ``join``/``leave`` with a ``room``, ``typing`` with
    ``task_id`` and ``is_typing``, ``notification:read`` with
    ``notification_id``, ``notification:mark_all_read``,
    ``notification:get_count`` and ``pong``.
    """
    session_factory = get_session_factory(websocket)
    user = await _authenticate(websocket, user_id, session_factory)
    if user is None:
        return

    await websocket.accept()
    first = await ws_manager.connect(websocket, user_id)
    heartbeat_task = asyncio.create_task(_heartbeat(websocket))

    try:
        await websocket.send_json({"type": "connected", "user_id": user_id})
        if first:
            await events.emit(None, events.USER_ONLINE, {"user_id": user_id})

        while True:
            message = await websocket.receive_json()
            reply = await handle_client_message(
                websocket, user, message, session_factory=session_factory
            )
            if reply is not None:
                await websocket.send_json(reply)

    except WebSocketDisconnect:
        logger.info("WebSocket client disconnected: user_id=%s", user_id)
    except Exception as exc:
        logger.error("WebSocket error for user_id=%s: %s", user_id, exc)
    finally:
        heartbeat_task.cancel()
        await asyncio.gather(heartbeat_task, return_exceptions=True)
        if ws_manager.disconnect(websocket, user_id):
            await _mark_offline(user.id, session_factory)


async def handle_client_message(
    websocket: WebSocket,
    user: User,
    message: Any,
    *,
    session_factory: SessionFactory,
) -> dict[str, Any] | None:
    """Apply one client message. Returns the direct reply, if any."""
    if not isinstance(message, dict):
        return {"type": "error", "message": "Messages must be JSON objects"}

    kind = message.get("type")

    if kind == "pong":
        logger.debug("Received pong from user_id=%s", user.id)
        return None

    if kind == "join":
        room = str(message.get("room", ""))
        async with session_factory() as db:
            allowed = await authorize_room(db, user=user, room=room)
        if not allowed:
            return {"type": "error", "message": f"Cannot join room {room!r}"}
        ws_manager.join(websocket, room)
        return {"type": "joined", "room": room}

    if kind == "leave":
        room = str(message.get("room", ""))
        if room == events.user_room(user.id):
            return {"type": "error", "message": "Cannot leave your own room"}
        ws_manager.leave(websocket, room)
        return {"type": "left", "room": room}

    if kind == "typing":
        room = events.task_room(message.get("task_id", ""))
        if room not in ws_manager.rooms_of(websocket):
            return {"type": "error", "message": "Join the task room before typing"}
        await events.emit(
            room,
            events.TASK_TYPING,
            {
                "task_id": str(message.get("task_id")),
                "user_id": str(user.id),
                "username": user.username,
                "is_typing": bool(message.get("is_typing", True)),
            },
            exclude_user_id=str(user.id),
        )
        return None

    if kind == "notification:read":
        try:
            notification_id = uuid.UUID(str(message.get("notification_id")))
        except ValueError:
            return {"type": "error", "message": "Invalid notification_id"}
        async with session_factory() as db:
            notification = await crud_notification.get_for_user(
                db, notification_id=notification_id, user_id=user.id
            )
            if notification is None:
                return {"type": "error", "message": "Notification not found"}
            await crud_notification.mark_as_read(db, notification=notification)
            await db.commit()
        return {"type": "notification:read", "notification_id": str(notification_id)}

    if kind == "notification:mark_all_read":
        async with session_factory() as db:
            updated = await crud_notification.mark_all_read(db, user_id=user.id)
            await db.commit()
        return {"type": "notification:all_read", "updated": updated}

    if kind == "notification:get_count":
        async with session_factory() as db:
            unread = await crud_notification.count_unread(db, user_id=user.id)
        return {"type": "notification:count", "unread": unread}

    return {"type": "error", "message": f"Unknown message type {kind!r}"}


async def _mark_offline(user_id: uuid.UUID, session_factory: SessionFactory) -> None:
    async with session_factory() as db:
        await crud_user.touch_last_seen(db, user_id=user_id)
        await db.commit()
    await events.emit(None, events.USER_OFFLINE, {"user_id": str(user_id)})


async def _heartbeat(websocket: WebSocket) -> None:
    """Send periodic ping frames to keep the connection alive."""
    while True:
        await asyncio.sleep(settings.WS_HEARTBEAT_SECONDS)
        if not await ws_manager.send_ping(websocket):
            break
