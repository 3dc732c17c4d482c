"""
Server-sent real-time events.
Services call emit() after a mutation; the envelope goes through Redis when
it is connected and straight to the local ConnectionManager otherwise.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any

from redis.exceptions import RedisError

from taskhub.db.redis import redis_available
from taskhub.realtime.pubsub import publish_event
from taskhub.services.websocket_service import ws_manager

logger = logging.getLogger(__name__)

TASK_CREATED = "task:created"
TASK_UPDATED = "task:updated"
TASK_DELETED = "task:deleted"
TASK_STATUS_CHANGED = "task:status_changed"
TASK_ASSIGNED = "task:assigned"
TASK_TYPING = "task:typing"
SUBTASK_CREATED = "subtask:created"
SUBTASK_UPDATED = "subtask:updated"
SUBTASK_DELETED = "subtask:deleted"
COMMENT_CREATED = "comment:created"
COMMENT_DELETED = "comment:deleted"
ATTACHMENT_CREATED = "attachment:created"
PROJECT_UPDATED = "project:updated"
NOTIFICATION_NEW = "notification:new"
USER_ONLINE = "user:online"
USER_OFFLINE = "user:offline"


def user_room(user_id: uuid.UUID | str) -> str:
    return f"user:{user_id}"


def project_room(project_id: uuid.UUID | str) -> str:
    return f"project:{project_id}"


def task_room(task_id: uuid.UUID | str) -> str:
    return f"task:{task_id}"


def team_room(team_id: uuid.UUID | str) -> str:
    return f"team:{team_id}"


def build_envelope(room: str | None, event: str, data: dict[str, Any]) -> dict[str, Any]:
    return {"type": event, "room": room, "data": data}


async def emit(
    room: str | None,
    event: str,
    data: dict[str, Any],
    *,
    exclude_user_id: str | None = None,
) -> None:
    """Send ``event`` to everyone in ``room`` (every client when room is None)."""
    envelope = build_envelope(room, event, data)
    if exclude_user_id is not None:
        envelope["exclude_user_id"] = exclude_user_id

    if redis_available():
        try:
            await publish_event(envelope)
            return
        except RedisError:
            logger.warning("Publishing %s to Redis failed; delivering locally", event)
    await ws_manager.dispatch(envelope)


async def emit_task_event(task: Any, event: str, data: dict[str, Any]) -> None:
    """Emit to the task room and to its project room, or its team room without a project."""
    await emit(task_room(task.id), event, data)
    if task.project_id is not None:
        await emit(project_room(task.project_id), event, data)
    elif task.team_id is not None:
        await emit(team_room(task.team_id), event, data)
