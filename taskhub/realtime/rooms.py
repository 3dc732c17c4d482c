"""
Room naming and join authorization for WebSocket clients.
"""
from __future__ import annotations

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.crud.project import crud_project
from taskhub.crud.task import crud_task
from taskhub.crud.team import crud_team
from taskhub.models.user import User
from taskhub.services.project_service import project_service
from taskhub.services.task_service import task_service

ROOM_KINDS = ("user", "project", "task", "team")


def parse_room(room: str) -> tuple[str, uuid.UUID] | None:
    """Split ``kind:id`` into its parts. Returns None for malformed names."""
    kind, sep, raw_id = room.partition(":")
    if not sep or kind not in ROOM_KINDS:
        return None
    try:
        return kind, uuid.UUID(raw_id)
    except ValueError:
        return None


async def authorize_room(db: AsyncSession, *, user: User, room: str) -> bool:
    """Whether ``user`` may join ``room``."""
    parsed = parse_room(room)
    if parsed is None:
        return False
    kind, entity_id = parsed

    if kind == "user":
        return entity_id == user.id

    if kind == "team":
        if user.role == "admin":
            return True
        team = await crud_team.get(db, entity_id)
        if team is None:
            return False
        if team.owner_id == user.id:
            return True
        member = await crud_team.get_member(db, team_id=entity_id, user_id=user.id)
        return member is not None

    if kind == "project":
        project = await crud_project.get_active(db, entity_id)
        if project is None:
            return False
        return await project_service.has_role(db, project=project, user=user, minimum="viewer")

    task = await crud_task.get(db, entity_id)
    if task is None:
        return False
    return await task_service.can_view(db, task=task, user=user)
