"""
Activity log routes.
Feeds for the current user, another user, any entity, a task, a project
or a team, plus admin listing, per-action statistics and retention cleanup.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Literal

from fastapi import APIRouter, Query
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.core.config import settings
from taskhub.core.dependencies import AdminUser, CurrentUser, DBSession, Pagination
from taskhub.core.exceptions import ForbiddenException, NotFoundException
from taskhub.crud.activity_log import crud_activity_log
from taskhub.crud.attachment import crud_attachment
from taskhub.crud.comment import crud_comment
from taskhub.crud.subtask import crud_subtask
from taskhub.db.base import utcnow
from taskhub.models.user import User
from taskhub.schemas.activity_log import ActivityCleanupResult, ActivityLogRead, ActivityStats
from taskhub.schemas.pagination import PaginatedResponse, paginate
from taskhub.services.project_service import project_service
from taskhub.services.task_service import task_service
from taskhub.services.team_service import team_service

router = APIRouter(prefix="/activity", tags=["Activity Logs"])


EntityType = Literal[
    "task", "project", "team", "user", "comment", "attachment", "subtask", "system"
]

_TASK_CHILDREN = {
    "comment": crud_comment,
    "attachment": crud_attachment,
    "subtask": crud_subtask,
}


async def _authorize_entity(
    db: AsyncSession, *, entity_type: str, entity_id: uuid.UUID, current_user: User
) -> None:
    """Raise unless ``current_user`` may see the entity the feed is about."""
    if current_user.role == "admin":
        return
    if entity_type == "task":
        await task_service.get_viewable(db, task_id=entity_id, current_user=current_user)
    elif entity_type == "project":
        await project_service.get_accessible(db, project_id=entity_id, current_user=current_user)
    elif entity_type == "team":
        await team_service.get_team(db, team_id=entity_id, current_user=current_user)
    elif entity_type == "user":
        if entity_id != current_user.id:
            raise ForbiddenException("You can only view your own activity")
    elif entity_type in _TASK_CHILDREN:
        row = await _TASK_CHILDREN[entity_type].get(db, entity_id)
        if row is None:
            raise NotFoundException(entity_type.capitalize(), str(entity_id))
        await task_service.get_viewable(db, task_id=row.task_id, current_user=current_user)
    else:
        raise ForbiddenException("Only admins can view system activity")


@router.get(
    "/",
    response_model=PaginatedResponse[ActivityLogRead],
    summary="Get my activity log",
)
async def my_activity(
    current_user: CurrentUser,
    db: DBSession,
    pagination: Pagination,
) -> PaginatedResponse[ActivityLogRead]:
    logs, total = await crud_activity_log.list_filtered(
        db, user_id=current_user.id, skip=pagination.skip, limit=pagination.size
    )
    return paginate(ActivityLogRead, logs, total, page=pagination.page, size=pagination.size)


@router.get(
    "/user/{user_id}",
    response_model=PaginatedResponse[ActivityLogRead],
    summary="Get activity by a user (yourself, or anyone for admins)",
)
async def user_activity(
    user_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
    pagination: Pagination,
) -> PaginatedResponse[ActivityLogRead]:
    if user_id != current_user.id and current_user.role != "admin":
        raise ForbiddenException("You can only view your own activity")
    logs, total = await crud_activity_log.list_filtered(
        db, user_id=user_id, skip=pagination.skip, limit=pagination.size
    )
    return paginate(ActivityLogRead, logs, total, page=pagination.page, size=pagination.size)


@router.get(
    "/entity/{entity_type}/{entity_id}",
    response_model=PaginatedResponse[ActivityLogRead],
    summary="Get activity recorded against any entity",
)
async def entity_activity(
    entity_type: EntityType,
    entity_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
    pagination: Pagination,
) -> PaginatedResponse[ActivityLogRead]:
    await _authorize_entity(
        db, entity_type=entity_type, entity_id=entity_id, current_user=current_user
    )
    logs, total = await crud_activity_log.list_filtered(
        db,
        entity_type=entity_type,
        entity_id=entity_id,
        skip=pagination.skip,
        limit=pagination.size,
    )
    return paginate(ActivityLogRead, logs, total, page=pagination.page, size=pagination.size)


@router.get(
    "/task/{task_id}",
    response_model=PaginatedResponse[ActivityLogRead],
    summary="Get activity log for a specific task",
)
async def task_activity(
    task_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
    pagination: Pagination,
) -> PaginatedResponse[ActivityLogRead]:
    await task_service.get_viewable(db, task_id=task_id, current_user=current_user)
    logs, total = await crud_activity_log.list_filtered(
        db,
        entity_type="task",
        entity_id=task_id,
        skip=pagination.skip,
        limit=pagination.size,
    )
    return paginate(ActivityLogRead, logs, total, page=pagination.page, size=pagination.size)


@router.get(
    "/project/{project_id}",
    response_model=PaginatedResponse[ActivityLogRead],
    summary="Get everything that happened in a project",
)
async def project_activity(
    project_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
    pagination: Pagination,
) -> PaginatedResponse[ActivityLogRead]:
    await project_service.get_accessible(db, project_id=project_id, current_user=current_user)
    logs, total = await crud_activity_log.list_filtered(
        db, project_id=project_id, skip=pagination.skip, limit=pagination.size
    )
    return paginate(ActivityLogRead, logs, total, page=pagination.page, size=pagination.size)


@router.get(
    "/team/{team_id}",
    response_model=PaginatedResponse[ActivityLogRead],
    summary="Get everything that happened in a team",
)
async def team_activity(
    team_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
    pagination: Pagination,
) -> PaginatedResponse[ActivityLogRead]:
    await team_service.get_team(db, team_id=team_id, current_user=current_user)
    logs, total = await crud_activity_log.list_filtered(
        db, team_id=team_id, skip=pagination.skip, limit=pagination.size
    )
    return paginate(ActivityLogRead, logs, total, page=pagination.page, size=pagination.size)


@router.get(
    "/admin",
    response_model=PaginatedResponse[ActivityLogRead],
    summary="Get all system activity (admin only)",
)
async def admin_activity(
    _admin: AdminUser,
    db: DBSession,
    pagination: Pagination,
    entity_type: str | None = Query(default=None),
    action: str | None = Query(default=None),
    user_id: uuid.UUID | None = Query(default=None),
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
) -> PaginatedResponse[ActivityLogRead]:
    logs, total = await crud_activity_log.list_filtered(
        db,
        user_id=user_id,
        entity_type=entity_type,
        action=action,
        date_from=date_from,
        date_to=date_to,
        skip=pagination.skip,
        limit=pagination.size,
    )
    return paginate(ActivityLogRead, logs, total, page=pagination.page, size=pagination.size)


@router.get(
    "/stats",
    response_model=ActivityStats,
    summary="Action counts within a period (own activity, or everyone's for admins)",
)
async def activity_stats(
    current_user: CurrentUser,
    db: DBSession,
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
    all_users: bool = Query(default=False),
) -> ActivityStats:
    scope_all = all_users and current_user.role == "admin"
    by_action = await crud_activity_log.stats_by_action(
        db,
        user_id=None if scope_all else current_user.id,
        date_from=date_from,
        date_to=date_to,
    )
    return ActivityStats(
        total=sum(by_action.values()),
        by_action=by_action,
        date_from=date_from,
        date_to=date_to,
    )


@router.delete(
    "/cleanup",
    response_model=ActivityCleanupResult,
    summary="Delete activity older than N days (admin only)",
)
async def cleanup_activity(
    _admin: AdminUser,
    db: DBSession,
    older_than_days: int = Query(default=settings.ACTIVITY_RETENTION_DAYS, ge=1),
) -> ActivityCleanupResult:
    cutoff = utcnow() - timedelta(days=older_than_days)
    deleted = await crud_activity_log.delete_older_than(db, cutoff=cutoff)
    return ActivityCleanupResult(deleted=deleted, older_than_days=older_than_days)
