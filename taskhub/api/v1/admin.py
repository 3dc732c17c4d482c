"""
Admin-only dashboard, job queue and maintenance routes.
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query
from pydantic import BaseModel

from taskhub.core.dependencies import AdminUser, DBSession, Pagination
from taskhub.core.exceptions import ServiceUnavailableException
from taskhub.crud.project import crud_project
from taskhub.crud.task import crud_task
from taskhub.crud.team import crud_team
from taskhub.crud.user import crud_user
from taskhub.db.redis import redis_available
from taskhub.jobs.cleanup import run_cleanup
from taskhub.jobs import queue as job_queue
from taskhub.schemas.pagination import PaginatedResponse, paginate
from taskhub.schemas.task import TaskFilter, TaskRead
from taskhub.schemas.user import UserRead
from taskhub.services.activity_service import activity_service
from taskhub.services.websocket_service import ws_manager

router = APIRouter(prefix="/admin", tags=["Admin"])


class QueueStats(BaseModel):
    name: str
    waiting: int
    retrying: int
    succeeded: int
    failed: int


class AdminStats(BaseModel):
    total_users: int
    active_users: int
    total_tasks: int
    tasks_by_status: dict[str, int]
    active_teams: int
    active_projects: int
    connected_websocket_users: int
    queue: QueueStats | None = None


class QueueActionResult(BaseModel):
    affected: int


def _require_queue() -> None:
    if not redis_available():
        raise ServiceUnavailableException("Job queue is unavailable: Redis is not connected")


@router.get(
    "/stats",
    response_model=AdminStats,
    summary="Dashboard statistics",
)
async def get_stats(
    _admin: AdminUser,
    db: DBSession,
) -> AdminStats:
    queue_stats: dict[str, Any] | None = None
    if redis_available():
        queue_stats = await job_queue.queue_stats()

    return AdminStats(
        total_users=await crud_user.get_count(db),
        active_users=await crud_user.count_active(db),
        total_tasks=await crud_task.get_count(db),
        tasks_by_status=await crud_task.count_by_status(db),
        active_teams=await crud_team.count_active_teams(db),
        active_projects=await crud_project.count_active_projects(db),
        connected_websocket_users=ws_manager.connected_user_count,
        queue=QueueStats(**queue_stats) if queue_stats else None,
    )


@router.get(
    "/users",
    response_model=PaginatedResponse[UserRead],
    summary="Full user list (admin only)",
)
async def list_all_users(
    _admin: AdminUser,
    db: DBSession,
    pagination: Pagination,
    include_inactive: bool = Query(default=True),
) -> PaginatedResponse[UserRead]:
    users, total = await crud_user.list_users(
        db, skip=pagination.skip, limit=pagination.size, include_inactive=include_inactive
    )
    return paginate(UserRead, users, total, page=pagination.page, size=pagination.size)


@router.get(
    "/tasks",
    response_model=PaginatedResponse[TaskRead],
    summary="All tasks across the system (admin only)",
)
async def list_all_tasks(
    _admin: AdminUser,
    db: DBSession,
    pagination: Pagination,
    include_archived: bool = Query(default=False),
) -> PaginatedResponse[TaskRead]:
    filters = TaskFilter(
        is_archived=include_archived,
        page=pagination.page,
        size=pagination.size,
    )
    tasks, total = await crud_task.list_with_filters(db, filters=filters)
    return paginate(TaskRead, tasks, total, page=pagination.page, size=pagination.size)


# ── Job queue ─────────────────────────────────────────────────────────────────

@router.get("/queue", response_model=QueueStats, summary="Job queue counters")
async def queue_stats(_admin: AdminUser) -> QueueStats:
    _require_queue()
    return QueueStats(**await job_queue.queue_stats())


@router.post(
    "/queue/retry-failed",
    response_model=QueueActionResult,
    summary="Put every failed job back on the queue",
)
async def retry_failed_jobs(_admin: AdminUser) -> QueueActionResult:
    _require_queue()
    return QueueActionResult(affected=await job_queue.retry_failed())


@router.delete(
    "/queue/failed",
    response_model=QueueActionResult,
    summary="Discard every failed job",
)
async def clean_failed_jobs(_admin: AdminUser) -> QueueActionResult:
    _require_queue()
    return QueueActionResult(affected=await job_queue.clean_failed())


# ── Maintenance ───────────────────────────────────────────────────────────────

@router.post(
    "/maintenance/cleanup",
    response_model=dict[str, dict[str, Any]],
    summary="Run the retention cleanup now and return its per-step report",
)
async def run_maintenance_cleanup(
    admin: AdminUser,
    db: DBSession,
) -> dict[str, dict[str, Any]]:
    report = await run_cleanup(db)
    await activity_service.log(
        db,
        user_id=admin.id,
        action="maintenance_cleanup",
        entity_type="system",
        entity_id=admin.id,
        meta={"report": report},
    )
    return report
