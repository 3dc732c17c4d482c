"""
Task routes.
CRUD + filtering + pagination + status changes, assignment and restore.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from taskhub.core.dependencies import CurrentUser, DBSession, Pagination
from taskhub.schemas.pagination import PaginatedResponse, paginate
from taskhub.schemas.task import (
    TaskAssign,
    TaskCreate,
    TaskDetailRead,
    TaskFilter,
    TaskPriority,
    TaskRead,
    TaskStatus,
    TaskStatusUpdate,
    TaskUpdate,
)
from taskhub.services.task_service import task_service

router = APIRouter(prefix="/tasks", tags=["Tasks"])


def project_task_filter_params(
    status: TaskStatus | None = Query(default=None),
    priority: TaskPriority | None = Query(default=None),
    assigned_to_id: uuid.UUID | None = Query(default=None),
    tag: str | None = Query(default=None, max_length=100),
    is_archived: bool = Query(default=False),
    overdue: bool | None = Query(default=None),
    due_date_from: datetime | None = Query(default=None),
    due_date_to: datetime | None = Query(default=None),
    search: str | None = Query(default=None, max_length=200),
    page: int = Query(default=1, ge=1),
    size: int = Query(default=20, ge=1, le=100),
) -> TaskFilter:
    """Filters for routes already scoped to one project by their path."""
    return TaskFilter(
        status=status,
        priority=priority,
        assigned_to_id=assigned_to_id,
        tag=tag.strip().lower() if tag else None,
        is_archived=is_archived,
        overdue=overdue,
        due_date_from=due_date_from,
        due_date_to=due_date_to,
        search=search,
        page=page,
        size=size,
    )


def task_filter_params(
    base: TaskFilter = Depends(project_task_filter_params),
    team_id: uuid.UUID | None = Query(default=None),
    project_id: uuid.UUID | None = Query(default=None),
) -> TaskFilter:
    return base.model_copy(update={"team_id": team_id, "project_id": project_id})


TaskFilters = Annotated[TaskFilter, Depends(task_filter_params)]
ProjectTaskFilters = Annotated[TaskFilter, Depends(project_task_filter_params)]


@router.get(
    "/",
    response_model=PaginatedResponse[TaskRead],
    summary="List tasks with filters and pagination",
)
async def list_tasks(
    current_user: CurrentUser,
    db: DBSession,
    filters: TaskFilters,
) -> PaginatedResponse[TaskRead]:
    tasks, total = await task_service.list_tasks(
        db, filters=filters, current_user=current_user
    )
    return paginate(TaskRead, tasks, total, page=filters.page, size=filters.size)


@router.post(
    "/",
    response_model=TaskDetailRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new task",
)
async def create_task(
    task_in: TaskCreate,
    current_user: CurrentUser,
    db: DBSession,
) -> TaskDetailRead:
    task = await task_service.create_task(db, task_in=task_in, current_user=current_user)
    return TaskDetailRead.model_validate(task)


@router.get(
    "/team/{team_id}",
    response_model=PaginatedResponse[TaskRead],
    summary="List tasks for a specific team",
)
async def list_team_tasks(
    team_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
    pagination: Pagination,
) -> PaginatedResponse[TaskRead]:
    tasks, total = await task_service.list_team_tasks(
        db,
        team_id=team_id,
        current_user=current_user,
        skip=pagination.skip,
        limit=pagination.size,
    )
    return paginate(TaskRead, tasks, total, page=pagination.page, size=pagination.size)


@router.get(
    "/{task_id}",
    response_model=TaskDetailRead,
    summary="Get a task with its subtasks and progress",
)
async def get_task(
    task_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> TaskDetailRead:
    task = await task_service.get_task(db, task_id=task_id, current_user=current_user)
    return TaskDetailRead.model_validate(task)


@router.put(
    "/{task_id}",
    response_model=TaskDetailRead,
    summary="Update a task",
)
async def update_task(
    task_id: uuid.UUID,
    task_in: TaskUpdate,
    current_user: CurrentUser,
    db: DBSession,
) -> TaskDetailRead:
    task = await task_service.update_task(
        db, task_id=task_id, task_in=task_in, current_user=current_user
    )
    return TaskDetailRead.model_validate(task)


@router.patch(
    "/{task_id}/status",
    response_model=TaskDetailRead,
    summary="Change a task's status",
)
async def change_task_status(
    task_id: uuid.UUID,
    body: TaskStatusUpdate,
    current_user: CurrentUser,
    db: DBSession,
) -> TaskDetailRead:
    task = await task_service.change_status(
        db, task_id=task_id, new_status=body.status, current_user=current_user
    )
    return TaskDetailRead.model_validate(task)


@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Archive (soft-delete) a task",
)
async def delete_task(
    task_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> None:
    await task_service.delete_task(db, task_id=task_id, current_user=current_user)


@router.post(
    "/{task_id}/restore",
    response_model=TaskDetailRead,
    summary="Restore an archived task",
)
async def restore_task(
    task_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> TaskDetailRead:
    task = await task_service.restore_task(db, task_id=task_id, current_user=current_user)
    return TaskDetailRead.model_validate(task)


@router.post(
    "/{task_id}/assign",
    response_model=TaskDetailRead,
    summary="Assign a task to a user",
)
async def assign_task(
    task_id: uuid.UUID,
    body: TaskAssign,
    current_user: CurrentUser,
    db: DBSession,
) -> TaskDetailRead:
    task = await task_service.assign_task(
        db,
        task_id=task_id,
        assignee_id=body.assigned_to_id,
        current_user=current_user,
    )
    return TaskDetailRead.model_validate(task)
