"""
Project routes.
CRUD, soft delete/restore, archive, membership, project tasks and stats.
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.api.v1.tasks import ProjectTaskFilters
from taskhub.core.dependencies import CurrentUser, DBSession, Pagination
from taskhub.crud.project import crud_project
from taskhub.models.project import Project
from taskhub.schemas.pagination import PaginatedResponse, paginate
from taskhub.schemas.project import (
    ProjectCreate,
    ProjectDetailRead,
    ProjectMemberAdd,
    ProjectMemberRead,
    ProjectMemberUpdateRole,
    ProjectRead,
    ProjectStats,
    ProjectStatus,
    ProjectUpdate,
)
from taskhub.schemas.task import TaskRead
from taskhub.services.project_service import project_service
from taskhub.services.task_service import task_service

router = APIRouter(prefix="/projects", tags=["Projects"])


async def _detail(db: AsyncSession, project: Project) -> ProjectDetailRead:
    progress = await crud_project.progress(db, project_id=project.id)
    return ProjectDetailRead.model_validate(project).model_copy(update={"progress": progress})


@router.post(
    "/",
    response_model=ProjectDetailRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a project",
)
async def create_project(
    project_in: ProjectCreate,
    current_user: CurrentUser,
    db: DBSession,
) -> ProjectDetailRead:
    project = await project_service.create_project(
        db, project_in=project_in, current_user=current_user
    )
    return await _detail(db, project)


@router.get(
    "/",
    response_model=PaginatedResponse[ProjectRead],
    summary="List projects visible to me",
)
async def list_projects(
    current_user: CurrentUser,
    db: DBSession,
    pagination: Pagination,
    project_status: ProjectStatus | None = Query(default=None, alias="status"),
    team_id: uuid.UUID | None = Query(default=None),
    search: str | None = Query(default=None, max_length=200),
) -> PaginatedResponse[ProjectRead]:
    projects, total = await project_service.list_projects(
        db,
        current_user=current_user,
        status=project_status,
        team_id=team_id,
        search=search,
        skip=pagination.skip,
        limit=pagination.size,
    )
    return paginate(ProjectRead, projects, total, page=pagination.page, size=pagination.size)


@router.get(
    "/{project_id}",
    response_model=ProjectDetailRead,
    summary="Get a project with members and progress",
)
async def get_project(
    project_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> ProjectDetailRead:
    project = await project_service.get_detail(
        db, project_id=project_id, current_user=current_user
    )
    return await _detail(db, project)


@router.put(
    "/{project_id}",
    response_model=ProjectDetailRead,
    summary="Update a project (project managers)",
)
async def update_project(
    project_id: uuid.UUID,
    project_in: ProjectUpdate,
    current_user: CurrentUser,
    db: DBSession,
) -> ProjectDetailRead:
    project = await project_service.update_project(
        db, project_id=project_id, project_in=project_in, current_user=current_user
    )
    return await _detail(db, project)


@router.delete(
    "/{project_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Soft-delete a project and archive its tasks (owner/admin)",
)
async def delete_project(
    project_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> None:
    await project_service.delete_project(
        db, project_id=project_id, current_user=current_user
    )


@router.post(
    "/{project_id}/restore",
    response_model=ProjectDetailRead,
    summary="Restore a soft-deleted project (owner/admin)",
)
async def restore_project(
    project_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> ProjectDetailRead:
    project = await project_service.restore_project(
        db, project_id=project_id, current_user=current_user
    )
    return await _detail(db, project)


@router.post(
    "/{project_id}/archive",
    response_model=ProjectDetailRead,
    summary="Set the project status to archived (project managers)",
)
async def archive_project(
    project_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> ProjectDetailRead:
    project = await project_service.archive_project(
        db, project_id=project_id, current_user=current_user
    )
    return await _detail(db, project)


@router.get(
    "/{project_id}/stats",
    response_model=ProjectStats,
    summary="Task counts, overdue count and progress",
)
async def get_project_stats(
    project_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> ProjectStats:
    return await project_service.get_stats(
        db, project_id=project_id, current_user=current_user
    )


@router.get(
    "/{project_id}/tasks",
    response_model=PaginatedResponse[TaskRead],
    summary="List the project's tasks",
)
async def list_project_tasks(
    project_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
    filters: ProjectTaskFilters,
) -> PaginatedResponse[TaskRead]:
    tasks, total = await task_service.list_project_tasks(
        db, project_id=project_id, filters=filters, current_user=current_user
    )
    return paginate(TaskRead, tasks, total, page=filters.page, size=filters.size)


# ── Members ───────────────────────────────────────────────────────────────────

@router.post(
    "/{project_id}/members",
    response_model=ProjectMemberRead,
    status_code=status.HTTP_201_CREATED,
    summary="Add a project member (project managers)",
)
async def add_member(
    project_id: uuid.UUID,
    member_in: ProjectMemberAdd,
    current_user: CurrentUser,
    db: DBSession,
) -> ProjectMemberRead:
    member = await project_service.add_member(
        db, project_id=project_id, member_in=member_in, current_user=current_user
    )
    return ProjectMemberRead.model_validate(member)


@router.patch(
    "/{project_id}/members/{user_id}",
    response_model=ProjectMemberRead,
    summary="Change a project member's role (project managers)",
)
async def update_member_role(
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    body: ProjectMemberUpdateRole,
    current_user: CurrentUser,
    db: DBSession,
) -> ProjectMemberRead:
    member = await project_service.update_member_role(
        db,
        project_id=project_id,
        user_id=user_id,
        role=body.role,
        current_user=current_user,
    )
    return ProjectMemberRead.model_validate(member)


@router.delete(
    "/{project_id}/members/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a project member (project managers)",
)
async def remove_member(
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> None:
    await project_service.remove_member(
        db, project_id=project_id, user_id=user_id, current_user=current_user
    )
