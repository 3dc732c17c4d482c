"""
Subtask routes nested under tasks.
/api/v1/tasks/{task_id}/subtasks
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, status

from taskhub.core.dependencies import CurrentUser, DBSession
from taskhub.schemas.subtask import (
    SubtaskCreate,
    SubtaskRead,
    SubtaskReorder,
    SubtaskStatusUpdate,
    SubtaskUpdate,
)
from taskhub.services.subtask_service import subtask_service

router = APIRouter(prefix="/tasks/{task_id}/subtasks", tags=["Subtasks"])


@router.get("/", response_model=list[SubtaskRead], summary="List subtasks in order")
async def list_subtasks(
    task_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> list[SubtaskRead]:
    subtasks = await subtask_service.list_subtasks(
        db, task_id=task_id, current_user=current_user
    )
    return [SubtaskRead.model_validate(s) for s in subtasks]


@router.post(
    "/",
    response_model=SubtaskRead,
    status_code=status.HTTP_201_CREATED,
    summary="Add a subtask",
)
async def create_subtask(
    task_id: uuid.UUID,
    subtask_in: SubtaskCreate,
    current_user: CurrentUser,
    db: DBSession,
) -> SubtaskRead:
    subtask = await subtask_service.create_subtask(
        db, task_id=task_id, subtask_in=subtask_in, current_user=current_user
    )
    return SubtaskRead.model_validate(subtask)


@router.put(
    "/reorder",
    response_model=list[SubtaskRead],
    summary="Reorder subtasks",
)
async def reorder_subtasks(
    task_id: uuid.UUID,
    body: SubtaskReorder,
    current_user: CurrentUser,
    db: DBSession,
) -> list[SubtaskRead]:
    subtasks = await subtask_service.reorder(
        db, task_id=task_id, subtask_ids=body.subtask_ids, current_user=current_user
    )
    return [SubtaskRead.model_validate(s) for s in subtasks]


@router.put("/{subtask_id}", response_model=SubtaskRead, summary="Update a subtask")
async def update_subtask(
    task_id: uuid.UUID,
    subtask_id: uuid.UUID,
    subtask_in: SubtaskUpdate,
    current_user: CurrentUser,
    db: DBSession,
) -> SubtaskRead:
    subtask = await subtask_service.update_subtask(
        db,
        task_id=task_id,
        subtask_id=subtask_id,
        subtask_in=subtask_in,
        current_user=current_user,
    )
    return SubtaskRead.model_validate(subtask)


@router.patch(
    "/{subtask_id}/status",
    response_model=SubtaskRead,
    summary="Change a subtask's status",
)
async def change_subtask_status(
    task_id: uuid.UUID,
    subtask_id: uuid.UUID,
    body: SubtaskStatusUpdate,
    current_user: CurrentUser,
    db: DBSession,
) -> SubtaskRead:
    subtask = await subtask_service.change_status(
        db,
        task_id=task_id,
        subtask_id=subtask_id,
        new_status=body.status,
        current_user=current_user,
    )
    return SubtaskRead.model_validate(subtask)


@router.delete(
    "/{subtask_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a subtask",
)
async def delete_subtask(
    task_id: uuid.UUID,
    subtask_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> None:
    await subtask_service.delete_subtask(
        db, task_id=task_id, subtask_id=subtask_id, current_user=current_user
    )
