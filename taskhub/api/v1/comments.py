"""
Comment routes nested under tasks.
/api/v1/tasks/{task_id}/comments
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, status

from taskhub.core.dependencies import CurrentUser, DBSession, Pagination
from taskhub.schemas.comment import CommentCreate, CommentRead, CommentUpdate
from taskhub.schemas.pagination import PaginatedResponse, paginate
from taskhub.services.comment_service import comment_service

router = APIRouter(prefix="/tasks/{task_id}/comments", tags=["Comments"])


@router.get(
    "/",
    response_model=PaginatedResponse[CommentRead],
    summary="List top-level comments with reply counts",
)
async def list_comments(
    task_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
    pagination: Pagination,
) -> PaginatedResponse[CommentRead]:
    comments, total = await comment_service.list_comments(
        db,
        task_id=task_id,
        current_user=current_user,
        skip=pagination.skip,
        limit=pagination.size,
    )
    return PaginatedResponse(
        items=comments, total=total, page=pagination.page, size=pagination.size
    )


@router.get(
    "/{comment_id}",
    response_model=CommentRead,
    summary="Get a single comment",
)
async def get_comment(
    task_id: uuid.UUID,
    comment_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> CommentRead:
    return await comment_service.get_comment(
        db, task_id=task_id, comment_id=comment_id, current_user=current_user
    )


@router.get(
    "/{comment_id}/replies",
    response_model=PaginatedResponse[CommentRead],
    summary="List replies to a comment",
)
async def list_replies(
    task_id: uuid.UUID,
    comment_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
    pagination: Pagination,
) -> PaginatedResponse[CommentRead]:
    replies, total = await comment_service.list_replies(
        db,
        task_id=task_id,
        comment_id=comment_id,
        current_user=current_user,
        skip=pagination.skip,
        limit=pagination.size,
    )
    return paginate(CommentRead, replies, total, page=pagination.page, size=pagination.size)


@router.post(
    "/",
    response_model=CommentRead,
    status_code=status.HTTP_201_CREATED,
    summary="Add a comment or reply to a task",
)
async def create_comment(
    task_id: uuid.UUID,
    comment_in: CommentCreate,
    current_user: CurrentUser,
    db: DBSession,
) -> CommentRead:
    comment = await comment_service.create_comment(
        db, task_id=task_id, comment_in=comment_in, current_user=current_user
    )
    return CommentRead.model_validate(comment)


@router.put(
    "/{comment_id}",
    response_model=CommentRead,
    summary="Edit your own comment",
)
async def update_comment(
    task_id: uuid.UUID,
    comment_id: uuid.UUID,
    comment_in: CommentUpdate,
    current_user: CurrentUser,
    db: DBSession,
) -> CommentRead:
    comment = await comment_service.update_comment(
        db,
        task_id=task_id,
        comment_id=comment_id,
        content=comment_in.content,
        current_user=current_user,
    )
    return CommentRead.model_validate(comment)


@router.delete(
    "/{comment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a comment and its replies",
)
async def delete_comment(
    task_id: uuid.UUID,
    comment_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> None:
    await comment_service.delete_comment(
        db, task_id=task_id, comment_id=comment_id, current_user=current_user
    )
