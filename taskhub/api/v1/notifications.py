"""
Notification routes.
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.core.dependencies import CurrentUser, DBSession, Pagination
from taskhub.core.exceptions import NotFoundException
from taskhub.crud.notification import crud_notification
from taskhub.models.notification import Notification
from taskhub.models.user import User
from taskhub.schemas.notification import BulkResult, NotificationRead, UnreadCount
from taskhub.schemas.pagination import PaginatedResponse, paginate

router = APIRouter(prefix="/notifications", tags=["Notifications"])


async def _get_own(
    db: AsyncSession, notification_id: uuid.UUID, user: User
) -> Notification:
    notification = await crud_notification.get_for_user(
        db, notification_id=notification_id, user_id=user.id
    )
    if notification is None:
        raise NotFoundException("Notification", str(notification_id))
    return notification


@router.get(
    "/",
    response_model=PaginatedResponse[NotificationRead],
    summary="List my notifications",
)
async def list_notifications(
    current_user: CurrentUser,
    db: DBSession,
    pagination: Pagination,
    unread_only: bool = Query(default=False),
    type: str | None = Query(default=None, max_length=50),
) -> PaginatedResponse[NotificationRead]:
    notifications, total = await crud_notification.list_by_user(
        db,
        user_id=current_user.id,
        skip=pagination.skip,
        limit=pagination.size,
        unread_only=unread_only,
        type=type,
    )
    return paginate(
        NotificationRead, notifications, total, page=pagination.page, size=pagination.size
    )


@router.get(
    "/unread-count",
    response_model=UnreadCount,
    summary="Number of unread notifications",
)
async def unread_count(current_user: CurrentUser, db: DBSession) -> UnreadCount:
    return UnreadCount(unread=await crud_notification.count_unread(db, user_id=current_user.id))


@router.put(
    "/read-all",
    response_model=BulkResult,
    summary="Mark all notifications as read",
)
async def mark_all_read(
    current_user: CurrentUser,
    db: DBSession,
) -> BulkResult:
    affected = await crud_notification.mark_all_read(db, user_id=current_user.id)
    return BulkResult(affected=affected)


@router.delete(
    "/read",
    response_model=BulkResult,
    summary="Delete all read notifications",
)
async def delete_read(current_user: CurrentUser, db: DBSession) -> BulkResult:
    affected = await crud_notification.delete_read(db, user_id=current_user.id)
    return BulkResult(affected=affected)


@router.get(
    "/{notification_id}",
    response_model=NotificationRead,
    summary="Get a notification",
)
async def get_notification(
    notification_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> NotificationRead:
    notification = await _get_own(db, notification_id, current_user)
    return NotificationRead.model_validate(notification)


@router.put(
    "/{notification_id}/read",
    response_model=NotificationRead,
    summary="Mark a notification as read",
)
async def mark_as_read(
    notification_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> NotificationRead:
    notification = await _get_own(db, notification_id, current_user)
    notification = await crud_notification.mark_as_read(db, notification=notification)
    return NotificationRead.model_validate(notification)


@router.delete(
    "/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a notification",
)
async def delete_notification(
    notification_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> None:
    notification = await _get_own(db, notification_id, current_user)
    await crud_notification.remove(db, db_obj=notification)
