"""
Notification CRUD operations.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.crud.base import CRUDBase
from taskhub.db.base import utcnow
from taskhub.models.notification import Notification
from taskhub.schemas.notification import NotificationRead


class CRUDNotification(CRUDBase[Notification, NotificationRead, NotificationRead]):

    async def create_notification(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        type: str,
        title: str,
        message: str,
        sender_id: uuid.UUID | None = None,
        priority: str = "normal",
        reference_type: str | None = None,
        reference_id: uuid.UUID | None = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            sender_id=sender_id,
            type=type,
            title=title,
            message=message,
            priority=priority,
            reference_type=reference_type,
            reference_id=reference_id,
        )
        db.add(notification)
        await db.flush()
        await db.refresh(notification)
        return notification

    async def get_for_user(
        self, db: AsyncSession, *, notification_id: uuid.UUID, user_id: uuid.UUID
    ) -> Notification | None:
        result = await db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_by_user(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
        unread_only: bool = False,
        type: str | None = None,
    ) -> tuple[list[Notification], int]:
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        if type is not None:
            query = query.where(Notification.type == type)

        return await self.fetch_page(
            db, query.order_by(Notification.created_at.desc()), skip=skip, limit=limit
        )

    async def mark_as_read(
        self, db: AsyncSession, *, notification: Notification
    ) -> Notification:
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            db.add(notification)
            await db.flush()
        return notification

    async def mark_all_read(self, db: AsyncSession, *, user_id: uuid.UUID) -> int:
        """Mark all unread notifications for a user as read. Returns count updated."""
        result = await db.execute(
            update(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=utcnow())
        )
        return result.rowcount  # type: ignore[return-value]

    async def mark_delivered(self, db: AsyncSession, *, notification: Notification) -> None:
        notification.delivered_at = utcnow()
        db.add(notification)
        await db.flush()

    async def count_unread(self, db: AsyncSession, *, user_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        )
        return result.scalar_one()

    async def delete_read(self, db: AsyncSession, *, user_id: uuid.UUID) -> int:
        result = await db.execute(
            delete(Notification).where(
                Notification.user_id == user_id, Notification.is_read.is_(True)
            )
        )
        return result.rowcount  # type: ignore[return-value]

    async def delete_read_before(self, db: AsyncSession, *, cutoff: datetime) -> int:
        result = await db.execute(
            delete(Notification).where(
                Notification.is_read.is_(True), Notification.created_at < cutoff
            )
        )
        return result.rowcount  # type: ignore[return-value]

    async def has_notification(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        type: str,
        reference_id: uuid.UUID,
    ) -> bool:
        return await self.exists(db, user_id=user_id, type=type, reference_id=reference_id)


crud_notification = CRUDNotification(Notification)
