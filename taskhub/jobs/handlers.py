"""
Job bodies run by the Celery tasks.
Every job opens its own database session and commits on success; raising
lets Celery retry the job with backoff.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskhub.crud.notification import crud_notification
from taskhub.jobs.cleanup import run_cleanup
from taskhub.jobs.reminders import send_deadline_reminders
from taskhub.services.notification_service import notification_service

logger = logging.getLogger(__name__)


class NotificationNotFound(LookupError):
    """The notification row is not visible yet (or was deleted)."""


async def deliver_notification(
    session_factory: async_sessionmaker[AsyncSession], *, notification_id: str
) -> None:
    async with session_factory() as db:
        notification = await crud_notification.get(db, uuid.UUID(notification_id))
        if notification is None:
            raise NotificationNotFound(f"Notification {notification_id} not found")
        await notification_service.push(db, notification)
        await db.commit()


async def cleanup(session_factory: async_sessionmaker[AsyncSession]) -> dict[str, dict[str, Any]]:
    async with session_factory() as db:
        report = await run_cleanup(db)
        await db.commit()
    logger.info("Retention cleanup finished: %s", report)
    return report


async def deadline_reminders(session_factory: async_sessionmaker[AsyncSession]) -> int:
    async with session_factory() as db:
        sent = await send_deadline_reminders(db)
        await db.commit()
    return sent
