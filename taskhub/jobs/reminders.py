"""
Deadline reminders for tasks that are due soon.
"""
from __future__ import annotations

import logging
import math
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.core.config import settings
from taskhub.crud.notification import crud_notification
from taskhub.crud.task import crud_task
from taskhub.db.base import as_utc, utcnow
from taskhub.services.notification_service import notification_service

logger = logging.getLogger(__name__)


async def send_deadline_reminders(db: AsyncSession) -> int:
    """
    Notify the assignee (or the owner when unassigned) of every open task
    due within DEADLINE_REMINDER_WINDOW_HOURS. Each task is reminded once
    per recipient. Returns the number of reminders sent.
    """
    now = utcnow()
    window_end = now + timedelta(hours=settings.DEADLINE_REMINDER_WINDOW_HOURS)
    tasks = await crud_task.list_due_between(db, start=now, end=window_end)

    sent = 0
    for task in tasks:
        recipient_id = task.assigned_to_id or task.owner_id
        if await crud_notification.has_notification(
            db,
            user_id=recipient_id,
            type="deadline_approaching",
            reference_id=task.id,
        ):
            continue
        seconds_left = (as_utc(task.due_date) - now).total_seconds()
        await notification_service.notify_deadline_approaching(
            db,
            user_id=recipient_id,
            task_id=task.id,
            task_title=task.title,
            hours_left=max(1, math.ceil(seconds_left / 3600)),
        )
        sent += 1

    if sent:
        logger.info("Sent %d deadline reminder(s)", sent)
    return sent
