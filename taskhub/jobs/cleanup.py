"""
Retention cleanup.
Each step runs in its own savepoint so one failing step does not undo
or skip the others; the report carries a count or an error per step.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.core.config import settings
from taskhub.crud.activity_log import crud_activity_log
from taskhub.crud.attachment import crud_attachment
from taskhub.crud.notification import crud_notification
from taskhub.crud.project import crud_project
from taskhub.crud.task import crud_task
from taskhub.db.base import utcnow
from taskhub.services.attachment_service import remove_stored_file

logger = logging.getLogger(__name__)


async def _purge_activity(db: AsyncSession) -> int:
    cutoff = utcnow() - timedelta(days=settings.ACTIVITY_RETENTION_DAYS)
    return await crud_activity_log.delete_older_than(db, cutoff=cutoff)


async def _purge_archived_tasks(db: AsyncSession) -> int:
    cutoff = utcnow() - timedelta(days=settings.SOFT_DELETE_RETENTION_DAYS)
    tasks = await crud_task.list_archived_before(db, cutoff=cutoff)
    for task in tasks:
        for attachment in task.attachments:
            remove_stored_file(attachment.file_path)
        await db.delete(task)
    await db.flush()
    return len(tasks)


async def _purge_deleted_projects(db: AsyncSession) -> int:
    cutoff = utcnow() - timedelta(days=settings.SOFT_DELETE_RETENTION_DAYS)
    return await crud_project.purge_deleted_before(db, cutoff=cutoff)


async def _purge_deleted_attachments(db: AsyncSession) -> int:
    cutoff = utcnow() - timedelta(days=settings.SOFT_DELETE_RETENTION_DAYS)
    attachments = await crud_attachment.list_deleted_before(db, cutoff=cutoff)
    for attachment in attachments:
        remove_stored_file(attachment.file_path)
        await db.delete(attachment)
    await db.flush()
    return len(attachments)


async def _purge_read_notifications(db: AsyncSession) -> int:
    cutoff = utcnow() - timedelta(days=settings.NOTIFICATION_RETENTION_DAYS)
    return await crud_notification.delete_read_before(db, cutoff=cutoff)


# Archived tasks go before projects so files of a deleted project's tasks are removed too
CLEANUP_STEPS: list[tuple[str, Callable[[AsyncSession], Awaitable[int]]]] = [
    ("activity_logs", _purge_activity),
    ("archived_tasks", _purge_archived_tasks),
    ("deleted_projects", _purge_deleted_projects),
    ("deleted_attachments", _purge_deleted_attachments),
    ("read_notifications", _purge_read_notifications),
]


async def run_cleanup(db: AsyncSession) -> dict[str, dict[str, Any]]:
    """
    Run every retention step and return ``{step: {"deleted": n}}`` or
    ``{step: {"error": message}}``. The caller commits.
    """
    report: dict[str, dict[str, Any]] = {}
    for name, step in CLEANUP_STEPS:
        try:
            async with db.begin_nested():
                deleted = await step(db)
            report[name] = {"deleted": deleted}
        except Exception as exc:
            logger.exception("Cleanup step %s failed", name)
            report[name] = {"error": str(exc)}
    logger.info("Cleanup finished: %s", report)
    return report
