"""
Celery task definitions.

Each task runs its job on a fresh event loop with a dedicated engine and
Redis connection; nothing bound to one loop is reused by the next task.
Retries use Celery's exponential backoff: QUEUE_BACKOFF_SECONDS, doubled
after every failed attempt, up to QUEUE_MAX_ATTEMPTS attempts in total.
"""
from __future__ import annotations

import asyncio
from functools import partial
from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from taskhub.core.config import settings
from taskhub.db.redis import close_redis, init_redis
from taskhub.jobs import handlers
from taskhub.jobs.celery_app import (
    DEADLINE_REMINDERS,
    DELIVER_NOTIFICATION,
    RUN_CLEANUP,
    celery_app,
)

T = TypeVar("T")

Job = Callable[[async_sessionmaker[AsyncSession]], Awaitable[T]]

RETRY_POLICY: dict[str, Any] = {
    "autoretry_for": (Exception,),
    "retry_backoff": settings.QUEUE_BACKOFF_SECONDS,
    "retry_backoff_max": 600,
    "retry_jitter": False,
    "max_retries": settings.QUEUE_MAX_ATTEMPTS - 1,
}


def run_job(job: Job[T]) -> T:
    """Run an async job to completion from a synchronous Celery task."""

    async def runner() -> T:
        engine = create_async_engine(settings.DATABASE_URL, poolclass=NullPool)
        session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        try:
            if settings.REDIS_ENABLED:
                await init_redis()
            return await job(session_factory)
        finally:
            await close_redis()
            await engine.dispose()

    return asyncio.run(runner())


@celery_app.task(name=DELIVER_NOTIFICATION, **RETRY_POLICY)
def deliver_notification(notification_id: str) -> None:
    run_job(partial(handlers.deliver_notification, notification_id=notification_id))


@celery_app.task(name=RUN_CLEANUP, **RETRY_POLICY)
def run_cleanup() -> dict[str, dict[str, Any]]:
    return run_job(handlers.cleanup)


@celery_app.task(name=DEADLINE_REMINDERS, **RETRY_POLICY)
def send_deadline_reminders() -> int:
    return run_job(handlers.deadline_reminders)
