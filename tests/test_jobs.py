"""
Celery task configuration and job body tests.
"""
from __future__ import annotations

import uuid
from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import literal, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskhub.core.config import settings
from taskhub.jobs import handlers, tasks
from taskhub.jobs.celery_app import (
    DEADLINE_REMINDERS,
    DELIVER_NOTIFICATION,
    RUN_CLEANUP,
    celery_app,
)
from taskhub.services.websocket_service import ws_manager


class TestCeleryConfig:
    def test_tasks_registered_by_name(self) -> None:
        for name in (DELIVER_NOTIFICATION, RUN_CLEANUP, DEADLINE_REMINDERS):
            assert name in celery_app.tasks

    @pytest.mark.parametrize(
        "task", [tasks.deliver_notification, tasks.run_cleanup, tasks.send_deadline_reminders]
    )
    def test_retry_policy(self, task) -> None:
        assert task.autoretry_for == (Exception,)
        assert task.retry_backoff == settings.QUEUE_BACKOFF_SECONDS
        assert task.retry_jitter is False
        assert task.max_retries == settings.QUEUE_MAX_ATTEMPTS - 1

    def test_at_least_once_delivery(self) -> None:
        assert celery_app.conf.task_acks_late is True
        assert celery_app.conf.task_reject_on_worker_lost is True
        assert celery_app.conf.task_default_queue == settings.QUEUE_NAME

    def test_beat_schedule(self) -> None:
        schedule = {
            entry["task"]: entry["schedule"] for entry in celery_app.conf.beat_schedule.values()
        }
        assert schedule == {
            RUN_CLEANUP: timedelta(hours=settings.CLEANUP_INTERVAL_HOURS),
            DEADLINE_REMINDERS: timedelta(minutes=settings.DEADLINE_REMINDER_INTERVAL_MINUTES),
        }


class TestRunJob:
    def test_runs_with_its_own_engine(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "DATABASE_URL", "sqlite+aiosqlite://")

        async def job(session_factory: async_sessionmaker[AsyncSession]) -> int:
            async with session_factory() as db:
                return (await db.execute(select(literal(42)))).scalar_one()

        assert tasks.run_job(job) == 42

    def test_task_hands_arguments_to_job(self, monkeypatch: pytest.MonkeyPatch) -> None:
        seen = []
        monkeypatch.setattr(tasks, "run_job", lambda job: seen.append(job.keywords))

        tasks.deliver_notification.run("abc")
        assert seen == [{"notification_id": "abc"}]


@pytest.mark.asyncio
class TestHandlers:
    async def test_missing_notification_raises(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        with pytest.raises(LookupError):
            await handlers.deliver_notification(
                session_factory, notification_id=str(uuid.uuid4())
            )

    async def test_cleanup_returns_report(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        report = await handlers.cleanup(session_factory)
        assert report["activity_logs"] == {"deleted": 0}

    async def test_deadline_reminders_counts(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        assert await handlers.deadline_reminders(session_factory) == 0

    async def test_deliver_pushes_and_stamps(
        self,
        client: AsyncClient,
        db: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
        auth_headers: dict,
        other_user: tuple,
        fake_redis,
        sent_jobs: list,
    ) -> None:
        other, other_headers = other_user
        await client.post(
            "/api/v1/tasks/",
            json={"title": "Deliver me", "assigned_to_id": other["id"]},
            headers=auth_headers,
        )
        # Jobs use their own sessions, so the request data must be committed
        await db.commit()
        (job,) = sent_jobs

        await handlers.deliver_notification(session_factory, notification_id=job["args"][0])
        db.expire_all()

        listing = await client.get("/api/v1/notifications/", headers=other_headers)
        assert listing.json()["items"][0]["delivered_at"] is not None
        assert not ws_manager.is_connected(other["id"])
