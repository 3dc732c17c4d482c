"""
Celery application for background jobs.

Start a worker with the beat scheduler embedded::

    celery -A taskhub.jobs.celery_app worker --beat --loglevel=INFO

``taskhub-worker`` runs the same command.
"""
from __future__ import annotations

from datetime import timedelta
from typing import Any

from celery import Celery
from celery.signals import setup_logging

from taskhub.core.config import settings
from taskhub.core.logging import configure_logging

DELIVER_NOTIFICATION = "notification.deliver"
RUN_CLEANUP = "maintenance.cleanup"
DEADLINE_REMINDERS = "tasks.deadline_reminders"

celery_app = Celery(
    "taskhub",
    broker=settings.broker_url,
    backend=settings.result_backend,
    include=["taskhub.jobs.tasks"],
)

celery_app.conf.update(
    task_default_queue=settings.QUEUE_NAME,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    # At-least-once: a job is acknowledged only after it ran
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    # Keep name/args with each result so failed jobs can be re-sent
    result_extended=True,
    result_expires=timedelta(hours=settings.QUEUE_RESULT_EXPIRES_HOURS),
    timezone="UTC",
    enable_utc=True,
    broker_connection_retry_on_startup=True,
    beat_schedule={
        "retention-cleanup": {
            "task": RUN_CLEANUP,
            "schedule": timedelta(hours=settings.CLEANUP_INTERVAL_HOURS),
        },
        "deadline-reminders": {
            "task": DEADLINE_REMINDERS,
            "schedule": timedelta(minutes=settings.DEADLINE_REMINDER_INTERVAL_MINUTES),
        },
    },
)


@setup_logging.connect
def _configure_worker_logging(**kwargs: Any) -> None:
    configure_logging(settings.LOG_LEVEL)


def main() -> None:
    celery_app.worker_main(["worker", "--beat", f"--loglevel={settings.LOG_LEVEL}"])


if __name__ == "__main__":
    main()
