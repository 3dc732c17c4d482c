"""
Producer side of the job queue, plus the admin views over it.

Jobs are Celery tasks sent by name, so the API process never imports the
task modules. Waiting jobs are counted on the broker list; finished jobs
are read from the Redis result backend, which keeps each job's name and
arguments (``result_extended``) so failed ones can be sent again.
"""
from __future__ import annotations

import asyncio
import json
import logging
from collections import Counter
from typing import Any

from taskhub.core.config import settings
from taskhub.db.redis import get_redis
from taskhub.jobs.celery_app import celery_app

logger = logging.getLogger(__name__)

RESULT_KEY_PREFIX = "celery-task-meta-"


async def enqueue(
    name: str,
    *args: Any,
    kwargs: dict[str, Any] | None = None,
    countdown: float | None = None,
) -> str:
    """Send job ``name`` to the queue. Returns the Celery task id."""
    result = await asyncio.to_thread(
        celery_app.send_task,
        name,
        args=list(args),
        kwargs=kwargs or {},
        countdown=countdown,
        queue=settings.QUEUE_NAME,
    )
    logger.debug("Enqueued %s as %s", name, result.id)
    return result.id


async def _stored_results() -> list[tuple[str, dict[str, Any]]]:
    r = get_redis()
    found: list[tuple[str, dict[str, Any]]] = []
    async for key in r.scan_iter(match=f"{RESULT_KEY_PREFIX}*"):
        raw = await r.get(key)
        if raw is None:
            continue
        try:
            found.append((key, json.loads(raw)))
        except json.JSONDecodeError:
            logger.warning("Skipping unreadable job result %s", key)
    return found


async def queue_stats() -> dict[str, Any]:
    states = Counter(meta.get("status") for _, meta in await _stored_results())
    return {
        "name": settings.QUEUE_NAME,
        "waiting": await get_redis().llen(settings.QUEUE_NAME),
        "retrying": states["RETRY"],
        "succeeded": states["SUCCESS"],
        "failed": states["FAILURE"],
    }


async def retry_failed() -> int:
    """Send every failed job again with its original arguments."""
    r = get_redis()
    retried = 0
    for key, meta in await _stored_results():
        if meta.get("status") != "FAILURE" or not meta.get("name"):
            continue
        await enqueue(meta["name"], *(meta.get("args") or []), kwargs=meta.get("kwargs"))
        await r.delete(key)
        retried += 1
    if retried:
        logger.info("Re-sent %d failed jobs", retried)
    return retried


async def clean_failed() -> int:
    keys = [key for key, meta in await _stored_results() if meta.get("status") == "FAILURE"]
    if keys:
        await get_redis().delete(*keys)
    return len(keys)
