"""
Shared Redis connection used by the job queue and the real-time event relay.
Initialized in the application lifespan and the worker entrypoint.
"""
from __future__ import annotations

import logging

import redis.asyncio as aioredis

from taskhub.core.config import settings

logger = logging.getLogger(__name__)

_redis: aioredis.Redis | None = None


async def init_redis(url: str | None = None) -> aioredis.Redis:
    """Create the connection pool and verify it with a PING."""
    global _redis
    client = aioredis.from_url(
        url or settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
    )
    await client.ping()
    _redis = client
    logger.info("Connected to Redis at %s", url or settings.REDIS_URL)
    return client


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    """Return the shared client. Raises RuntimeError before init_redis()."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


def redis_available() -> bool:
    return _redis is not None
