"""
Redis pub/sub fan-out for real-time events.

Every API process publishes event envelopes on one channel and runs a relay
that forwards whatever arrives to its local ConnectionManager, so a client
connected to any process receives events raised in any other.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from redis.exceptions import RedisError

from taskhub.core.config import settings
from taskhub.db.redis import get_redis
from taskhub.services.websocket_service import ConnectionManager

logger = logging.getLogger(__name__)

RECONNECT_DELAY_SECONDS = 2.0


async def publish_event(envelope: dict[str, Any]) -> None:
    """Publish an event envelope on the shared events channel."""
    r = get_redis()
    await r.publish(settings.EVENTS_CHANNEL, json.dumps(envelope, default=str))


async def relay_events(manager: ConnectionManager) -> None:
    """
    Forward published envelopes to ``manager`` until cancelled.
    Reconnects after Redis errors.
    """
    while True:
        pubsub = get_redis().pubsub()
        try:
            await pubsub.subscribe(settings.EVENTS_CHANNEL)
            logger.info("Event relay subscribed to %s", settings.EVENTS_CHANNEL)
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    envelope = json.loads(message["data"])
                except json.JSONDecodeError:
                    logger.warning("Discarding malformed event: %r", message["data"])
                    continue
                await manager.dispatch(envelope)
        except RedisError:
            logger.exception("Event relay lost its Redis subscription")
            await asyncio.sleep(RECONNECT_DELAY_SECONDS)
        finally:
            await pubsub.aclose()
