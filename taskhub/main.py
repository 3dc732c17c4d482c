"""
TaskHub FastAPI application entrypoint.
Configures lifespan, CORS, rate limiting, exception handlers, and routers.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from taskhub.api.v1.router import api_router
from taskhub.core.config import settings
from taskhub.core.exceptions import register_exception_handlers
from taskhub.core.logging import RequestLoggingMiddleware, configure_logging
from taskhub.core.rate_limit import limiter
from taskhub.db.redis import close_redis, init_redis, redis_available
from taskhub.db.session import AsyncSessionLocal, engine
from taskhub.jobs.celery_app import RUN_CLEANUP
from taskhub.jobs.cleanup import run_cleanup
from taskhub.jobs.queue import enqueue
from taskhub.realtime.pubsub import relay_events
from taskhub.services.websocket_service import ws_manager

logger = logging.getLogger(__name__)


async def _startup_cleanup() -> None:
    if redis_available():
        await enqueue(RUN_CLEANUP)
        logger.info("Startup cleanup enqueued")
        return
    async with AsyncSessionLocal() as db:
        report = await run_cleanup(db)
        await db.commit()
    logger.info("Startup cleanup finished: %s", report)


# ── Lifespan ──────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.
    Connects Redis and starts the event relay. Jobs run in the Celery
    worker; everything started here is torn down after yield.
    """
    configure_logging(settings.LOG_LEVEL)
    logger.info("Starting %s v%s", settings.APP_NAME, settings.APP_VERSION)

    background: list[asyncio.Task] = []

    if settings.REDIS_ENABLED:
        try:
            await init_redis()
        except (RedisError, OSError) as exc:
            logger.warning("Redis unavailable, running without queue and fan-out: %s", exc)

    if redis_available():
        background.append(asyncio.create_task(relay_events(ws_manager)))

    if settings.RUN_CLEANUP_ON_STARTUP:
        await _startup_cleanup()

    yield

    logger.info("Shutting down %s", settings.APP_NAME)
    for task in background:
        task.cancel()
    await asyncio.gather(*background, return_exceptions=True)
    await close_redis()
    await engine.dispose()


# ── Application factory ───────────────────────────────────────────────────────
def create_application() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description=(
            "Task management REST API with teams, projects, JWT auth, "
            "real-time WebSocket events and a Celery job queue."
        ),
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Sessions opened outside request dependencies (WebSocket handlers)
    app.state.session_factory = AsyncSessionLocal

    app.add_middleware(RequestLoggingMiddleware)

    # ── CORS ──────────────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Rate limiting middleware ───────────────────────────────────────────────
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]

    # ── Custom exception handlers ─────────────────────────────────────────────
    register_exception_handlers(app)

    # ── API routers ───────────────────────────────────────────────────────────
    app.include_router(api_router, prefix=settings.API_V1_STR)

    # ── Health check ──────────────────────────────────────────────────────────
    @app.get("/health", tags=["Health"], include_in_schema=False)
    async def health_check() -> dict[str, str]:
        return {
            "status": "ok",
            "service": settings.APP_NAME,
            "redis": "up" if redis_available() else "down",
        }

    return app


app = create_application()
