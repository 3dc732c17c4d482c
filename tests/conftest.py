"""
Test configuration and shared fixtures.
Each test gets its own in-memory SQLite database; Redis is replaced by
fakeredis where a test needs the queue.
"""
from __future__ import annotations

import os
import tempfile

# Settings are read at import time
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["REDIS_ENABLED"] = "false"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="taskhub-uploads-"))

import uuid  # noqa: E402
from collections.abc import AsyncGenerator  # noqa: E402
from types import SimpleNamespace  # noqa: E402
from typing import Any  # noqa: E402

import fakeredis  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

import taskhub.models  # noqa: E402,F401
from taskhub.core.security import hash_password  # noqa: E402
from taskhub.db import redis as redis_module  # noqa: E402
from taskhub.db.base import Base  # noqa: E402
from taskhub.db.session import get_db  # noqa: E402
from taskhub.jobs.celery_app import celery_app  # noqa: E402
from taskhub.main import app  # noqa: E402
from taskhub.models.user import User  # noqa: E402

# ── Test database ─────────────────────────────────────────────────────────────
TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database with every table created."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Session shared by the test body and every request it makes."""
    async with session_factory() as session:
        try:
            yield session
            await session.rollback()
        finally:
            await session.close()


@pytest_asyncio.fixture
async def client(db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP test client with the test DB injected."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def fake_redis() -> AsyncGenerator[fakeredis.FakeAsyncRedis, None]:
    """Install an in-memory Redis as the shared connection."""
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    await client.flushall()
    redis_module._redis = client
    yield client
    redis_module._redis = None
    await client.flushall()
    await client.aclose()


@pytest.fixture
def sent_jobs(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    """Record jobs sent to Celery instead of publishing them."""
    sent: list[dict[str, Any]] = []

    def send_task(name: str, args=None, kwargs=None, **options: Any) -> SimpleNamespace:
        job_id = uuid.uuid4().hex
        sent.append(
            {"id": job_id, "name": name, "args": list(args or []), "kwargs": kwargs or {}, **options}
        )
        return SimpleNamespace(id=job_id)

    monkeypatch.setattr(celery_app, "send_task", send_task)
    return sent


# ── Helper fixtures ───────────────────────────────────────────────────────────

async def _register_and_login(
    client: AsyncClient, email: str, username: str, password: str = "TestPass1"
) -> tuple[dict[str, Any], dict[str, str]]:
    """Register a user and return (user json, auth headers)."""
    response = await client.post(
        "/api/v1/auth/register",
        json={"email": email, "username": username, "password": password},
    )
    assert response.status_code == 201, response.text
    login = await client.post(
        "/api/v1/auth/login",
        json={"email": email, "password": password},
    )
    assert login.status_code == 200, login.text
    return response.json(), {"Authorization": f"Bearer {login.json()['access_token']}"}


@pytest_asyncio.fixture
async def registered_user(client: AsyncClient) -> dict[str, Any]:
    """Register and return a standard user."""
    response = await client.post(
        "/api/v1/auth/register",
        json={
            "email": "testuser@example.com",
            "username": "testuser",
            "password": "TestPass1",
            "full_name": "Test User",
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest_asyncio.fixture
async def auth_headers(client: AsyncClient, registered_user: dict) -> dict[str, str]:
    """Return Authorization headers for the registered test user."""
    response = await client.post(
        "/api/v1/auth/login",
        json={"email": "testuser@example.com", "password": "TestPass1"},
    )
    assert response.status_code == 200, response.text
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def other_user(client: AsyncClient) -> tuple[dict[str, Any], dict[str, str]]:
    """A second, unrelated user and their headers."""
    return await _register_and_login(client, "other@example.com", "otheruser", "OtherPass1")


@pytest_asyncio.fixture
async def registered_admin(client: AsyncClient, db: AsyncSession) -> dict[str, Any]:
    """Register an admin user directly via the DB."""
    admin = User(
        email="admin@example.com",
        username="adminuser",
        hashed_password=hash_password("AdminPass1"),
        full_name="Admin User",
        role="admin",
        is_active=True,
        is_verified=True,
    )
    db.add(admin)
    await db.flush()
    await db.refresh(admin)
    return {"id": str(admin.id), "email": admin.email, "username": admin.username}


@pytest_asyncio.fixture
async def admin_headers(client: AsyncClient, registered_admin: dict) -> dict[str, str]:
    """Return Authorization headers for the admin user."""
    response = await client.post(
        "/api/v1/auth/login",
        json={"email": "admin@example.com", "password": "AdminPass1"},
    )
    assert response.status_code == 200, response.text
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}
