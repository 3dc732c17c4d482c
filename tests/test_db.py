"""
Engine configuration tests.
"""
from __future__ import annotations

from taskhub.core.config import settings
from taskhub.db.session import engine_options


class TestEngineOptions:
    def test_server_database_gets_pool_sizing(self) -> None:
        options = engine_options("postgresql+asyncpg://user:secret@db:5432/taskhub")
        assert options["pool_pre_ping"] is True
        assert options["pool_size"] == settings.DB_POOL_SIZE
        assert options["max_overflow"] == settings.DB_MAX_OVERFLOW
        assert options["pool_recycle"] == settings.DB_POOL_RECYCLE_SECONDS

    def test_sqlite_keeps_its_default_pool(self) -> None:
        assert engine_options("sqlite+aiosqlite:///./taskhub.db") == {"echo": settings.DEBUG}
