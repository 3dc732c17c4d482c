"""
Shared slowapi limiter.
A single instance is attached to app.state and used by route decorators.
"""
from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

from taskhub.core.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    enabled=settings.RATE_LIMIT_ENABLED,
)
