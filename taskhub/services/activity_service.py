"""
Activity logging service.
Writes immutable audit records to the activity_logs table, scoped to the
team and project an action happened in.
"""
from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.models.activity_log import ActivityLog

logger = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def detect_changes(
    obj: Any, updates: dict[str, Any], *, exclude: tuple[str, ...] = ()
) -> dict[str, dict[str, Any]]:
    """Return ``{field: {"old": ..., "new": ...}}`` for values that actually change."""
    changes: dict[str, dict[str, Any]] = {}
    for field, new_value in updates.items():
        if field in exclude:
            continue
        old_value = getattr(obj, field, None)
        if old_value != new_value:
            changes[field] = {"old": _jsonable(old_value), "new": _jsonable(new_value)}
    return changes


class ActivityService:

    async def log(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        action: str,
        entity_type: str,
        entity_id: uuid.UUID,
        team_id: uuid.UUID | None = None,
        project_id: uuid.UUID | None = None,
        meta: dict[str, Any] | None = None,
        ip_address: str | None = None,
    ) -> ActivityLog:
        """Create an activity log entry in the caller's transaction."""
        try:
            entry = ActivityLog(
                user_id=user_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                team_id=team_id,
                project_id=project_id,
                meta={k: _jsonable(v) for k, v in meta.items()} if meta else None,
                ip_address=ip_address,
            )
            db.add(entry)
            await db.flush()
            return entry
        except Exception as exc:
            logger.error(
                "Failed to write activity log: user_id=%s action=%s entity_type=%s: %s",
                user_id,
                action,
                entity_type,
                exc,
            )
            raise


activity_service = ActivityService()
