"""
ActivityLog queries.
Feeds by user, entity, project and team, the admin listing, per-action
statistics and the retention purge.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import Select, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.crud.base import CRUDBase
from taskhub.models.activity_log import ActivityLog


def _date_range(
    query: Select, date_from: datetime | None, date_to: datetime | None
) -> Select:
    if date_from is not None:
        query = query.where(ActivityLog.created_at >= date_from)
    if date_to is not None:
        query = query.where(ActivityLog.created_at <= date_to)
    return query


class CRUDActivityLog(CRUDBase[ActivityLog, Any, Any]):

    async def list_filtered(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID | None = None,
        entity_type: str | None = None,
        entity_id: uuid.UUID | None = None,
        project_id: uuid.UUID | None = None,
        team_id: uuid.UUID | None = None,
        action: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[list[ActivityLog], int]:
        query = select(ActivityLog)
        if user_id is not None:
            query = query.where(ActivityLog.user_id == user_id)
        if entity_type is not None:
            query = query.where(ActivityLog.entity_type == entity_type)
        if entity_id is not None:
            query = query.where(ActivityLog.entity_id == entity_id)
        if project_id is not None:
            query = query.where(ActivityLog.project_id == project_id)
        if team_id is not None:
            query = query.where(ActivityLog.team_id == team_id)
        if action is not None:
            query = query.where(ActivityLog.action == action)
        query = _date_range(query, date_from, date_to)

        return await self.fetch_page(
            db, query.order_by(ActivityLog.created_at.desc()), skip=skip, limit=limit
        )

    async def stats_by_action(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> dict[str, int]:
        query = select(ActivityLog.action, func.count(ActivityLog.id))
        if user_id is not None:
            query = query.where(ActivityLog.user_id == user_id)
        query = _date_range(query, date_from, date_to)
        result = await db.execute(query.group_by(ActivityLog.action))
        return {row[0]: row[1] for row in result.all()}

    async def delete_older_than(self, db: AsyncSession, *, cutoff: datetime) -> int:
        result = await db.execute(
            delete(ActivityLog).where(ActivityLog.created_at < cutoff)
        )
        return result.rowcount  # type: ignore[return-value]


crud_activity_log = CRUDActivityLog(ActivityLog)
