"""
Task CRUD operations.
Extends CRUDBase with filtering, pagination, visibility and soft-delete queries.
"""
from __future__ import annotations

import json
import uuid
from datetime import datetime

from sqlalchemy import ColumnElement, String, cast, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from taskhub.crud.base import CRUDBase
from taskhub.db.base import utcnow
from taskhub.models.task import CLOSED_STATUSES, Task
from taskhub.schemas.task import TaskCreate, TaskFilter, TaskUpdate


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _has_tag(tag: str) -> ColumnElement[bool]:
    """
    Match one element of the JSON tags array against its text form.

    SQLite keeps the text SQLAlchemy wrote (non-ASCII as \\u escapes) while
    JSONB renders it back as UTF-8, so both encodings of the quoted tag are
    tried. LIKE wildcards in the tag are matched literally.
    """
    text = cast(Task.tags, String)
    encodings = {json.dumps(tag), json.dumps(tag, ensure_ascii=False)}
    return or_(*(text.like(f"%{_escape_like(e)}%", escape="\\") for e in sorted(encodings)))


class CRUDTask(CRUDBase[Task, TaskCreate, TaskUpdate]):

    async def get_with_relations(
        self, db: AsyncSession, task_id: uuid.UUID
    ) -> Task | None:
        """Fetch a task with subtasks eagerly loaded (owner/assignee load by default)."""
        result = await db.execute(
            select(Task)
            .options(selectinload(Task.subtasks))
            .where(Task.id == task_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create_task(
        self,
        db: AsyncSession,
        *,
        obj_in: TaskCreate,
        owner_id: uuid.UUID,
        team_id: uuid.UUID | None,
    ) -> Task:
        task = Task(
            title=obj_in.title,
            description=obj_in.description,
            status=obj_in.status,
            priority=obj_in.priority,
            start_date=obj_in.start_date,
            due_date=obj_in.due_date,
            estimated_hours=obj_in.estimated_hours,
            owner_id=owner_id,
            assigned_to_id=obj_in.assigned_to_id,
            team_id=team_id,
            project_id=obj_in.project_id,
            tags=obj_in.tags,
            completed_at=utcnow() if obj_in.status == "completed" else None,
        )
        db.add(task)
        await db.flush()
        return task

    def _visibility_filter(
        self,
        *,
        user_id: uuid.UUID,
        team_ids: list[uuid.UUID],
        project_ids: list[uuid.UUID],
    ):
        conditions = [Task.owner_id == user_id, Task.assigned_to_id == user_id]
        if team_ids:
            conditions.append(Task.team_id.in_(team_ids))
        if project_ids:
            conditions.append(Task.project_id.in_(project_ids))
        return or_(*conditions)

    async def list_with_filters(
        self,
        db: AsyncSession,
        *,
        filters: TaskFilter,
        user_id: uuid.UUID | None = None,
        team_ids: list[uuid.UUID] | None = None,
        project_ids: list[uuid.UUID] | None = None,
    ) -> tuple[list[Task], int]:
        """
        Return (tasks, total) applying all filter criteria.
        If user_id is provided, restricts to tasks owned by or assigned to that
        user, or belonging to one of the given teams/projects.
        """
        query = select(Task)

        if user_id is not None:
            query = query.where(
                self._visibility_filter(
                    user_id=user_id,
                    team_ids=team_ids or [],
                    project_ids=project_ids or [],
                )
            )

        query = query.where(Task.is_archived.is_(filters.is_archived))

        if filters.status is not None:
            query = query.where(Task.status == filters.status)
        if filters.priority is not None:
            query = query.where(Task.priority == filters.priority)
        if filters.assigned_to_id is not None:
            query = query.where(Task.assigned_to_id == filters.assigned_to_id)
        if filters.team_id is not None:
            query = query.where(Task.team_id == filters.team_id)
        if filters.project_id is not None:
            query = query.where(Task.project_id == filters.project_id)
        if filters.due_date_from is not None:
            query = query.where(Task.due_date >= filters.due_date_from)
        if filters.due_date_to is not None:
            query = query.where(Task.due_date <= filters.due_date_to)
        if filters.overdue is not None:
            overdue = (Task.due_date < utcnow()) & Task.status.not_in(CLOSED_STATUSES)
            query = query.where(overdue if filters.overdue else ~overdue | Task.due_date.is_(None))
        if filters.tag:
            query = query.where(_has_tag(filters.tag.lower()))
        if filters.search:
            search_term = f"%{filters.search}%"
            query = query.where(
                or_(Task.title.ilike(search_term), Task.description.ilike(search_term))
            )

        skip = (filters.page - 1) * filters.size
        return await self.fetch_page(
            db, query.order_by(Task.created_at.desc()), skip=skip, limit=filters.size
        )

    async def list_by_team(
        self,
        db: AsyncSession,
        *,
        team_id: uuid.UUID,
        skip: int = 0,
        limit: int = 100,
        include_archived: bool = False,
    ) -> tuple[list[Task], int]:
        query = select(Task).where(Task.team_id == team_id)
        if not include_archived:
            query = query.where(Task.is_archived.is_(False))
        return await self.fetch_page(
            db, query.order_by(Task.created_at.desc()), skip=skip, limit=limit
        )

    async def archive(self, db: AsyncSession, *, task: Task) -> Task:
        task.is_archived = True
        task.archived_at = utcnow()
        db.add(task)
        await db.flush()
        await db.refresh(task)
        return task

    async def restore(self, db: AsyncSession, *, task: Task) -> Task:
        task.is_archived = False
        task.archived_at = None
        db.add(task)
        await db.flush()
        await db.refresh(task)
        return task

    async def archive_by_project(self, db: AsyncSession, *, project_id: uuid.UUID) -> int:
        result = await db.execute(
            update(Task)
            .where(Task.project_id == project_id, Task.is_archived.is_(False))
            .values(is_archived=True, archived_at=utcnow())
        )
        return result.rowcount  # type: ignore[return-value]

    async def restore_by_project(
        self, db: AsyncSession, *, project_id: uuid.UUID, archived_since: datetime
    ) -> int:
        """Un-archive tasks archived together with their project."""
        result = await db.execute(
            update(Task)
            .where(
                Task.project_id == project_id,
                Task.is_archived.is_(True),
                Task.archived_at >= archived_since,
            )
            .values(is_archived=False, archived_at=None)
        )
        return result.rowcount  # type: ignore[return-value]

    async def list_archived_before(
        self, db: AsyncSession, *, cutoff: datetime
    ) -> list[Task]:
        """Archived tasks older than ``cutoff``, with their attachments loaded."""
        result = await db.execute(
            select(Task)
            .options(selectinload(Task.attachments))
            .where(Task.is_archived.is_(True), Task.archived_at < cutoff)
        )
        return list(result.scalars().all())

    async def count_by_status(
        self, db: AsyncSession, *, project_id: uuid.UUID | None = None
    ) -> dict[str, int]:
        """Return a dict mapping status → count for non-archived tasks."""
        query = select(Task.status, func.count(Task.id)).where(Task.is_archived.is_(False))
        if project_id is not None:
            query = query.where(Task.project_id == project_id)
        result = await db.execute(query.group_by(Task.status))
        return {row[0]: row[1] for row in result.all()}

    async def count_by_priority(
        self, db: AsyncSession, *, project_id: uuid.UUID
    ) -> dict[str, int]:
        result = await db.execute(
            select(Task.priority, func.count(Task.id))
            .where(Task.project_id == project_id, Task.is_archived.is_(False))
            .group_by(Task.priority)
        )
        return {row[0]: row[1] for row in result.all()}

    async def count_overdue(self, db: AsyncSession, *, project_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(Task)
            .where(
                Task.project_id == project_id,
                Task.is_archived.is_(False),
                Task.due_date < utcnow(),
                Task.status.not_in(CLOSED_STATUSES),
            )
        )
        return result.scalar_one()

    async def list_due_between(
        self, db: AsyncSession, *, start: datetime, end: datetime
    ) -> list[Task]:
        """Open, non-archived tasks with a due date inside [start, end]."""
        result = await db.execute(
            select(Task).where(
                Task.is_archived.is_(False),
                Task.status.not_in(CLOSED_STATUSES),
                Task.due_date >= start,
                Task.due_date <= end,
            )
        )
        return list(result.scalars().all())


crud_task = CRUDTask(Task)
