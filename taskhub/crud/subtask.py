"""
Subtask CRUD operations.
"""
from __future__ import annotations

import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.crud.base import CRUDBase
from taskhub.models.subtask import Subtask
from taskhub.schemas.subtask import SubtaskCreate, SubtaskUpdate


class CRUDSubtask(CRUDBase[Subtask, SubtaskCreate, SubtaskUpdate]):

    async def list_by_task(self, db: AsyncSession, *, task_id: uuid.UUID) -> list[Subtask]:
        result = await db.execute(
            select(Subtask)
            .where(Subtask.task_id == task_id)
            .order_by(Subtask.position, Subtask.created_at)
        )
        return list(result.scalars().all())

    async def get_for_task(
        self, db: AsyncSession, *, task_id: uuid.UUID, subtask_id: uuid.UUID
    ) -> Subtask | None:
        result = await db.execute(
            select(Subtask).where(Subtask.id == subtask_id, Subtask.task_id == task_id)
        )
        return result.scalar_one_or_none()

    async def next_position(self, db: AsyncSession, *, task_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.max(Subtask.position)).where(Subtask.task_id == task_id)
        )
        current = result.scalar_one_or_none()
        return 0 if current is None else current + 1

    async def create_subtask(
        self,
        db: AsyncSession,
        *,
        obj_in: SubtaskCreate,
        task_id: uuid.UUID,
        created_by_id: uuid.UUID,
    ) -> Subtask:
        subtask = Subtask(
            **obj_in.model_dump(),
            task_id=task_id,
            created_by_id=created_by_id,
            position=await self.next_position(db, task_id=task_id),
        )
        db.add(subtask)
        await db.flush()
        await db.refresh(subtask)
        return subtask

    async def reorder(
        self, db: AsyncSession, *, subtasks: list[Subtask], ordered_ids: list[uuid.UUID]
    ) -> list[Subtask]:
        """Assign positions following ``ordered_ids``; callers validate the id set."""
        by_id = {s.id: s for s in subtasks}
        for position, subtask_id in enumerate(ordered_ids):
            by_id[subtask_id].position = position
        await db.flush()
        for subtask in subtasks:
            await db.refresh(subtask)
        return sorted(subtasks, key=lambda s: s.position)


crud_subtask = CRUDSubtask(Subtask)
