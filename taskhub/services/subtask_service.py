"""
Subtask business logic service.
Anyone who can view the parent task may list its subtasks; task modifiers
manage them and a subtask's assignee may update it.
"""
from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.core.exceptions import BadRequestException, ForbiddenException, NotFoundException
from taskhub.crud.subtask import crud_subtask
from taskhub.crud.user import crud_user
from taskhub.db.base import utcnow
from taskhub.models.subtask import Subtask
from taskhub.models.task import Task
from taskhub.models.user import User
from taskhub.realtime import events
from taskhub.schemas.subtask import SubtaskCreate, SubtaskRead, SubtaskUpdate
from taskhub.services.activity_service import activity_service
from taskhub.services.notification_service import notification_service
from taskhub.services.task_service import task_service


class SubtaskService:

    async def list_subtasks(
        self, db: AsyncSession, *, task_id: uuid.UUID, current_user: User
    ) -> list[Subtask]:
        await task_service.get_viewable(db, task_id=task_id, current_user=current_user)
        return await crud_subtask.list_by_task(db, task_id=task_id)

    async def create_subtask(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        subtask_in: SubtaskCreate,
        current_user: User,
    ) -> Subtask:
        task = await task_service.get_modifiable(db, task_id=task_id, current_user=current_user)
        if subtask_in.assigned_to_id is not None:
            await self._assert_user_exists(db, subtask_in.assigned_to_id)

        subtask = await crud_subtask.create_subtask(
            db, obj_in=subtask_in, task_id=task_id, created_by_id=current_user.id
        )
        await self._log(db, task=task, user=current_user, action="subtask_created", subtask=subtask)
        await self._emit(task, events.SUBTASK_CREATED, subtask)
        return subtask

    async def update_subtask(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        subtask_id: uuid.UUID,
        subtask_in: SubtaskUpdate,
        current_user: User,
    ) -> Subtask:
        task, subtask = await self._get_for_update(
            db, task_id=task_id, subtask_id=subtask_id, user=current_user
        )
        updates = subtask_in.model_dump(exclude_unset=True)
        for field in ("title", "status"):
            if field in updates and updates[field] is None:
                del updates[field]
        if updates.get("assigned_to_id") is not None:
            await self._assert_user_exists(db, updates["assigned_to_id"])
        return await self._apply(db, task=task, subtask=subtask, updates=updates, user=current_user)

    async def change_status(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        subtask_id: uuid.UUID,
        new_status: str,
        current_user: User,
    ) -> Subtask:
        task, subtask = await self._get_for_update(
            db, task_id=task_id, subtask_id=subtask_id, user=current_user
        )
        return await self._apply(
            db, task=task, subtask=subtask, updates={"status": new_status}, user=current_user
        )

    async def delete_subtask(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        subtask_id: uuid.UUID,
        current_user: User,
    ) -> None:
        task = await task_service.get_modifiable(db, task_id=task_id, current_user=current_user)
        subtask = await crud_subtask.get_for_task(db, task_id=task_id, subtask_id=subtask_id)
        if subtask is None:
            raise NotFoundException("Subtask", str(subtask_id))

        data = SubtaskRead.model_validate(subtask).model_dump(mode="json")
        await self._log(db, task=task, user=current_user, action="subtask_deleted", subtask=subtask)
        await crud_subtask.remove(db, db_obj=subtask)
        await events.emit_task_event(task, events.SUBTASK_DELETED, data)

    async def reorder(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        subtask_ids: list[uuid.UUID],
        current_user: User,
    ) -> list[Subtask]:
        """Positions follow ``subtask_ids``, which must list every subtask once."""
        task = await task_service.get_modifiable(db, task_id=task_id, current_user=current_user)
        subtasks = await crud_subtask.list_by_task(db, task_id=task_id)
        if len(subtask_ids) != len(set(subtask_ids)) or set(subtask_ids) != {
            s.id for s in subtasks
        }:
            raise BadRequestException("subtask_ids must list every subtask of the task exactly once")

        ordered = await crud_subtask.reorder(db, subtasks=subtasks, ordered_ids=subtask_ids)
        await activity_service.log(
            db,
            user_id=current_user.id,
            action="subtasks_reordered",
            entity_type="task",
            entity_id=task.id,
            team_id=task.team_id,
            project_id=task.project_id,
            meta={"order": subtask_ids},
        )
        await events.emit_task_event(
            task,
            events.SUBTASK_UPDATED,
            {"task_id": str(task.id), "order": [str(s.id) for s in ordered]},
        )
        return ordered

    # ── Private helpers ───────────────────────────────────────────────────────

    async def _get_for_update(
        self, db: AsyncSession, *, task_id: uuid.UUID, subtask_id: uuid.UUID, user: User
    ) -> tuple[Task, Subtask]:
        task = await task_service.get_viewable(db, task_id=task_id, current_user=user)
        subtask = await crud_subtask.get_for_task(db, task_id=task_id, subtask_id=subtask_id)
        if subtask is None:
            raise NotFoundException("Subtask", str(subtask_id))
        if subtask.assigned_to_id != user.id and not await task_service.can_modify(
            db, task=task, user=user
        ):
            raise ForbiddenException("You do not have permission to modify this subtask")
        return task, subtask

    async def _apply(
        self,
        db: AsyncSession,
        *,
        task: Task,
        subtask: Subtask,
        updates: dict[str, Any],
        user: User,
    ) -> Subtask:
        old_status = subtask.status
        new_status = updates.get("status", old_status)
        if new_status != old_status:
            updates["completed_at"] = utcnow() if new_status == "completed" else None

        updated = await crud_subtask.update(db, db_obj=subtask, obj_in=updates)
        await self._log(db, task=task, user=user, action="subtask_updated", subtask=updated)

        if new_status == "completed" and old_status != "completed" and task.owner_id != user.id:
            await notification_service.notify_subtask_completed(
                db,
                user_id=task.owner_id,
                task_id=task.id,
                subtask_title=updated.title,
                completer=user,
            )
        await self._emit(task, events.SUBTASK_UPDATED, updated)
        return updated

    async def _assert_user_exists(self, db: AsyncSession, user_id: uuid.UUID) -> None:
        user = await crud_user.get(db, user_id)
        if user is None or not user.is_active:
            raise NotFoundException("User", str(user_id))

    async def _log(
        self, db: AsyncSession, *, task: Task, user: User, action: str, subtask: Subtask
    ) -> None:
        await activity_service.log(
            db,
            user_id=user.id,
            action=action,
            entity_type="subtask",
            entity_id=subtask.id,
            team_id=task.team_id,
            project_id=task.project_id,
            meta={"task_id": task.id, "title": subtask.title, "status": subtask.status},
        )

    async def _emit(self, task: Task, event: str, subtask: Subtask) -> None:
        data = SubtaskRead.model_validate(subtask).model_dump(mode="json")
        await events.emit_task_event(task, event, data)


subtask_service = SubtaskService()
