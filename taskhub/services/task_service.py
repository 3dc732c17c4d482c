"""
Task business logic service.
Enforces ownership, project/team access and assignment rules, keeps
completed_at in step with status, and fires notifications, activity logs
and real-time events.
"""
from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.core.exceptions import BadRequestException, ForbiddenException, NotFoundException
from taskhub.crud.project import crud_project
from taskhub.crud.task import crud_task
from taskhub.crud.team import crud_team
from taskhub.crud.user import crud_user
from taskhub.db.base import as_utc, utcnow
from taskhub.models.task import Task
from taskhub.models.user import User
from taskhub.realtime import events
from taskhub.schemas.task import TaskCreate, TaskFilter, TaskRead, TaskUpdate
from taskhub.services.activity_service import activity_service, detect_changes
from taskhub.services.notification_service import notification_service
from taskhub.services.project_service import project_service


def _status_fields(new_status: str, old_status: str | None) -> dict[str, Any]:
    """completed_at is set on entering ``completed`` and cleared on leaving it."""
    if new_status == "completed" and old_status != "completed":
        return {"status": new_status, "completed_at": utcnow()}
    if new_status != "completed":
        return {"status": new_status, "completed_at": None}
    return {"status": new_status}


class TaskService:

    async def create_task(
        self,
        db: AsyncSession,
        *,
        task_in: TaskCreate,
        current_user: User,
    ) -> Task:
        """
        Create a task.
        With a project_id the user needs at least the member role on the
        project and the task inherits the project's team. Otherwise, if
        team_id is provided, the user must belong to that team.
        """
        team_id = task_in.team_id
        if task_in.project_id is not None:
            project = await project_service.get_accessible(
                db, project_id=task_in.project_id, current_user=current_user, minimum="member"
            )
            team_id = project.team_id
        elif team_id is not None and current_user.role != "admin":
            member = await crud_team.get_member(db, team_id=team_id, user_id=current_user.id)
            if member is None:
                raise ForbiddenException(
                    "You must be a member of the team to create tasks for it"
                )

        if task_in.assigned_to_id is not None:
            await self._assert_assignable(
                db,
                assignee_id=task_in.assigned_to_id,
                project_id=task_in.project_id,
                team_id=team_id,
            )

        task = await crud_task.create_task(
            db, obj_in=task_in, owner_id=current_user.id, team_id=team_id
        )

        await activity_service.log(
            db,
            user_id=current_user.id,
            action="task_created",
            entity_type="task",
            entity_id=task.id,
            team_id=task.team_id,
            project_id=task.project_id,
            meta={"title": task.title, "status": task.status, "priority": task.priority},
        )

        # Notify assignee if different from creator
        if task.assigned_to_id and task.assigned_to_id != current_user.id:
            await notification_service.notify_task_assigned(
                db,
                assignee_id=task.assigned_to_id,
                task_id=task.id,
                task_title=task.title,
                assigner=current_user,
            )

        task = await self._reload(db, task.id)
        await self._emit(task, events.TASK_CREATED)
        return task

    async def get_task(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        current_user: User,
    ) -> Task:
        """Fetch a task, enforcing visibility rules."""
        task = await crud_task.get_with_relations(db, task_id)
        if task is None:
            raise NotFoundException("Task", str(task_id))

        await self._assert_can_view(db, task=task, user=current_user)
        return task

    async def update_task(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        task_in: TaskUpdate,
        current_user: User,
    ) -> Task:
        """Update a task. Owner, assignee, project contributors, team managers or admins."""
        task = await crud_task.get_with_relations(db, task_id)
        if task is None:
            raise NotFoundException("Task", str(task_id))

        await self._assert_can_modify(db, task=task, user=current_user)

        updates = task_in.model_dump(exclude_unset=True)
        for field in ("title", "status", "priority", "tags"):
            if field in updates and updates[field] is None:
                del updates[field]
        start = as_utc(updates.get("start_date", task.start_date))
        due = as_utc(updates.get("due_date", task.due_date))
        if start is not None and due is not None and due < start:
            raise BadRequestException("due_date must not be before start_date")

        old_status = task.status
        old_assignee = task.assigned_to_id
        new_assignee = updates.get("assigned_to_id", old_assignee)
        if "assigned_to_id" in updates and new_assignee is not None and new_assignee != old_assignee:
            await self._assert_assignable(
                db, assignee_id=new_assignee, project_id=task.project_id, team_id=task.team_id
            )
        if "status" in updates:
            updates.update(_status_fields(updates["status"], old_status))

        changes = detect_changes(task, updates, exclude=("completed_at",))
        await crud_task.update(db, db_obj=task, obj_in=updates)

        await activity_service.log(
            db,
            user_id=current_user.id,
            action="task_updated",
            entity_type="task",
            entity_id=task.id,
            team_id=task.team_id,
            project_id=task.project_id,
            meta={"changes": changes},
        )

        if (
            new_assignee is not None
            and new_assignee != old_assignee
            and new_assignee != current_user.id
        ):
            await notification_service.notify_task_assigned(
                db,
                assignee_id=new_assignee,
                task_id=task.id,
                task_title=task.title,
                assigner=current_user,
            )

        # Notify owner if someone else updated their task
        if changes and task.owner_id != current_user.id:
            await notification_service.notify_task_updated(
                db,
                user_id=task.owner_id,
                task_id=task.id,
                task_title=task.title,
                updater=current_user,
            )

        task = await self._reload(db, task_id)
        await self._emit(task, events.TASK_UPDATED, changes=changes)
        if "status" in changes:
            await self._emit(task, events.TASK_STATUS_CHANGED, old_status=old_status)
        return task

    async def change_status(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        new_status: str,
        current_user: User,
    ) -> Task:
        task = await crud_task.get_with_relations(db, task_id)
        if task is None:
            raise NotFoundException("Task", str(task_id))

        await self._assert_can_modify(db, task=task, user=current_user)

        old_status = task.status
        if new_status == old_status:
            return task

        await crud_task.update(db, db_obj=task, obj_in=_status_fields(new_status, old_status))
        await activity_service.log(
            db,
            user_id=current_user.id,
            action="task_status_changed",
            entity_type="task",
            entity_id=task.id,
            team_id=task.team_id,
            project_id=task.project_id,
            meta={"old_status": old_status, "new_status": new_status},
        )

        recipients = {task.owner_id, task.assigned_to_id} - {None, current_user.id}
        for user_id in recipients:
            await notification_service.notify_task_status_changed(
                db,
                user_id=user_id,  # type: ignore[arg-type]
                task_id=task.id,
                task_title=task.title,
                new_status=new_status,
                changer=current_user,
            )

        task = await self._reload(db, task_id)
        await self._emit(task, events.TASK_STATUS_CHANGED, old_status=old_status)
        return task

    async def delete_task(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        current_user: User,
    ) -> Task:
        """Soft-delete (archive) a task."""
        task = await crud_task.get_with_relations(db, task_id)
        if task is None:
            raise NotFoundException("Task", str(task_id))

        await self._assert_can_archive(db, task=task, user=current_user)

        await crud_task.archive(db, task=task)

        await activity_service.log(
            db,
            user_id=current_user.id,
            action="task_archived",
            entity_type="task",
            entity_id=task.id,
            team_id=task.team_id,
            project_id=task.project_id,
        )

        task = await self._reload(db, task_id)
        await self._emit(task, events.TASK_DELETED)
        return task

    async def restore_task(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        current_user: User,
    ) -> Task:
        task = await crud_task.get_with_relations(db, task_id)
        if task is None or not task.is_archived:
            raise NotFoundException("Archived task", str(task_id))

        await self._assert_can_archive(db, task=task, user=current_user)
        if task.project_id is not None:
            project = await crud_project.get_active(db, task.project_id)
            if project is None:
                raise BadRequestException("Restore the task's project first")

        await crud_task.restore(db, task=task)
        await activity_service.log(
            db,
            user_id=current_user.id,
            action="task_restored",
            entity_type="task",
            entity_id=task.id,
            team_id=task.team_id,
            project_id=task.project_id,
        )

        task = await self._reload(db, task_id)
        await self._emit(task, events.TASK_UPDATED)
        return task

    async def list_tasks(
        self,
        db: AsyncSession,
        *,
        filters: TaskFilter,
        current_user: User,
    ) -> tuple[list[Task], int]:
        """List tasks visible to the current user with filters applied."""
        if current_user.role == "admin":
            # Admins see all tasks
            return await crud_task.list_with_filters(db, filters=filters)

        team_ids = await crud_team.get_user_team_ids(db, user_id=current_user.id)
        project_ids = await crud_project.get_user_project_ids(db, current_user.id)
        return await crud_task.list_with_filters(
            db,
            filters=filters,
            user_id=current_user.id,
            team_ids=team_ids,
            project_ids=project_ids,
        )

    async def list_team_tasks(
        self,
        db: AsyncSession,
        *,
        team_id: uuid.UUID,
        current_user: User,
        skip: int,
        limit: int,
    ) -> tuple[list[Task], int]:
        team = await crud_team.get(db, team_id)
        if team is None:
            raise NotFoundException("Team", str(team_id))
        if current_user.role != "admin":
            member = await crud_team.get_member(db, team_id=team_id, user_id=current_user.id)
            if member is None:
                raise ForbiddenException("You are not a member of this team")
        return await crud_task.list_by_team(db, team_id=team_id, skip=skip, limit=limit)

    async def list_project_tasks(
        self,
        db: AsyncSession,
        *,
        project_id: uuid.UUID,
        filters: TaskFilter,
        current_user: User,
    ) -> tuple[list[Task], int]:
        await project_service.get_accessible(
            db, project_id=project_id, current_user=current_user
        )
        filters = filters.model_copy(update={"project_id": project_id})
        return await crud_task.list_with_filters(db, filters=filters)

    async def assign_task(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        assignee_id: uuid.UUID | None,
        current_user: User,
    ) -> Task:
        """Reassign a task to a different user, or unassign it with None."""
        task = await crud_task.get_with_relations(db, task_id)
        if task is None:
            raise NotFoundException("Task", str(task_id))

        await self._assert_can_modify(db, task=task, user=current_user)
        if assignee_id is not None:
            await self._assert_assignable(
                db, assignee_id=assignee_id, project_id=task.project_id, team_id=task.team_id
            )

        previous = task.assigned_to_id
        await crud_task.update(db, db_obj=task, obj_in={"assigned_to_id": assignee_id})

        if assignee_id is not None and assignee_id not in (previous, current_user.id):
            await notification_service.notify_task_assigned(
                db,
                assignee_id=assignee_id,
                task_id=task.id,
                task_title=task.title,
                assigner=current_user,
            )

        await activity_service.log(
            db,
            user_id=current_user.id,
            action="task_assigned" if assignee_id else "task_unassigned",
            entity_type="task",
            entity_id=task.id,
            team_id=task.team_id,
            project_id=task.project_id,
            meta={"assigned_to_id": assignee_id, "previous_assignee_id": previous},
        )

        task = await self._reload(db, task_id)
        await self._emit(task, events.TASK_ASSIGNED)
        return task

    # ── Access checks shared with subtasks, comments and attachments ──────────

    async def can_view(self, db: AsyncSession, *, task: Task, user: User) -> bool:
        if user.role == "admin":
            return True
        if task.owner_id == user.id or task.assigned_to_id == user.id:
            return True
        if task.team_id is not None:
            member = await crud_team.get_member(db, team_id=task.team_id, user_id=user.id)
            if member is not None:
                return True
        if task.project_id is not None:
            project = await crud_project.get(db, task.project_id)
            if project is not None:
                role = await project_service.effective_role(db, project=project, user=user)
                return role is not None
        return False

    async def can_modify(self, db: AsyncSession, *, task: Task, user: User) -> bool:
        if user.role == "admin":
            return True
        if task.owner_id == user.id or task.assigned_to_id == user.id:
            return True
        if task.project_id is not None:
            project = await crud_project.get(db, task.project_id)
            if project is not None and await project_service.has_role(
                db, project=project, user=user, minimum="member"
            ):
                return True
        if task.team_id is not None:
            member = await crud_team.get_member(db, team_id=task.team_id, user_id=user.id)
            if member is not None and member.role == "manager":
                return True
        return False

    async def get_viewable(
        self, db: AsyncSession, *, task_id: uuid.UUID, current_user: User
    ) -> Task:
        """Plain task lookup plus visibility check, for nested resources."""
        task = await crud_task.get(db, task_id)
        if task is None:
            raise NotFoundException("Task", str(task_id))
        await self._assert_can_view(db, task=task, user=current_user)
        return task

    async def get_modifiable(
        self, db: AsyncSession, *, task_id: uuid.UUID, current_user: User
    ) -> Task:
        task = await crud_task.get(db, task_id)
        if task is None:
            raise NotFoundException("Task", str(task_id))
        await self._assert_can_modify(db, task=task, user=current_user)
        return task

    # ── Private helpers ───────────────────────────────────────────────────────

    async def _reload(self, db: AsyncSession, task_id: uuid.UUID) -> Task:
        task = await crud_task.get_with_relations(db, task_id)
        if task is None:
            raise NotFoundException("Task", str(task_id))
        return task

    async def _emit(self, task: Task, event: str, **extra: Any) -> None:
        data = TaskRead.model_validate(task).model_dump(mode="json")
        data.update(extra)
        await events.emit_task_event(task, event, data)

    async def _assert_can_view(
        self, db: AsyncSession, *, task: Task, user: User
    ) -> None:
        if not await self.can_view(db, task=task, user=user):
            raise ForbiddenException("You do not have access to this task")

    async def _assert_can_modify(
        self, db: AsyncSession, *, task: Task, user: User
    ) -> None:
        if not await self.can_modify(db, task=task, user=user):
            raise ForbiddenException("You do not have permission to modify this task")

    async def _assert_can_archive(
        self, db: AsyncSession, *, task: Task, user: User
    ) -> None:
        if user.role == "admin" or task.owner_id == user.id:
            return
        if task.project_id is not None:
            project = await crud_project.get(db, task.project_id)
            if project is not None and await project_service.has_role(
                db, project=project, user=user, minimum="manager"
            ):
                return
        if task.team_id is not None:
            member = await crud_team.get_member(db, team_id=task.team_id, user_id=user.id)
            if member is not None and member.role == "manager":
                return
        raise ForbiddenException(
            "Only the task owner, a project or team manager, or an admin can archive this task"
        )

    async def _assert_assignable(
        self,
        db: AsyncSession,
        *,
        assignee_id: uuid.UUID,
        project_id: uuid.UUID | None,
        team_id: uuid.UUID | None,
    ) -> None:
        """The assignee must be active and able to see the task's project or team."""
        assignee = await crud_user.get(db, assignee_id)
        if assignee is None or not assignee.is_active:
            raise NotFoundException("User", str(assignee_id))
        if project_id is not None:
            project = await crud_project.get(db, project_id)
            if project is not None and await project_service.effective_role(
                db, project=project, user=assignee
            ) is None:
                raise BadRequestException("Assignee is not a member of the task's project")
        elif team_id is not None and assignee.role != "admin":
            member = await crud_team.get_member(db, team_id=team_id, user_id=assignee_id)
            if member is None:
                raise BadRequestException("Assignee is not a member of the task's team")


task_service = TaskService()
