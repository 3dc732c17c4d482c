"""
Notification fan-out service.
Creates DB notification records and hands real-time delivery to the job
queue, or pushes directly over WebSocket when no queue is available.
"""
from __future__ import annotations

import logging
import uuid

from kombu.exceptions import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.crud.notification import crud_notification
from taskhub.db.redis import redis_available
from taskhub.jobs.celery_app import DELIVER_NOTIFICATION
from taskhub.jobs.queue import enqueue
from taskhub.models.notification import Notification
from taskhub.models.user import User
from taskhub.realtime.events import NOTIFICATION_NEW, emit, user_room
from taskhub.schemas.notification import NotificationRead
from taskhub.services.websocket_service import ws_manager

logger = logging.getLogger(__name__)


class NotificationService:

    async def notify_user(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        type: str,
        title: str,
        message: str,
        sender_id: uuid.UUID | None = None,
        priority: str = "normal",
        reference_type: str | None = None,
        reference_id: uuid.UUID | None = None,
    ) -> Notification:
        """Persist a notification and schedule its real-time delivery."""
        notification = await crud_notification.create_notification(
            db,
            user_id=user_id,
            sender_id=sender_id,
            type=type,
            title=title,
            message=message,
            priority=priority,
            reference_type=reference_type,
            reference_id=reference_id,
        )
        await self.dispatch(db, notification)
        return notification

    async def dispatch(self, db: AsyncSession, notification: Notification) -> None:
        if redis_available():
            try:
                await enqueue(DELIVER_NOTIFICATION, str(notification.id))
                return
            except OperationalError:
                logger.warning(
                    "Could not enqueue delivery of notification %s; pushing inline",
                    notification.id,
                )
        await self.push(db, notification)

    async def push(self, db: AsyncSession, notification: Notification) -> None:
        """Send ``notification:new`` to the recipient's room and stamp delivery."""
        payload = NotificationRead.model_validate(notification).model_dump(mode="json")
        await emit(user_room(notification.user_id), NOTIFICATION_NEW, payload)
        if redis_available() or ws_manager.is_connected(str(notification.user_id)):
            await crud_notification.mark_delivered(db, notification=notification)

    # ── Tasks ─────────────────────────────────────────────────────────────────

    async def notify_task_assigned(
        self,
        db: AsyncSession,
        *,
        assignee_id: uuid.UUID,
        task_id: uuid.UUID,
        task_title: str,
        assigner: User,
    ) -> None:
        await self.notify_user(
            db,
            user_id=assignee_id,
            sender_id=assigner.id,
            type="task_assigned",
            title="Task assigned",
            message=f"{assigner.username} assigned you to task: {task_title!r}",
            priority="high",
            reference_type="task",
            reference_id=task_id,
        )

    async def notify_task_updated(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        task_id: uuid.UUID,
        task_title: str,
        updater: User,
    ) -> None:
        await self.notify_user(
            db,
            user_id=user_id,
            sender_id=updater.id,
            type="task_updated",
            title="Task updated",
            message=f"{updater.username} updated task: {task_title!r}",
            reference_type="task",
            reference_id=task_id,
        )

    async def notify_task_status_changed(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        task_id: uuid.UUID,
        task_title: str,
        new_status: str,
        changer: User,
    ) -> None:
        if new_status == "completed":
            type_, title = "task_completed", "Task completed"
            message = f"{changer.username} completed task: {task_title!r}"
        else:
            type_, title = "task_status_changed", "Task status changed"
            message = f"{changer.username} moved task {task_title!r} to {new_status}"
        await self.notify_user(
            db,
            user_id=user_id,
            sender_id=changer.id,
            type=type_,
            title=title,
            message=message,
            reference_type="task",
            reference_id=task_id,
        )

    async def notify_subtask_completed(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        task_id: uuid.UUID,
        subtask_title: str,
        completer: User,
    ) -> None:
        await self.notify_user(
            db,
            user_id=user_id,
            sender_id=completer.id,
            type="subtask_completed",
            title="Subtask completed",
            message=f"{completer.username} completed subtask: {subtask_title!r}",
            priority="low",
            reference_type="task",
            reference_id=task_id,
        )

    async def notify_deadline_approaching(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        task_id: uuid.UUID,
        task_title: str,
        hours_left: int,
    ) -> None:
        await self.notify_user(
            db,
            user_id=user_id,
            type="deadline_approaching",
            title="Deadline approaching",
            message=f"Task {task_title!r} is due in {hours_left} hour(s)",
            priority="high",
            reference_type="task",
            reference_id=task_id,
        )

    # ── Comments ──────────────────────────────────────────────────────────────

    async def notify_comment_added(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        task_id: uuid.UUID,
        task_title: str,
        commenter: User,
    ) -> None:
        await self.notify_user(
            db,
            user_id=user_id,
            sender_id=commenter.id,
            type="comment_added",
            title="New comment",
            message=f"{commenter.username} commented on task: {task_title!r}",
            reference_type="task",
            reference_id=task_id,
        )

    async def notify_comment_mention(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        task_id: uuid.UUID,
        task_title: str,
        commenter: User,
    ) -> None:
        await self.notify_user(
            db,
            user_id=user_id,
            sender_id=commenter.id,
            type="comment_mention",
            title="You were mentioned",
            message=f"{commenter.username} mentioned you on task: {task_title!r}",
            priority="high",
            reference_type="task",
            reference_id=task_id,
        )

    # ── Teams ─────────────────────────────────────────────────────────────────

    async def notify_team_invite(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        team_id: uuid.UUID,
        team_name: str,
        inviter: User,
    ) -> None:
        await self.notify_user(
            db,
            user_id=user_id,
            sender_id=inviter.id,
            type="team_invite",
            title="Added to team",
            message=f"{inviter.username} added you to team: {team_name!r}",
            reference_type="team",
            reference_id=team_id,
        )

    async def notify_team_removed(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        team_id: uuid.UUID,
        team_name: str,
    ) -> None:
        await self.notify_user(
            db,
            user_id=user_id,
            type="team_removed",
            title="Removed from team",
            message=f"You have been removed from team: {team_name!r}",
            reference_type="team",
            reference_id=team_id,
        )

    async def notify_team_role_changed(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        team_id: uuid.UUID,
        team_name: str,
        role: str,
    ) -> None:
        await self.notify_user(
            db,
            user_id=user_id,
            type="team_role_changed",
            title="Team role changed",
            message=f"Your role in team {team_name!r} is now {role}",
            reference_type="team",
            reference_id=team_id,
        )

    # ── Projects ──────────────────────────────────────────────────────────────

    async def notify_project_added(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        project_id: uuid.UUID,
        project_name: str,
        inviter: User,
    ) -> None:
        await self.notify_user(
            db,
            user_id=user_id,
            sender_id=inviter.id,
            type="project_added",
            title="Added to project",
            message=f"{inviter.username} added you to project: {project_name!r}",
            reference_type="project",
            reference_id=project_id,
        )

    async def notify_project_removed(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        project_id: uuid.UUID,
        project_name: str,
    ) -> None:
        await self.notify_user(
            db,
            user_id=user_id,
            type="project_removed",
            title="Removed from project",
            message=f"You have been removed from project: {project_name!r}",
            reference_type="project",
            reference_id=project_id,
        )


notification_service = NotificationService()
