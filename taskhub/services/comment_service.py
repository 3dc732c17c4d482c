"""
Comment business logic service.
Handles threaded replies, @username mentions and comment notifications.
"""
from __future__ import annotations

import re
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.core.exceptions import BadRequestException, ForbiddenException, NotFoundException
from taskhub.crud.comment import crud_comment
from taskhub.crud.user import crud_user
from taskhub.models.comment import Comment
from taskhub.models.task import Task
from taskhub.models.user import User
from taskhub.realtime import events
from taskhub.schemas.comment import CommentCreate, CommentRead
from taskhub.services.activity_service import activity_service
from taskhub.services.notification_service import notification_service
from taskhub.services.task_service import task_service

MENTION_PATTERN = re.compile(r"(?<![\w@])@([A-Za-z0-9_\-]+)")


def extract_mentions(content: str) -> list[str]:
    """Usernames mentioned as ``@name``, lower-cased, in first-seen order."""
    seen: dict[str, None] = {}
    for name in MENTION_PATTERN.findall(content):
        seen.setdefault(name.lower(), None)
    return list(seen)


class CommentService:

    async def list_comments(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        current_user: User,
        skip: int,
        limit: int,
    ) -> tuple[list[CommentRead], int]:
        await task_service.get_viewable(db, task_id=task_id, current_user=current_user)
        rows, total = await crud_comment.list_top_level(
            db, task_id=task_id, skip=skip, limit=limit
        )
        items = [
            CommentRead.model_validate(comment).model_copy(update={"reply_count": count})
            for comment, count in rows
        ]
        return items, total

    async def get_comment(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        comment_id: uuid.UUID,
        current_user: User,
    ) -> CommentRead:
        await task_service.get_viewable(db, task_id=task_id, current_user=current_user)
        comment = await crud_comment.get_for_task(db, task_id=task_id, comment_id=comment_id)
        if comment is None:
            raise NotFoundException("Comment", str(comment_id))
        reply_count = await crud_comment.count_replies(db, parent_id=comment.id)
        return CommentRead.model_validate(comment).model_copy(update={"reply_count": reply_count})

    async def list_replies(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        comment_id: uuid.UUID,
        current_user: User,
        skip: int,
        limit: int,
    ) -> tuple[list[Comment], int]:
        await task_service.get_viewable(db, task_id=task_id, current_user=current_user)
        parent = await crud_comment.get_for_task(db, task_id=task_id, comment_id=comment_id)
        if parent is None:
            raise NotFoundException("Comment", str(comment_id))
        return await crud_comment.list_replies(db, parent_id=comment_id, skip=skip, limit=limit)

    async def create_comment(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        comment_in: CommentCreate,
        current_user: User,
    ) -> Comment:
        """
        Add a comment. Mentioned users who can see the task get a
        comment_mention notification; the task owner and assignee get
        comment_added unless they wrote the comment or were mentioned.
        """
        task = await task_service.get_viewable(db, task_id=task_id, current_user=current_user)

        if comment_in.parent_id is not None:
            parent = await crud_comment.get_for_task(
                db, task_id=task_id, comment_id=comment_in.parent_id
            )
            if parent is None:
                raise BadRequestException("Parent comment does not belong to this task")

        mentioned = await self._resolve_mentions(
            db, task=task, content=comment_in.content, author=current_user
        )
        comment = await crud_comment.create_comment(
            db,
            content=comment_in.content,
            task_id=task_id,
            author_id=current_user.id,
            parent_id=comment_in.parent_id,
            mentions=[user.id for user in mentioned],
        )

        await activity_service.log(
            db,
            user_id=current_user.id,
            action="comment_added",
            entity_type="comment",
            entity_id=comment.id,
            team_id=task.team_id,
            project_id=task.project_id,
            meta={"task_id": task_id, "parent_id": comment_in.parent_id},
        )

        for user in mentioned:
            await notification_service.notify_comment_mention(
                db,
                user_id=user.id,
                task_id=task.id,
                task_title=task.title,
                commenter=current_user,
            )

        already_told = {user.id for user in mentioned} | {current_user.id}
        for user_id in (task.owner_id, task.assigned_to_id):
            if user_id is None or user_id in already_told:
                continue
            already_told.add(user_id)
            await notification_service.notify_comment_added(
                db,
                user_id=user_id,
                task_id=task.id,
                task_title=task.title,
                commenter=current_user,
            )

        data = CommentRead.model_validate(comment).model_dump(mode="json")
        await events.emit(events.task_room(task.id), events.COMMENT_CREATED, data)
        return comment

    async def update_comment(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        comment_id: uuid.UUID,
        content: str,
        current_user: User,
    ) -> Comment:
        comment = await crud_comment.get_for_task(db, task_id=task_id, comment_id=comment_id)
        if comment is None:
            raise NotFoundException("Comment", str(comment_id))
        if comment.author_id != current_user.id:
            raise ForbiddenException("Only the author can edit this comment")

        updated = await crud_comment.edit(db, comment=comment, content=content)
        await activity_service.log(
            db,
            user_id=current_user.id,
            action="comment_updated",
            entity_type="comment",
            entity_id=comment.id,
            meta={"task_id": task_id},
        )
        return updated

    async def delete_comment(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        comment_id: uuid.UUID,
        current_user: User,
    ) -> None:
        """Delete a comment and its replies. Author, task owner or admin."""
        comment = await crud_comment.get_for_task(db, task_id=task_id, comment_id=comment_id)
        if comment is None:
            raise NotFoundException("Comment", str(comment_id))
        task = await task_service.get_viewable(db, task_id=task_id, current_user=current_user)
        if (
            comment.author_id != current_user.id
            and task.owner_id != current_user.id
            and current_user.role != "admin"
        ):
            raise ForbiddenException(
                "Only the author, the task owner or an admin can delete this comment"
            )

        await activity_service.log(
            db,
            user_id=current_user.id,
            action="comment_deleted",
            entity_type="comment",
            entity_id=comment.id,
            team_id=task.team_id,
            project_id=task.project_id,
            meta={"task_id": task_id},
        )
        await crud_comment.remove(db, db_obj=comment)
        await events.emit(
            events.task_room(task.id),
            events.COMMENT_DELETED,
            {"id": str(comment_id), "task_id": str(task_id)},
        )

    # ── Private helpers ───────────────────────────────────────────────────────

    async def _resolve_mentions(
        self, db: AsyncSession, *, task: Task, content: str, author: User
    ) -> list[User]:
        names = extract_mentions(content)
        if not names:
            return []
        users = await crud_user.get_active_by_usernames(db, names)
        return [
            user
            for user in users
            if user.id != author.id and await task_service.can_view(db, task=task, user=user)
        ]


comment_service = CommentService()
