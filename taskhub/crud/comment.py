"""
Comment CRUD operations.
Top-level comments are listed with their reply counts; replies are listed
per parent.
"""
from __future__ import annotations

import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.crud.base import CRUDBase
from taskhub.models.comment import Comment
from taskhub.schemas.comment import CommentCreate, CommentUpdate


class CRUDComment(CRUDBase[Comment, CommentCreate, CommentUpdate]):

    async def create_comment(
        self,
        db: AsyncSession,
        *,
        content: str,
        task_id: uuid.UUID,
        author_id: uuid.UUID,
        parent_id: uuid.UUID | None = None,
        mentions: list[uuid.UUID] | None = None,
    ) -> Comment:
        comment = Comment(
            content=content,
            task_id=task_id,
            author_id=author_id,
            parent_id=parent_id,
            mentions=[str(user_id) for user_id in mentions or []],
        )
        db.add(comment)
        await db.flush()
        await db.refresh(comment)
        return comment

    async def get_for_task(
        self, db: AsyncSession, *, task_id: uuid.UUID, comment_id: uuid.UUID
    ) -> Comment | None:
        result = await db.execute(
            select(Comment).where(Comment.id == comment_id, Comment.task_id == task_id)
        )
        return result.scalar_one_or_none()

    async def list_top_level(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[tuple[Comment, int]], int]:
        """Return ([(comment, reply_count)], total) for comments without a parent."""
        count_result = await db.execute(
            select(func.count())
            .select_from(Comment)
            .where(Comment.task_id == task_id, Comment.parent_id.is_(None))
        )
        total = count_result.scalar_one()

        replies = (
            select(Comment.parent_id, func.count(Comment.id).label("reply_count"))
            .where(Comment.task_id == task_id, Comment.parent_id.is_not(None))
            .group_by(Comment.parent_id)
            .subquery()
        )
        result = await db.execute(
            select(Comment, func.coalesce(replies.c.reply_count, 0))
            .outerjoin(replies, replies.c.parent_id == Comment.id)
            .where(Comment.task_id == task_id, Comment.parent_id.is_(None))
            .order_by(Comment.created_at.asc())
            .offset(skip)
            .limit(limit)
        )
        return [(row[0], row[1]) for row in result.all()], total

    async def list_replies(
        self,
        db: AsyncSession,
        *,
        parent_id: uuid.UUID,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[Comment], int]:
        query = (
            select(Comment)
            .where(Comment.parent_id == parent_id)
            .order_by(Comment.created_at.asc())
        )
        return await self.fetch_page(db, query, skip=skip, limit=limit)

    async def count_replies(self, db: AsyncSession, *, parent_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count()).select_from(Comment).where(Comment.parent_id == parent_id)
        )
        return result.scalar_one()

    async def edit(self, db: AsyncSession, *, comment: Comment, content: str) -> Comment:
        comment.content = content
        comment.is_edited = True
        db.add(comment)
        await db.flush()
        await db.refresh(comment)
        return comment


crud_comment = CRUDComment(Comment)
