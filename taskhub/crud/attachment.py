"""
Attachment CRUD operations.
Soft-deleted attachments are hidden from every read path except the purge.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.crud.base import CRUDBase
from taskhub.db.base import utcnow
from taskhub.models.attachment import Attachment
from taskhub.schemas.attachment import AttachmentRead


class CRUDAttachment(CRUDBase[Attachment, AttachmentRead, AttachmentRead]):

    async def create_attachment(
        self,
        db: AsyncSession,
        *,
        filename: str,
        file_path: str,
        file_size: int,
        mime_type: str,
        task_id: uuid.UUID,
        uploaded_by: uuid.UUID,
    ) -> Attachment:
        attachment = Attachment(
            filename=filename,
            file_path=file_path,
            file_size=file_size,
            mime_type=mime_type,
            task_id=task_id,
            uploaded_by=uploaded_by,
        )
        db.add(attachment)
        await db.flush()
        await db.refresh(attachment)
        return attachment

    async def get_for_task(
        self, db: AsyncSession, *, task_id: uuid.UUID, attachment_id: uuid.UUID
    ) -> Attachment | None:
        result = await db.execute(
            select(Attachment).where(
                Attachment.id == attachment_id,
                Attachment.task_id == task_id,
                Attachment.is_deleted.is_(False),
            )
        )
        return result.scalar_one_or_none()

    async def list_by_task(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[Attachment], int]:
        query = (
            select(Attachment)
            .where(Attachment.task_id == task_id, Attachment.is_deleted.is_(False))
            .order_by(Attachment.created_at.desc())
        )
        return await self.fetch_page(db, query, skip=skip, limit=limit)

    async def soft_delete(self, db: AsyncSession, *, attachment: Attachment) -> Attachment:
        attachment.is_deleted = True
        attachment.deleted_at = utcnow()
        db.add(attachment)
        await db.flush()
        return attachment

    async def list_deleted_before(
        self, db: AsyncSession, *, cutoff: datetime
    ) -> list[Attachment]:
        result = await db.execute(
            select(Attachment).where(
                Attachment.is_deleted.is_(True), Attachment.deleted_at < cutoff
            )
        )
        return list(result.scalars().all())


crud_attachment = CRUDAttachment(Attachment)
