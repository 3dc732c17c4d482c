"""
Attachment business logic service.
Validates and stores uploaded files under UPLOAD_DIR/<task_id>/ and
soft-deletes attachment records; files are removed by the cleanup job.
"""
from __future__ import annotations

import logging
import os
import uuid

from fastapi import UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.core.config import settings
from taskhub.core.exceptions import (
    FileTooLargeException,
    ForbiddenException,
    NotFoundException,
    UnsupportedMediaTypeException,
)
from taskhub.crud.attachment import crud_attachment
from taskhub.models.attachment import Attachment
from taskhub.models.user import User
from taskhub.realtime import events
from taskhub.schemas.attachment import AttachmentRead
from taskhub.services.activity_service import activity_service
from taskhub.services.task_service import task_service

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


def _safe_name(filename: str | None) -> str:
    name = os.path.basename(filename or "").strip()
    return name or "unnamed"


def remove_stored_file(path: str) -> bool:
    """Delete a stored upload. Returns False if it was already gone."""
    try:
        os.remove(path)
    except FileNotFoundError:
        return False
    return True


class AttachmentService:

    async def list_attachments(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        current_user: User,
        skip: int,
        limit: int,
    ) -> tuple[list[Attachment], int]:
        await task_service.get_viewable(db, task_id=task_id, current_user=current_user)
        return await crud_attachment.list_by_task(db, task_id=task_id, skip=skip, limit=limit)

    async def upload(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        file: UploadFile,
        current_user: User,
    ) -> Attachment:
        task = await task_service.get_modifiable(db, task_id=task_id, current_user=current_user)

        mime_type = file.content_type or "application/octet-stream"
        if mime_type not in settings.ALLOWED_UPLOAD_TYPES:
            raise UnsupportedMediaTypeException(mime_type)

        filename = _safe_name(file.filename)
        target_dir = os.path.join(settings.UPLOAD_DIR, str(task_id))
        os.makedirs(target_dir, exist_ok=True)
        extension = os.path.splitext(filename)[1].lower()
        file_path = os.path.join(target_dir, f"{uuid.uuid4().hex}{extension}")

        # Stream to disk so oversized uploads are rejected without buffering them
        size = 0
        with open(file_path, "wb") as out:
            while True:
                chunk = await file.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > settings.max_file_size_bytes:
                    break
                out.write(chunk)
        if size > settings.max_file_size_bytes:
            remove_stored_file(file_path)
            raise FileTooLargeException(settings.MAX_FILE_SIZE_MB)

        try:
            attachment = await crud_attachment.create_attachment(
                db,
                filename=filename,
                file_path=file_path,
                file_size=size,
                mime_type=mime_type,
                task_id=task_id,
                uploaded_by=current_user.id,
            )
            await activity_service.log(
                db,
                user_id=current_user.id,
                action="attachment_uploaded",
                entity_type="attachment",
                entity_id=attachment.id,
                team_id=task.team_id,
                project_id=task.project_id,
                meta={"task_id": task_id, "filename": filename, "size": size},
            )
        except Exception:
            # A stored file always has its attachment row
            logger.warning("Removing %s after failed attachment insert", file_path)
            remove_stored_file(file_path)
            raise
        data = AttachmentRead.model_validate(attachment).model_dump(mode="json")
        await events.emit_task_event(task, events.ATTACHMENT_CREATED, data)
        return attachment

    async def get_attachment(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        attachment_id: uuid.UUID,
        current_user: User,
    ) -> Attachment:
        await task_service.get_viewable(db, task_id=task_id, current_user=current_user)
        attachment = await crud_attachment.get_for_task(
            db, task_id=task_id, attachment_id=attachment_id
        )
        if attachment is None:
            raise NotFoundException("Attachment", str(attachment_id))
        return attachment

    async def get_for_download(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        attachment_id: uuid.UUID,
        current_user: User,
    ) -> Attachment:
        attachment = await self.get_attachment(
            db, task_id=task_id, attachment_id=attachment_id, current_user=current_user
        )
        if not os.path.exists(attachment.file_path):
            raise NotFoundException("Attachment", str(attachment_id))
        return attachment

    async def delete(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        attachment_id: uuid.UUID,
        current_user: User,
    ) -> None:
        """Soft-delete. Allowed for the uploader, the task owner or an admin."""
        task = await task_service.get_viewable(db, task_id=task_id, current_user=current_user)
        attachment = await crud_attachment.get_for_task(
            db, task_id=task_id, attachment_id=attachment_id
        )
        if attachment is None:
            raise NotFoundException("Attachment", str(attachment_id))
        if (
            attachment.uploaded_by != current_user.id
            and task.owner_id != current_user.id
            and current_user.role != "admin"
        ):
            raise ForbiddenException(
                "Only the uploader, the task owner or an admin can delete this attachment"
            )

        await crud_attachment.soft_delete(db, attachment=attachment)
        await activity_service.log(
            db,
            user_id=current_user.id,
            action="attachment_deleted",
            entity_type="attachment",
            entity_id=attachment.id,
            team_id=task.team_id,
            project_id=task.project_id,
            meta={"task_id": task_id, "filename": attachment.filename},
        )


attachment_service = AttachmentService()
