"""
Attachment routes nested under tasks.
/api/v1/tasks/{task_id}/attachments
Supports multipart/form-data file upload.
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, UploadFile, status
from fastapi.responses import FileResponse

from taskhub.core.dependencies import CurrentUser, DBSession, Pagination
from taskhub.schemas.attachment import AttachmentRead
from taskhub.schemas.pagination import PaginatedResponse, paginate
from taskhub.services.attachment_service import attachment_service

router = APIRouter(prefix="/tasks/{task_id}/attachments", tags=["Attachments"])


@router.get(
    "/",
    response_model=PaginatedResponse[AttachmentRead],
    summary="List attachments for a task",
)
async def list_attachments(
    task_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
    pagination: Pagination,
) -> PaginatedResponse[AttachmentRead]:
    attachments, total = await attachment_service.list_attachments(
        db,
        task_id=task_id,
        current_user=current_user,
        skip=pagination.skip,
        limit=pagination.size,
    )
    return paginate(
        AttachmentRead, attachments, total, page=pagination.page, size=pagination.size
    )


@router.post(
    "/",
    response_model=AttachmentRead,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a file attachment to a task",
)
async def upload_attachment(
    task_id: uuid.UUID,
    file: UploadFile,
    current_user: CurrentUser,
    db: DBSession,
) -> AttachmentRead:
    attachment = await attachment_service.upload(
        db, task_id=task_id, file=file, current_user=current_user
    )
    return AttachmentRead.model_validate(attachment)


@router.get(
    "/{attachment_id}",
    response_model=AttachmentRead,
    summary="Get attachment metadata",
)
async def get_attachment(
    task_id: uuid.UUID,
    attachment_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> AttachmentRead:
    attachment = await attachment_service.get_attachment(
        db, task_id=task_id, attachment_id=attachment_id, current_user=current_user
    )
    return AttachmentRead.model_validate(attachment)


@router.get(
    "/{attachment_id}/download",
    response_class=FileResponse,
    summary="Download an attachment",
)
async def download_attachment(
    task_id: uuid.UUID,
    attachment_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> FileResponse:
    attachment = await attachment_service.get_for_download(
        db, task_id=task_id, attachment_id=attachment_id, current_user=current_user
    )
    return FileResponse(
        path=attachment.file_path,
        filename=attachment.filename,
        media_type=attachment.mime_type,
    )


@router.delete(
    "/{attachment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an attachment (uploader, task owner or admin)",
)
async def delete_attachment(
    task_id: uuid.UUID,
    attachment_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> None:
    await attachment_service.delete(
        db, task_id=task_id, attachment_id=attachment_id, current_user=current_user
    )
