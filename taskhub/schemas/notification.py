"""
Notification Pydantic schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel


class NotificationRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    sender_id: uuid.UUID | None
    type: str
    title: str
    message: str
    priority: str
    reference_type: str | None
    reference_id: uuid.UUID | None
    is_read: bool
    read_at: datetime | None
    delivered_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class UnreadCount(BaseModel):
    unread: int


class BulkResult(BaseModel):
    affected: int
