"""
Comment Pydantic schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from taskhub.schemas.user import UserReadPublic


class CommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=5000)
    parent_id: uuid.UUID | None = None


class CommentUpdate(BaseModel):
    content: str = Field(min_length=1, max_length=5000)


class CommentRead(BaseModel):
    id: uuid.UUID
    content: str
    task_id: uuid.UUID
    author_id: uuid.UUID
    parent_id: uuid.UUID | None
    mentions: list[uuid.UUID] = []
    is_edited: bool
    reply_count: int = 0
    created_at: datetime
    updated_at: datetime
    author: UserReadPublic | None = None

    model_config = {"from_attributes": True}
