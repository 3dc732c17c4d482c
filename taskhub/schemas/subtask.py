"""
Subtask Pydantic schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

SubtaskStatus = Literal["pending", "in_progress", "blocked", "completed"]


class SubtaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    assigned_to_id: uuid.UUID | None = None


class SubtaskUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    status: SubtaskStatus | None = None
    assigned_to_id: uuid.UUID | None = None


class SubtaskStatusUpdate(BaseModel):
    status: SubtaskStatus


class SubtaskReorder(BaseModel):
    subtask_ids: list[uuid.UUID] = Field(min_length=1)


class SubtaskRead(BaseModel):
    id: uuid.UUID
    task_id: uuid.UUID
    title: str
    description: str | None
    status: str
    assigned_to_id: uuid.UUID | None
    created_by_id: uuid.UUID
    position: int
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
