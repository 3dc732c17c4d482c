"""
Task Pydantic schemas.
Includes create/update/read variants plus a filter schema for list endpoints.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator

from taskhub.schemas.subtask import SubtaskRead
from taskhub.schemas.user import UserReadPublic

TaskStatus = Literal["pending", "in_progress", "blocked", "completed", "cancelled"]
TaskPriority = Literal["low", "medium", "high", "critical"]


def _normalize_tags(tags: list[str] | None) -> list[str] | None:
    """Lower-case, strip and de-duplicate tags, keeping first-seen order."""
    if tags is None:
        return None
    seen: dict[str, None] = {}
    for tag in tags:
        cleaned = tag.strip().lower()
        if cleaned:
            seen.setdefault(cleaned, None)
    return list(seen)


# ── Create ────────────────────────────────────────────────────────────────────

class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=10000)
    status: TaskStatus = "pending"
    priority: TaskPriority = "medium"
    start_date: datetime | None = None
    due_date: datetime | None = None
    estimated_hours: float | None = Field(default=None, ge=0)
    assigned_to_id: uuid.UUID | None = None
    team_id: uuid.UUID | None = None
    project_id: uuid.UUID | None = None
    tags: list[str] = Field(default_factory=list, max_length=20)

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: list[str] | None) -> list[str] | None:
        return _normalize_tags(v)

    @model_validator(mode="after")
    def check_dates(self) -> "TaskCreate":
        if self.start_date and self.due_date and self.due_date < self.start_date:
            raise ValueError("due_date must not be before start_date")
        return self


# ── Update ────────────────────────────────────────────────────────────────────

class TaskUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=10000)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    start_date: datetime | None = None
    due_date: datetime | None = None
    estimated_hours: float | None = Field(default=None, ge=0)
    actual_hours: float | None = Field(default=None, ge=0)
    assigned_to_id: uuid.UUID | None = None
    tags: list[str] | None = Field(default=None, max_length=20)

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: list[str] | None) -> list[str] | None:
        return _normalize_tags(v)


class TaskStatusUpdate(BaseModel):
    status: TaskStatus


# ── Assign ────────────────────────────────────────────────────────────────────

class TaskAssign(BaseModel):
    assigned_to_id: uuid.UUID | None


# ── Read ──────────────────────────────────────────────────────────────────────

class TaskRead(BaseModel):
    id: uuid.UUID
    title: str
    description: str | None
    status: str
    priority: str
    start_date: datetime | None
    due_date: datetime | None
    completed_at: datetime | None
    estimated_hours: float | None
    actual_hours: float | None
    owner_id: uuid.UUID
    assigned_to_id: uuid.UUID | None
    team_id: uuid.UUID | None
    project_id: uuid.UUID | None
    tags: list[str]
    is_archived: bool
    is_overdue: bool
    created_at: datetime
    updated_at: datetime
    owner: UserReadPublic | None = None
    assignee: UserReadPublic | None = None

    model_config = {"from_attributes": True}


class TaskDetailRead(TaskRead):
    subtasks: list[SubtaskRead] = []

    @computed_field  # type: ignore[misc]
    @property
    def progress(self) -> int:
        if not self.subtasks:
            return 0
        done = sum(1 for s in self.subtasks if s.status == "completed")
        return round(done * 100 / len(self.subtasks))


# ── Filter ────────────────────────────────────────────────────────────────────

class TaskFilter(BaseModel):
    """Query parameters for filtering task list endpoints."""

    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    assigned_to_id: uuid.UUID | None = None
    team_id: uuid.UUID | None = None
    project_id: uuid.UUID | None = None
    tag: str | None = Field(default=None, max_length=100)
    is_archived: bool = False
    overdue: bool | None = None
    due_date_from: datetime | None = None
    due_date_to: datetime | None = None
    search: str | None = Field(default=None, max_length=200)
    page: int = Field(default=1, ge=1)
    size: int = Field(default=20, ge=1, le=100)
