"""
Project and ProjectMember Pydantic schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from taskhub.schemas.user import UserReadPublic

ProjectStatus = Literal["planning", "active", "on_hold", "completed", "archived"]
ProjectPriority = Literal["low", "medium", "high", "critical"]
ProjectMemberRole = Literal["manager", "member", "viewer"]

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


# ── Project Create / Update / Read ────────────────────────────────────────────

class ProjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    team_id: uuid.UUID | None = None
    status: ProjectStatus = "active"
    priority: ProjectPriority = "medium"
    color: str = Field(default="#3B82F6", pattern=HEX_COLOR)
    start_date: datetime | None = None
    due_date: datetime | None = None

    @model_validator(mode="after")
    def check_dates(self) -> "ProjectCreate":
        if self.start_date and self.due_date and self.due_date < self.start_date:
            raise ValueError("due_date must not be before start_date")
        return self


class ProjectUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    status: ProjectStatus | None = None
    priority: ProjectPriority | None = None
    color: str | None = Field(default=None, pattern=HEX_COLOR)
    start_date: datetime | None = None
    due_date: datetime | None = None


class ProjectRead(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None
    team_id: uuid.UUID | None
    owner_id: uuid.UUID
    status: str
    priority: str
    color: str
    start_date: datetime | None
    due_date: datetime | None
    completed_at: datetime | None
    is_deleted: bool
    deleted_at: datetime | None
    created_at: datetime
    updated_at: datetime
    owner: UserReadPublic | None = None

    model_config = {"from_attributes": True}


# ── ProjectMember schemas ─────────────────────────────────────────────────────

class ProjectMemberAdd(BaseModel):
    user_id: uuid.UUID
    role: ProjectMemberRole = "member"


class ProjectMemberUpdateRole(BaseModel):
    role: ProjectMemberRole


class ProjectMemberRead(BaseModel):
    project_id: uuid.UUID
    user_id: uuid.UUID
    role: str
    added_at: datetime
    user: UserReadPublic | None = None

    model_config = {"from_attributes": True}


class ProjectDetailRead(ProjectRead):
    members: list[ProjectMemberRead] = []
    progress: int = 0


class ProjectStats(BaseModel):
    total_tasks: int
    by_status: dict[str, int]
    by_priority: dict[str, int]
    overdue: int
    progress: int
