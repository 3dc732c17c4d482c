"""
ActivityLog Pydantic schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from taskhub.schemas.user import UserReadPublic


class ActivityLogRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    action: str
    entity_type: str
    entity_id: uuid.UUID
    team_id: uuid.UUID | None
    project_id: uuid.UUID | None
    meta: dict[str, Any] | None
    created_at: datetime
    user: UserReadPublic | None = None

    model_config = {"from_attributes": True}


class ActivityStats(BaseModel):
    """Counts of actions grouped by action name within a period."""

    total: int
    by_action: dict[str, int]
    date_from: datetime | None = None
    date_to: datetime | None = None


class ActivityCleanupResult(BaseModel):
    deleted: int
    older_than_days: int
