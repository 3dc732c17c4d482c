"""
Generic paginated response schema.
Every list endpoint returns items plus total/page/size/pages metadata.
"""
from __future__ import annotations

import math
from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, computed_field

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    size: int

    @computed_field  # type: ignore[misc]
    @property
    def pages(self) -> int:
        if self.size == 0:
            return 0
        return math.ceil(self.total / self.size)

    @computed_field  # type: ignore[misc]
    @property
    def has_next(self) -> bool:
        return self.page < self.pages

    model_config = {"from_attributes": True}


def paginate(
    schema: type[BaseModel],
    rows: Iterable[Any],
    total: int,
    *,
    page: int,
    size: int,
) -> PaginatedResponse[Any]:
    """Validate ORM rows against ``schema`` and wrap them with page metadata."""
    return PaginatedResponse[schema](  # type: ignore[valid-type]
        items=[schema.model_validate(row) for row in rows],
        total=total,
        page=page,
        size=size,
    )
