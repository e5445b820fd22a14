"""
Standard response envelopes.

Every list endpoint returns ``{"data": [...], "meta": {"page", "limit",
"total", "totalPages"}}``.
"""

import math
from typing import Any, Dict, Generic, List, Optional, Sequence, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class PageMeta(BaseModel):
    page: int = Field(ge=1, description="Current page number")
    limit: int = Field(ge=1, description="Items per page")
    total: int = Field(ge=0, description="Total number of matching items")
    total_pages: int = Field(
        ge=0,
        alias="totalPages",
        description="Number of pages at this page size",
    )

    model_config = ConfigDict(populate_by_name=True)


class PaginatedResponse(BaseModel, Generic[T]):
    """Standard paginated response for all list endpoints."""

    data: List[T] = Field(description="Items on this page")
    meta: PageMeta

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "data": ["..."],
                "meta": {"page": 1, "limit": 10, "total": 42, "totalPages": 5},
            }
        }
    )

    @classmethod
    def build(cls, items: Sequence[Any], page: int, limit: int, total: int) -> "PaginatedResponse[T]":
        return cls(
            data=list(items),
            meta=PageMeta(
                page=page,
                limit=limit,
                total=total,
                total_pages=math.ceil(total / limit) if limit else 0,
            ),
        )


class SuccessResponse(BaseModel):
    """Standard success response for operations without an entity body."""

    success: bool = Field(default=True, description="Operation success status")
    message: str = Field(description="Human-readable success message")
    data: Optional[Dict[str, Any]] = Field(default=None, description="Optional additional data")
