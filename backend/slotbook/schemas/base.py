"""
Base schemas shared by request and response DTOs.

Request models forbid unknown fields. Response models read straight from ORM
rows (``from_attributes``).
"""

from pydantic import BaseModel, ConfigDict, Field


class StandardizedModel(BaseModel):
    """Base response model reading from ORM attributes."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True, populate_by_name=True)


class StrictRequestModel(BaseModel):
    """Request DTO base that always forbids unexpected fields."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class PageParams(StrictRequestModel):
    page: int = Field(default=1, ge=1, description="1-based page number")
    limit: int = Field(default=10, ge=1, le=100, description="Items per page")
