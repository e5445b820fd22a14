"""
Availability window schemas.

Shape and type checks live here; range and day-key rules are enforced by
AvailabilityService so every entry point gets the same 400 responses.
"""

from datetime import date, datetime, time
from typing import Optional

from pydantic import Field

from ..core.constants import MAX_BLOCK_REASON_LENGTH
from .base import PageParams, StandardizedModel, StrictRequestModel


class AvailabilityCreate(StrictRequestModel):
    consultant_id: str = Field(min_length=1)
    day_of_week: Optional[int] = Field(
        default=None, ge=0, le=6, description="Weekday for recurring windows (Monday = 0)"
    )
    specific_date: Optional[date] = Field(default=None, description="Date for one-off windows")
    start_time: time
    end_time: time
    is_blocked: bool = False
    block_reason: Optional[str] = Field(default=None, max_length=MAX_BLOCK_REASON_LENGTH)


class AvailabilityUpdate(StrictRequestModel):
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    specific_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    is_blocked: Optional[bool] = None
    block_reason: Optional[str] = Field(default=None, max_length=MAX_BLOCK_REASON_LENGTH)


class AvailabilityListQuery(PageParams):
    consultant_id: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    is_recurring: Optional[bool] = None
    include_blocked: bool = True


class AvailabilityResponse(StandardizedModel):
    id: str
    consultant_id: str
    day_of_week: Optional[int] = None
    specific_date: Optional[date] = None
    start_time: time
    end_time: time
    is_recurring: bool
    is_blocked: bool
    block_reason: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
