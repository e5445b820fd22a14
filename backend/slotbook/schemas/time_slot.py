"""TimeSlot request/response schemas."""

import datetime as dt
from typing import List, Optional

from pydantic import Field

from ..core.constants import MAX_BLOCK_REASON_LENGTH
from .base import PageParams, StandardizedModel, StrictRequestModel


class SlotTimes(StrictRequestModel):
    date: dt.date
    start_time: dt.time
    end_time: dt.time


class SlotCreate(SlotTimes):
    consultant_id: str = Field(min_length=1)
    availability_id: Optional[str] = None
    showroom_id: Optional[str] = None


class BulkSlotItem(SlotTimes):
    availability_id: Optional[str] = None
    showroom_id: Optional[str] = None


class BulkSlotCreate(StrictRequestModel):
    consultant_id: str = Field(min_length=1)
    slots: List[BulkSlotItem] = Field(min_length=1, max_length=500)


class SlotGenerateRequest(StrictRequestModel):
    availability_id: str = Field(min_length=1)
    date_from: dt.date
    date_to: dt.date
    slot_duration: Optional[int] = Field(
        default=None, ge=5, le=480, description="Minutes per slot; defaults to the configured duration"
    )


class SlotUpdate(StrictRequestModel):
    date: Optional[dt.date] = None
    start_time: Optional[dt.time] = None
    end_time: Optional[dt.time] = None
    is_available: Optional[bool] = None
    is_blocked: Optional[bool] = None
    block_reason: Optional[str] = Field(default=None, max_length=MAX_BLOCK_REASON_LENGTH)


class SlotListQuery(PageParams):
    consultant_id: Optional[str] = None
    availability_id: Optional[str] = None
    showroom_id: Optional[str] = None
    date_from: Optional[dt.date] = None
    date_to: Optional[dt.date] = None
    available_only: bool = False


class TimeSlotResponse(StandardizedModel):
    id: str
    consultant_id: str
    availability_id: Optional[str] = None
    showroom_id: Optional[str] = None
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    duration: int
    is_available: bool
    is_blocked: bool
    block_reason: Optional[str] = None
    max_bookings: int
    current_bookings: int
    created_at: dt.datetime
    updated_at: Optional[dt.datetime] = None


class SlotGenerationResult(StandardizedModel):
    created: List[TimeSlotResponse]
    skipped: int = Field(description="Slices skipped because they were past or overlapped existing slots")
