"""Reminder schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.reminder import ReminderChannel, ReminderStatus
from .base import PageParams, StandardizedModel, StrictRequestModel


class ReminderCreate(StrictRequestModel):
    booking_id: str = Field(min_length=1)
    channel: ReminderChannel = ReminderChannel.EMAIL
    scheduled_at: datetime = Field(description="Must be in the future")


class ReminderUpdate(StrictRequestModel):
    channel: Optional[ReminderChannel] = None
    scheduled_at: Optional[datetime] = None


class ReminderListQuery(PageParams):
    booking_id: Optional[str] = None
    channel: Optional[ReminderChannel] = None
    status: Optional[ReminderStatus] = None


class ReminderResponse(StandardizedModel):
    id: str
    booking_id: str
    customer_id: str
    channel: ReminderChannel
    status: ReminderStatus
    scheduled_at: datetime
    sent_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    retry_count: int
    created_at: datetime
    updated_at: Optional[datetime] = None


class ReminderError(BaseModel):
    reminder_id: str
    error: str


class ReminderProcessingResult(BaseModel):
    total: int = 0
    sent: int = 0
    failed: int = 0
    errors: List[ReminderError] = Field(default_factory=list)
