"""Booking, cancellation and reschedule schemas."""

from datetime import date, datetime
from typing import Optional

from pydantic import EmailStr, Field

from ..core.constants import (
    DEFAULT_APPOINTMENT_TYPE,
    MAX_APPOINTMENT_TYPE_LENGTH,
    MAX_NAME_LENGTH,
    MAX_REASON_LENGTH,
)
from ..models.booking import BookingStatus
from .base import PageParams, StandardizedModel, StrictRequestModel


class CustomerDetails(StrictRequestModel):
    customer_name: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)
    customer_email: EmailStr
    customer_phone: Optional[str] = Field(default=None, max_length=50)
    appointment_type: str = Field(
        default=DEFAULT_APPOINTMENT_TYPE, min_length=1, max_length=MAX_APPOINTMENT_TYPE_LENGTH
    )
    notes: Optional[str] = Field(default=None, max_length=2000)


class BookingCreate(CustomerDetails):
    slot_id: str = Field(min_length=1)
    customer_id: Optional[str] = Field(
        default=None,
        description="Book on behalf of a customer (administrators only)",
    )


class BookingCancel(StrictRequestModel):
    # Emptiness is checked by the service so a blank reason is a 400
    reason: str = Field(max_length=MAX_REASON_LENGTH)


class BookingReschedule(StrictRequestModel):
    new_slot_id: str = Field(min_length=1)
    reason: str = Field(max_length=MAX_REASON_LENGTH)


class BookingListQuery(PageParams):
    status: Optional[BookingStatus] = None
    consultant_id: Optional[str] = None
    customer_id: Optional[str] = None
    slot_id: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None


class RescheduleListQuery(PageParams):
    booking_id: Optional[str] = None


class BookingResponse(StandardizedModel):
    id: str
    customer_id: str
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    appointment_type: str
    notes: Optional[str] = None
    consultant_id: str
    slot_id: str
    rescheduled_from_slot_id: Optional[str] = None
    status: BookingStatus
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    confirmation_sent_at: Optional[datetime] = None
    reminder_sent_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class CancellationResponse(StandardizedModel):
    id: str
    booking_id: str
    reason: str
    cancelled_at: datetime
    cancelled_by_user_id: str


class RescheduleResponse(StandardizedModel):
    id: str
    booking_id: str
    old_time_slot_id: str
    new_time_slot_id: str
    reason: str
    status: str
    rescheduled_by_user_id: str
    created_at: datetime
