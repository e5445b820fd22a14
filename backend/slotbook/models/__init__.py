"""
Database models for the Slotbook booking core.

- Consultant: the person whose time is booked
- Availability: recurring or date-specific windows
- TimeSlot: concrete bookable units generated from windows
- Booking, Cancellation, Reschedule: booking lifecycle and its audit trail
- Reminder: scheduled notifications for a booking
"""

from .availability import Availability
from .base import Active, Deleted, Lifecycle
from .booking import ACTIVE_BOOKING_STATUSES, Booking, BookingStatus
from .booking_cancellation import Cancellation
from .booking_reschedule import Reschedule, RescheduleStatus
from .consultant import Consultant
from .reminder import Reminder, ReminderChannel, ReminderStatus
from .time_slot import TimeSlot

__all__ = [
    "ACTIVE_BOOKING_STATUSES",
    "Active",
    "Availability",
    "Booking",
    "BookingStatus",
    "Cancellation",
    "Consultant",
    "Deleted",
    "Lifecycle",
    "Reminder",
    "ReminderChannel",
    "ReminderStatus",
    "Reschedule",
    "RescheduleStatus",
    "TimeSlot",
]
