"""
Repository layer for the booking core.

Repositories own every query and conditional write; services own the
transaction boundary.
"""

from .availability_repository import AvailabilityRepository
from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .consultant_repository import ConsultantRepository
from .factory import RepositoryFactory
from .reminder_repository import ReminderRepository
from .time_slot_repository import TimeSlotRepository

__all__ = [
    "AvailabilityRepository",
    "BaseRepository",
    "BookingRepository",
    "ConsultantRepository",
    "ReminderRepository",
    "RepositoryFactory",
    "TimeSlotRepository",
]
