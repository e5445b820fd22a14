# backend/slotbook/repositories/factory.py
"""
Repository Factory for the booking core.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .availability_repository import AvailabilityRepository
    from .booking_repository import BookingRepository
    from .consultant_repository import ConsultantRepository
    from .reminder_repository import ReminderRepository
    from .time_slot_repository import TimeSlotRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_consultant_repository(db: Session) -> "ConsultantRepository":
        from .consultant_repository import ConsultantRepository

        return ConsultantRepository(db)

    @staticmethod
    def create_availability_repository(db: Session) -> "AvailabilityRepository":
        """Create repository for availability windows."""
        from .availability_repository import AvailabilityRepository

        return AvailabilityRepository(db)

    @staticmethod
    def create_time_slot_repository(db: Session) -> "TimeSlotRepository":
        """Create repository for slots and their occupancy writes."""
        from .time_slot_repository import TimeSlotRepository

        return TimeSlotRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        """Create repository for bookings, cancellations and reschedules."""
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_reminder_repository(db: Session) -> "ReminderRepository":
        from .reminder_repository import ReminderRepository

        return ReminderRepository(db)
