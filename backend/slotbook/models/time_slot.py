# backend/slotbook/models/time_slot.py
"""
TimeSlot model: a concrete, individually bookable unit of consultant time.

``is_available`` is true exactly when a new booking may claim the slot. The
occupancy columns (``is_available``, ``current_bookings``) are written only by
the conditional updates in ``TimeSlotRepository``.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
)
import ulid

from ..core.timezone_utils import local_to_utc
from ..database import Base
from .base import SoftDeleteMixin, TimestampMixin


class TimeSlot(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "time_slots"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    consultant_id = Column(
        String(26), ForeignKey("consultants.id", ondelete="CASCADE"), nullable=False
    )
    availability_id = Column(
        String(26), ForeignKey("availabilities.id", ondelete="SET NULL"), nullable=True
    )
    showroom_id = Column(String(26), nullable=True)

    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration = Column(Integer, nullable=False)

    is_available = Column(Boolean, nullable=False, default=True)
    is_blocked = Column(Boolean, nullable=False, default=False)
    block_reason = Column(String(255), nullable=True)
    max_bookings = Column(Integer, nullable=False, default=1)
    current_bookings = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_time_slots_time_order"),
        CheckConstraint("duration > 0", name="ck_time_slots_duration_positive"),
        CheckConstraint(
            "current_bookings >= 0 AND current_bookings <= max_bookings",
            name="ck_time_slots_occupancy",
        ),
        Index("ix_time_slots_consultant_date", "consultant_id", "date"),
        Index("ix_time_slots_available", "is_available", "date"),
    )

    @property
    def is_occupied(self) -> bool:
        return (self.current_bookings or 0) > 0

    def starts_at(self, tz_name: Optional[str]) -> datetime:
        """Start instant in UTC given the consultant zone."""
        return local_to_utc(self.date, self.start_time, tz_name)

    def __repr__(self) -> str:
        return (
            f"<TimeSlot {self.id}: consultant={self.consultant_id}, date={self.date}, "
            f"time={self.start_time}-{self.end_time}, available={self.is_available}, "
            f"blocked={self.is_blocked}>"
        )
