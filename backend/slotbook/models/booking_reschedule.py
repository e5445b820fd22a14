"""Immutable audit record for a booking moving from one slot to another."""

from __future__ import annotations

from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text
import ulid

from ..database import Base
from .base import utcnow


class RescheduleStatus(str, Enum):
    COMPLETED = "COMPLETED"


class Reschedule(Base):
    __tablename__ = "booking_reschedules"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(
        String(26),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
    )
    old_time_slot_id = Column(String(26), ForeignKey("time_slots.id"), nullable=False)
    new_time_slot_id = Column(String(26), ForeignKey("time_slots.id"), nullable=False)
    reason = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default=RescheduleStatus.COMPLETED.value)
    rescheduled_by_user_id = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (Index("ix_booking_reschedules_booking", "booking_id", "created_at"),)

    def __repr__(self) -> str:
        return (
            f"<Reschedule booking={self.booking_id} "
            f"{self.old_time_slot_id} -> {self.new_time_slot_id}>"
        )
