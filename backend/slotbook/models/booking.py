# backend/slotbook/models/booking.py
"""
Booking model.

A booking is a customer's claim on exactly one TimeSlot. Rescheduling swaps
``slot_id`` in place and remembers the previous slot in
``rescheduled_from_slot_id``. At most one non-cancelled booking may reference
a slot; the partial unique index below enforces that at the store level in
addition to the conditional slot claim.
"""

from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    text,
)
import ulid

from ..database import Base
from .base import SoftDeleteMixin, TimestampMixin


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)


class Booking(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    customer_id = Column(String(64), nullable=False, index=True)
    customer_name = Column(String(200), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=True)
    appointment_type = Column(String(50), nullable=False)
    notes = Column(Text, nullable=True)

    consultant_id = Column(String(26), ForeignKey("consultants.id"), nullable=False, index=True)
    slot_id = Column(String(26), ForeignKey("time_slots.id"), nullable=False, index=True)
    rescheduled_from_slot_id = Column(String(26), ForeignKey("time_slots.id"), nullable=True)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    cancellation_reason = Column(Text, nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    confirmation_sent_at = Column(DateTime(timezone=True), nullable=True)
    reminder_sent_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'CANCELLED')",
            name="ck_bookings_status",
        ),
        Index(
            "uq_bookings_active_slot",
            "slot_id",
            unique=True,
            postgresql_where=text("status <> 'CANCELLED'"),
            sqlite_where=text("status <> 'CANCELLED'"),
        ),
    )

    @property
    def is_cancelled(self) -> bool:
        return self.status == BookingStatus.CANCELLED.value

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: customer={self.customer_id}, "
            f"consultant={self.consultant_id}, slot={self.slot_id}, status={self.status}>"
        )
