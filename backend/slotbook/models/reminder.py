# backend/slotbook/models/reminder.py
"""
Reminder model.

A reminder is a scheduled notification for a booking. Once SENT the record is
immutable; CANCELLED reminders can no longer be edited either.
"""

from enum import Enum

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text
import ulid

from ..database import Base
from .base import SoftDeleteMixin, TimestampMixin


class ReminderChannel(str, Enum):
    EMAIL = "EMAIL"
    SMS = "SMS"


class ReminderStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


class Reminder(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "reminders"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(
        String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    customer_id = Column(String(64), nullable=False)
    channel = Column(String(10), nullable=False, default=ReminderChannel.EMAIL.value)
    status = Column(String(20), nullable=False, default=ReminderStatus.PENDING.value)
    scheduled_at = Column(DateTime(timezone=True), nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)
    failure_reason = Column(Text, nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("channel IN ('EMAIL', 'SMS')", name="ck_reminders_channel"),
        CheckConstraint(
            "status IN ('PENDING', 'SENT', 'CANCELLED', 'FAILED')",
            name="ck_reminders_status",
        ),
        Index("ix_reminders_due", "status", "scheduled_at"),
    )

    @property
    def is_sent(self) -> bool:
        return self.status == ReminderStatus.SENT.value

    @property
    def is_cancelled(self) -> bool:
        return self.status == ReminderStatus.CANCELLED.value

    def __repr__(self) -> str:
        return (
            f"<Reminder {self.id}: booking={self.booking_id}, channel={self.channel}, "
            f"status={self.status}, at={self.scheduled_at}>"
        )
