"""Immutable cancellation record; one per booking."""

from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
import ulid

from ..database import Base
from .base import utcnow


class Cancellation(Base):
    __tablename__ = "booking_cancellations"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(
        String(26),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    reason = Column(Text, nullable=False)
    cancelled_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    cancelled_by_user_id = Column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<Cancellation booking={self.booking_id} by={self.cancelled_by_user_id}>"
