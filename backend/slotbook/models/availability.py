# backend/slotbook/models/availability.py
"""
Availability windows for consultants.

A window is either weekly (``day_of_week`` with Monday = 0, matching
``date.weekday()``) or tied to a single ``specific_date``. Times are local to
the consultant's zone.
"""

from datetime import date, time
from typing import Optional, Union

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

from ..database import Base
from .base import SoftDeleteMixin, TimestampMixin

DayKey = Union[int, date]


class Availability(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "availabilities"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    consultant_id = Column(
        String(26), ForeignKey("consultants.id", ondelete="CASCADE"), nullable=False
    )
    day_of_week = Column(Integer, nullable=True)
    specific_date = Column(Date, nullable=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_recurring = Column(Boolean, nullable=False, default=True)
    is_blocked = Column(Boolean, nullable=False, default=False)
    block_reason = Column(String(255), nullable=True)

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_availabilities_time_order"),
        CheckConstraint(
            "day_of_week IS NULL OR (day_of_week >= 0 AND day_of_week <= 6)",
            name="ck_availabilities_day_of_week",
        ),
        Index("ix_availabilities_consultant_day", "consultant_id", "day_of_week"),
        Index("ix_availabilities_consultant_date", "consultant_id", "specific_date"),
    )

    @property
    def day_key(self) -> DayKey:
        """Weekday for recurring windows, calendar date for one-off windows."""
        if self.is_recurring:
            return self.day_of_week
        return self.specific_date

    def applies_to(self, target: date) -> bool:
        if self.is_recurring:
            return target.weekday() == self.day_of_week
        return target == self.specific_date

    def covers(self, start: time, end: time) -> bool:
        return self.start_time <= start and end <= self.end_time

    def describe_day(self) -> str:
        return describe_day_key(self.day_key)

    def __repr__(self) -> str:
        return (
            f"<Availability {self.id}: consultant={self.consultant_id}, "
            f"day={self.describe_day()}, {self.start_time}-{self.end_time}>"
        )


_WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def describe_day_key(day_key: Optional[DayKey]) -> str:
    if isinstance(day_key, date):
        return day_key.isoformat()
    if isinstance(day_key, int) and 0 <= day_key <= 6:
        return _WEEKDAYS[day_key]
    return str(day_key)
