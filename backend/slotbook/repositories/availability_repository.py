# backend/slotbook/repositories/availability_repository.py
"""
AvailabilityRepository - availability window data access.

Windows are keyed per consultant either by weekday (recurring) or by
calendar date (one-off). Overlap lookups only compare windows sharing the
same key.
"""

from datetime import date, time, timedelta
import logging
from typing import List, Optional, Tuple

from sqlalchemy import and_, or_
from sqlalchemy.orm import Query, Session

from ..models.availability import Availability, DayKey
from .base_repository import BaseRepository
from .filters import AvailabilityFilter, PageRequest

logger = logging.getLogger(__name__)


def weekdays_in_range(date_from: date, date_to: date) -> List[int]:
    """Weekday numbers (Monday = 0) that occur between two dates inclusive."""
    if date_to < date_from:
        return []
    span = (date_to - date_from).days + 1
    if span >= 7:
        return list(range(7))
    return sorted({(date_from + timedelta(days=offset)).weekday() for offset in range(span)})


class AvailabilityRepository(BaseRepository[Availability]):
    """Repository for availability windows."""

    def __init__(self, db: Session):
        super().__init__(db, Availability)

    def _for_day_key(self, query: Query, day_key: DayKey) -> Query:
        if isinstance(day_key, date):
            return query.filter(
                Availability.is_recurring.is_(False),
                Availability.specific_date == day_key,
            )
        return query.filter(
            Availability.is_recurring.is_(True),
            Availability.day_of_week == day_key,
        )

    def find_conflict(
        self,
        consultant_id: str,
        day_key: DayKey,
        start: time,
        end: time,
        exclude_id: Optional[str] = None,
    ) -> Optional[Availability]:
        """
        First live window of the consultant on ``day_key`` overlapping [start, end).

        Args:
            consultant_id: Owner of the windows
            day_key: Weekday number for recurring windows, date for one-off windows
            start: Window start (local time)
            end: Window end (local time)
            exclude_id: Window to ignore, used when updating a window in place

        Returns:
            The overlapping window, or None
        """
        query = self.db.query(Availability).filter(
            Availability.consultant_id == consultant_id,
            Availability.not_deleted(),
            # Half-open overlap: s1 < e2 and s2 < e1
            Availability.start_time < end,
            Availability.end_time > start,
        )
        query = self._for_day_key(query, day_key)
        if exclude_id:
            query = query.filter(Availability.id != exclude_id)
        return query.order_by(Availability.start_time).first()

    def _apply_filter(self, query: Query, criteria: AvailabilityFilter) -> Query:
        if criteria.consultant_id:
            query = query.filter(Availability.consultant_id == criteria.consultant_id)
        if criteria.is_recurring is not None:
            query = query.filter(Availability.is_recurring.is_(criteria.is_recurring))
        if not criteria.include_blocked:
            query = query.filter(Availability.is_blocked.is_(False))

        if criteria.date_from or criteria.date_to:
            date_from = criteria.date_from or criteria.date_to
            date_to = criteria.date_to or criteria.date_from
            weekdays = weekdays_in_range(date_from, date_to)
            query = query.filter(
                or_(
                    and_(
                        Availability.is_recurring.is_(True),
                        Availability.day_of_week.in_(weekdays),
                    ),
                    and_(
                        Availability.is_recurring.is_(False),
                        Availability.specific_date >= date_from,
                        Availability.specific_date <= date_to,
                    ),
                )
            )
        return query

    def find_by_consultant(
        self, criteria: AvailabilityFilter, page: PageRequest
    ) -> Tuple[List[Availability], int]:
        query = self._apply_filter(self._live(self.db.query(Availability)), criteria)
        query = query.order_by(
            Availability.is_recurring.desc(),
            Availability.day_of_week,
            Availability.specific_date,
            Availability.start_time,
        )
        return self._paginate(query, page.page, page.limit)
