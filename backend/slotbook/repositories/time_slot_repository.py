# backend/slotbook/repositories/time_slot_repository.py
"""
TimeSlotRepository - slot queries and the conditional occupancy writes.

Occupancy (``is_available`` / ``current_bookings``) changes only through the
compare-and-swap updates below. Each returns whether it changed a row; a
False result means another transaction got there first or the slot is not in
the required state.
"""

from datetime import date, datetime, time
import logging
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import case, not_, update
from sqlalchemy.orm import Session

from ..models.base import utcnow
from ..models.time_slot import TimeSlot
from .base_repository import BaseRepository
from .filters import PageRequest, SlotFilter

logger = logging.getLogger(__name__)


class TimeSlotRepository(BaseRepository[TimeSlot]):
    def __init__(self, db: Session):
        super().__init__(db, TimeSlot)

    # Queries

    def find_overlapping(
        self,
        consultant_id: str,
        slot_date: date,
        start: time,
        end: time,
        exclude_id: Optional[str] = None,
    ) -> Optional[TimeSlot]:
        """First live slot of the consultant on ``slot_date`` overlapping [start, end)."""
        query = self.db.query(TimeSlot).filter(
            TimeSlot.consultant_id == consultant_id,
            TimeSlot.date == slot_date,
            TimeSlot.not_deleted(),
            TimeSlot.start_time < end,
            TimeSlot.end_time > start,
        )
        if exclude_id:
            query = query.filter(TimeSlot.id != exclude_id)
        return query.order_by(TimeSlot.start_time).first()

    def find_for_dates(self, consultant_id: str, dates: Iterable[date]) -> List[TimeSlot]:
        date_list = list(dates)
        if not date_list:
            return []
        return (
            self.db.query(TimeSlot)
            .filter(
                TimeSlot.consultant_id == consultant_id,
                TimeSlot.date.in_(date_list),
                TimeSlot.not_deleted(),
            )
            .order_by(TimeSlot.date, TimeSlot.start_time)
            .all()
        )

    def find(self, criteria: SlotFilter, page: PageRequest) -> Tuple[List[TimeSlot], int]:
        query = self._live(self.db.query(TimeSlot))
        if criteria.consultant_id:
            query = query.filter(TimeSlot.consultant_id == criteria.consultant_id)
        if criteria.availability_id:
            query = query.filter(TimeSlot.availability_id == criteria.availability_id)
        if criteria.showroom_id:
            query = query.filter(TimeSlot.showroom_id == criteria.showroom_id)
        if criteria.date_from:
            query = query.filter(TimeSlot.date >= criteria.date_from)
        if criteria.date_to:
            query = query.filter(TimeSlot.date <= criteria.date_to)
        if criteria.available_only:
            query = query.filter(
                TimeSlot.is_available.is_(True),
                TimeSlot.is_blocked.is_(False),
            )
        query = query.order_by(TimeSlot.date, TimeSlot.start_time, TimeSlot.id)
        return self._paginate(query, page.page, page.limit)

    # Conditional writes

    def _conditional_update(self, *conditions, **values) -> bool:
        values.setdefault("updated_at", utcnow())
        result = self.db.execute(
            update(TimeSlot)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def claim(self, slot_id: str) -> bool:
        """
        Occupy a free slot.

        Succeeds only if the slot is live, available and not blocked at the
        moment the write lands.
        """
        claimed = self._conditional_update(
            TimeSlot.id == slot_id,
            TimeSlot.is_available.is_(True),
            TimeSlot.is_blocked.is_(False),
            TimeSlot.not_deleted(),
            TimeSlot.current_bookings < TimeSlot.max_bookings,
            is_available=False,
            current_bookings=TimeSlot.current_bookings + 1,
        )
        self.logger.debug("Slot claim", extra={"slot_id": slot_id, "claimed": claimed})
        return claimed

    def release(self, slot_id: str) -> bool:
        """
        Free an occupied slot.

        A blocked slot stays unavailable after release.
        """
        return self._conditional_update(
            TimeSlot.id == slot_id,
            TimeSlot.current_bookings > 0,
            is_available=not_(TimeSlot.is_blocked),
            current_bookings=case(
                (TimeSlot.current_bookings > 0, TimeSlot.current_bookings - 1),
                else_=0,
            ),
        )

    def soft_delete_if_unoccupied(self, slot_id: str, at: Optional[datetime] = None) -> bool:
        return self._conditional_update(
            TimeSlot.id == slot_id,
            TimeSlot.current_bookings == 0,
            TimeSlot.not_deleted(),
            deleted_at=at or utcnow(),
            is_available=False,
        )

    def block_if_unoccupied(self, slot_id: str, reason: Optional[str]) -> bool:
        return self._conditional_update(
            TimeSlot.id == slot_id,
            TimeSlot.current_bookings == 0,
            TimeSlot.not_deleted(),
            is_blocked=True,
            block_reason=reason,
            is_available=False,
        )

    def set_unavailable_if_unoccupied(self, slot_id: str) -> bool:
        return self._conditional_update(
            TimeSlot.id == slot_id,
            TimeSlot.current_bookings == 0,
            TimeSlot.not_deleted(),
            is_available=False,
        )

    def unblock(self, slot_id: str) -> bool:
        """Clear a block; the slot becomes claimable again only when it holds no booking."""
        return self._conditional_update(
            TimeSlot.id == slot_id,
            TimeSlot.not_deleted(),
            is_blocked=False,
            block_reason=None,
            is_available=TimeSlot.current_bookings == 0,
        )

    def set_available_if_free(self, slot_id: str) -> bool:
        return self._conditional_update(
            TimeSlot.id == slot_id,
            TimeSlot.current_bookings == 0,
            TimeSlot.is_blocked.is_(False),
            TimeSlot.not_deleted(),
            is_available=True,
        )

    def reschedule_times_if_unoccupied(
        self,
        slot_id: str,
        slot_date: date,
        start: time,
        end: time,
        duration: int,
    ) -> bool:
        return self._conditional_update(
            TimeSlot.id == slot_id,
            TimeSlot.current_bookings == 0,
            TimeSlot.not_deleted(),
            date=slot_date,
            start_time=start,
            end_time=end,
            duration=duration,
        )
