# backend/slotbook/repositories/booking_repository.py
"""
BookingRepository - bookings, cancellations and reschedule records.

Status transitions are conditional updates: each one names the state it
expects to move away from, so a transition that lost a race reports False
instead of overwriting another transaction's result.
"""

from datetime import datetime
import logging
from typing import List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..models.base import utcnow
from ..models.booking import Booking, BookingStatus
from ..models.booking_cancellation import Cancellation
from ..models.booking_reschedule import Reschedule
from ..models.time_slot import TimeSlot
from .base_repository import BaseRepository
from .filters import BookingFilter, PageRequest, RescheduleFilter

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def _conditional_update(self, *conditions, **values) -> bool:
        values.setdefault("updated_at", utcnow())
        result = self.db.execute(
            update(Booking)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def find(self, criteria: BookingFilter, page: PageRequest) -> Tuple[List[Booking], int]:
        query = self._live(self.db.query(Booking))
        if criteria.customer_id:
            query = query.filter(Booking.customer_id == criteria.customer_id)
        if criteria.consultant_id:
            query = query.filter(Booking.consultant_id == criteria.consultant_id)
        if criteria.slot_id:
            query = query.filter(Booking.slot_id == criteria.slot_id)
        if criteria.status:
            query = query.filter(Booking.status == criteria.status)
        if criteria.date_from or criteria.date_to:
            query = query.join(TimeSlot, TimeSlot.id == Booking.slot_id)
            if criteria.date_from:
                query = query.filter(TimeSlot.date >= criteria.date_from)
            if criteria.date_to:
                query = query.filter(TimeSlot.date <= criteria.date_to)
        query = query.order_by(Booking.created_at.desc(), Booking.id.desc())
        return self._paginate(query, page.page, page.limit)

    # Status transitions

    def cancel_if_active(self, booking_id: str, reason: str, at: datetime) -> bool:
        return self._conditional_update(
            Booking.id == booking_id,
            Booking.status != BookingStatus.CANCELLED.value,
            Booking.not_deleted(),
            status=BookingStatus.CANCELLED.value,
            cancellation_reason=reason,
            cancelled_at=at,
        )

    def confirm_if_pending(self, booking_id: str, at: datetime) -> bool:
        return self._conditional_update(
            Booking.id == booking_id,
            Booking.status == BookingStatus.PENDING.value,
            Booking.not_deleted(),
            status=BookingStatus.CONFIRMED.value,
            confirmed_at=at,
        )

    def move_to_slot(
        self,
        booking_id: str,
        old_slot_id: str,
        new_slot_id: str,
        consultant_id: Optional[str] = None,
    ) -> bool:
        """Point an active booking at a new slot if it still holds ``old_slot_id``."""
        values = {"slot_id": new_slot_id, "rescheduled_from_slot_id": old_slot_id}
        if consultant_id:
            values["consultant_id"] = consultant_id
        return self._conditional_update(
            Booking.id == booking_id,
            Booking.slot_id == old_slot_id,
            Booking.status != BookingStatus.CANCELLED.value,
            Booking.not_deleted(),
            **values,
        )

    def mark_confirmation_sent(self, booking_id: str, at: datetime) -> bool:
        return self._conditional_update(Booking.id == booking_id, confirmation_sent_at=at)

    def mark_reminder_sent(self, booking_id: str, at: datetime) -> bool:
        return self._conditional_update(Booking.id == booking_id, reminder_sent_at=at)

    # Cancellation / reschedule records

    def create_cancellation(self, booking_id: str, reason: str, user_id: str, at: datetime) -> Cancellation:
        cancellation = Cancellation(
            booking_id=booking_id,
            reason=reason,
            cancelled_by_user_id=user_id,
            cancelled_at=at,
        )
        self.db.add(cancellation)
        self.db.flush()
        return cancellation

    def create_reschedule(
        self,
        booking_id: str,
        old_slot_id: str,
        new_slot_id: str,
        reason: str,
        user_id: str,
    ) -> Reschedule:
        reschedule = Reschedule(
            booking_id=booking_id,
            old_time_slot_id=old_slot_id,
            new_time_slot_id=new_slot_id,
            reason=reason,
            rescheduled_by_user_id=user_id,
        )
        self.db.add(reschedule)
        self.db.flush()
        return reschedule

    def get_reschedule(self, reschedule_id: str) -> Optional[Reschedule]:
        return self.db.query(Reschedule).filter(Reschedule.id == reschedule_id).first()

    def find_reschedules(
        self, criteria: RescheduleFilter, page: PageRequest
    ) -> Tuple[List[Reschedule], int]:
        query = self.db.query(Reschedule)
        if criteria.booking_id:
            query = query.filter(Reschedule.booking_id == criteria.booking_id)
        if criteria.customer_id:
            query = query.join(Booking, Booking.id == Reschedule.booking_id).filter(
                Booking.customer_id == criteria.customer_id
            )
        query = query.order_by(Reschedule.created_at.desc(), Reschedule.id.desc())
        return self._paginate(query, page.page, page.limit)
