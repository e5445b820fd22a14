"""Reminder data access, including the due-reminder scan."""

from datetime import datetime
import logging
from typing import List, Tuple

from sqlalchemy import and_, or_, update
from sqlalchemy.orm import Session

from ..models.base import utcnow
from ..models.reminder import Reminder, ReminderStatus
from .base_repository import BaseRepository
from .filters import PageRequest, ReminderFilter

logger = logging.getLogger(__name__)

_OPEN_STATUSES = (ReminderStatus.PENDING.value, ReminderStatus.FAILED.value)


class ReminderRepository(BaseRepository[Reminder]):
    def __init__(self, db: Session):
        super().__init__(db, Reminder)

    def _conditional_update(self, *conditions, **values) -> int:
        values.setdefault("updated_at", utcnow())
        result = self.db.execute(
            update(Reminder)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def find(self, criteria: ReminderFilter, page: PageRequest) -> Tuple[List[Reminder], int]:
        query = self._live(self.db.query(Reminder))
        if criteria.booking_id:
            query = query.filter(Reminder.booking_id == criteria.booking_id)
        if criteria.customer_id:
            query = query.filter(Reminder.customer_id == criteria.customer_id)
        if criteria.channel:
            query = query.filter(Reminder.channel == criteria.channel)
        if criteria.status:
            query = query.filter(Reminder.status == criteria.status)
        query = query.order_by(Reminder.scheduled_at, Reminder.id)
        return self._paginate(query, page.page, page.limit)

    def find_due(self, now: datetime, max_retries: int, limit: int) -> List[Reminder]:
        """
        Reminders whose time has come.

        PENDING reminders are due once ``scheduled_at`` has elapsed; FAILED ones
        are retried until ``retry_count`` reaches ``max_retries``.
        """
        return (
            self.db.query(Reminder)
            .filter(
                Reminder.not_deleted(),
                Reminder.scheduled_at <= now,
                or_(
                    Reminder.status == ReminderStatus.PENDING.value,
                    and_(
                        Reminder.status == ReminderStatus.FAILED.value,
                        Reminder.retry_count < max_retries,
                    ),
                ),
            )
            .order_by(Reminder.scheduled_at, Reminder.id)
            .limit(limit)
            .all()
        )

    def cancel_open_for_booking(self, booking_id: str) -> int:
        """Cancel every PENDING or FAILED reminder of a booking."""
        return self._conditional_update(
            Reminder.booking_id == booking_id,
            Reminder.status.in_(_OPEN_STATUSES),
            Reminder.not_deleted(),
            status=ReminderStatus.CANCELLED.value,
        )

    def mark_sent(self, reminder_id: str, at: datetime) -> bool:
        return (
            self._conditional_update(
                Reminder.id == reminder_id,
                Reminder.status.in_(_OPEN_STATUSES),
                status=ReminderStatus.SENT.value,
                sent_at=at,
                failure_reason=None,
            )
            == 1
        )

    def mark_failed(self, reminder_id: str, at: datetime, reason: str) -> bool:
        return (
            self._conditional_update(
                Reminder.id == reminder_id,
                Reminder.status.in_(_OPEN_STATUSES),
                status=ReminderStatus.FAILED.value,
                failed_at=at,
                failure_reason=reason,
                retry_count=Reminder.retry_count + 1,
            )
            == 1
        )

    def update_if_open(self, reminder_id: str, **values) -> bool:
        """Apply ``values`` to a PENDING or FAILED reminder."""
        return (
            self._conditional_update(
                Reminder.id == reminder_id,
                Reminder.status.in_(_OPEN_STATUSES),
                Reminder.not_deleted(),
                **values,
            )
            == 1
        )

    def soft_delete_if_unsent(self, reminder_id: str, at: datetime) -> bool:
        return (
            self._conditional_update(
                Reminder.id == reminder_id,
                Reminder.status != ReminderStatus.SENT.value,
                Reminder.not_deleted(),
                deleted_at=at,
            )
            == 1
        )
