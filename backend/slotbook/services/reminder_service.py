# backend/slotbook/services/reminder_service.py
"""
Reminder Service

Appointment reminders:
- Explicit create / update / cancel / delete, refused once a reminder is SENT
- Default reminders planned when a booking is created or moved
- Manual send of a single reminder; the booking records when a reminder went out
- The due-reminder scan, one transaction per reminder so a single failure
  never holds up the rest
"""

from datetime import datetime, timedelta
import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import Settings
from ..core.exceptions import (
    ConflictException,
    DomainException,
    ForbiddenException,
    NotFoundException,
    ReminderAlreadySentException,
    ReminderCancelledException,
    ReminderDeliveryException,
    RepositoryException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc
from ..models.booking import Booking
from ..models.reminder import Reminder, ReminderChannel, ReminderStatus
from ..models.time_slot import TimeSlot
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..principal import CallerPrincipal
from ..repositories import RepositoryFactory
from ..repositories.filters import PageRequest, ReminderFilter
from ..schemas.reminder import (
    ReminderCreate,
    ReminderError,
    ReminderProcessingResult,
    ReminderResponse,
    ReminderUpdate,
)
from .base import BaseService
from .cache_service import CacheService
from .notification_service import NotificationService

logger = logging.getLogger(__name__)


class ReminderService(BaseService):
    def __init__(
        self,
        db: Session,
        cache: Optional[CacheService] = None,
        settings: Optional[Settings] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        super().__init__(db, cache, settings)
        self.repository = RepositoryFactory.create_reminder_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.slot_repository = RepositoryFactory.create_time_slot_repository(db)
        self.notification_service = notification_service or NotificationService()

    # Helpers

    def _require_reminder(self, reminder_id: str) -> Reminder:
        reminder = self.repository.get_by_id(reminder_id)
        if reminder is None:
            raise NotFoundException(
                f"Reminder {reminder_id} not found",
                code="REMINDER_NOT_FOUND",
                details={"reminder_id": reminder_id},
            )
        return reminder

    def _require_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException(
                f"Booking {booking_id} not found",
                code="BOOKING_NOT_FOUND",
                details={"booking_id": booking_id},
            )
        return booking

    @staticmethod
    def _check_access(caller: CallerPrincipal, owner_id: str, reminder_id: Optional[str] = None) -> None:
        if not caller.can_act_for(owner_id):
            details = {"reminder_id": reminder_id} if reminder_id else {}
            raise ForbiddenException(
                "You do not have permission to manage this reminder",
                code="REMINDER_FORBIDDEN",
                details=details,
            )

    def _require_future(self, scheduled_at: datetime) -> datetime:
        scheduled_utc = ensure_utc(scheduled_at)
        if scheduled_utc <= self.now():
            raise ValidationException(
                "Reminder time must be in the future",
                code="REMINDER_IN_PAST",
                details={"scheduled_at": scheduled_utc.isoformat()},
            )
        return scheduled_utc

    @staticmethod
    def _raise_for_closed(reminder: Reminder) -> None:
        if reminder.is_sent:
            raise ReminderAlreadySentException(reminder.id)
        if reminder.is_cancelled:
            raise ReminderCancelledException(reminder.id)

    # Explicit reminder management

    @BaseService.measure_operation("create_reminder")
    def create_reminder(self, data: ReminderCreate, caller: CallerPrincipal) -> Reminder:
        """
        Schedule a reminder for a booking.

        Raises:
            ValidationException: scheduled_at is not strictly in the future
            NotFoundException: Unknown booking
            ForbiddenException: Caller neither owns the booking nor is an admin
            ConflictException: The booking is cancelled
        """
        scheduled_at = self._require_future(data.scheduled_at)
        booking = self._require_booking(data.booking_id)
        self._check_access(caller, booking.customer_id)
        if booking.is_cancelled:
            raise ConflictException(
                "Cannot add a reminder to a cancelled booking",
                code="BOOKING_CANCELLED",
                details={"booking_id": booking.id},
            )

        def _work() -> Reminder:
            return self.repository.create(
                booking_id=booking.id,
                customer_id=booking.customer_id,
                channel=ReminderChannel(data.channel).value,
                status=ReminderStatus.PENDING.value,
                scheduled_at=scheduled_at,
                retry_count=0,
            )

        reminder = self.run_in_transaction("create_reminder", _work)
        self.log_operation("create_reminder", reminder_id=reminder.id, booking_id=booking.id)
        return reminder

    @BaseService.measure_operation("update_reminder")
    def update_reminder(self, reminder_id: str, data: ReminderUpdate, caller: CallerPrincipal) -> Reminder:
        """
        Change a reminder's time or channel.

        A FAILED reminder goes back to PENDING with its retry count kept.
        """
        reminder = self._require_reminder(reminder_id)
        self._check_access(caller, reminder.customer_id, reminder_id)
        self._raise_for_closed(reminder)

        values = {}
        changes = data.model_dump(exclude_unset=True)
        if changes.get("scheduled_at") is not None:
            values["scheduled_at"] = self._require_future(changes["scheduled_at"])
        if changes.get("channel") is not None:
            values["channel"] = ReminderChannel(changes["channel"]).value
        values["status"] = ReminderStatus.PENDING.value
        values["failure_reason"] = None

        def _work() -> Reminder:
            if not self.repository.update_if_open(reminder_id, **values):
                self._raise_for_closed(self._require_reminder(reminder_id))
                raise ConflictException(
                    "Reminder changed concurrently",
                    code="REMINDER_CONFLICT",
                    details={"reminder_id": reminder_id},
                )
            return self._require_reminder(reminder_id)

        return self.run_in_transaction("update_reminder", _work)

    @BaseService.measure_operation("cancel_reminder")
    def cancel_reminder(self, reminder_id: str, caller: CallerPrincipal) -> Reminder:
        reminder = self._require_reminder(reminder_id)
        self._check_access(caller, reminder.customer_id, reminder_id)
        self._raise_for_closed(reminder)

        def _work() -> Reminder:
            if not self.repository.update_if_open(reminder_id, status=ReminderStatus.CANCELLED.value):
                self._raise_for_closed(self._require_reminder(reminder_id))
            return self._require_reminder(reminder_id)

        return self.run_in_transaction("cancel_reminder", _work)

    @BaseService.measure_operation("delete_reminder")
    def delete_reminder(self, reminder_id: str, caller: CallerPrincipal) -> None:
        reminder = self._require_reminder(reminder_id)
        self._check_access(caller, reminder.customer_id, reminder_id)
        if reminder.is_sent:
            raise ReminderAlreadySentException(reminder_id)

        def _work() -> None:
            if not self.repository.soft_delete_if_unsent(reminder_id, self.now()):
                current = self._require_reminder(reminder_id)
                if current.is_sent:
                    raise ReminderAlreadySentException(reminder_id)

        self.run_in_transaction("delete_reminder", _work)
        self.log_operation("delete_reminder", reminder_id=reminder_id)

    def get_reminder(self, reminder_id: str, caller: CallerPrincipal) -> Reminder:
        reminder = self._require_reminder(reminder_id)
        self._check_access(caller, reminder.customer_id, reminder_id)
        return reminder

    def list_reminders(
        self, criteria: ReminderFilter, page: PageRequest
    ) -> Tuple[List[ReminderResponse], int]:
        items, total = self.repository.find(criteria, page)
        return [ReminderResponse.model_validate(item) for item in items], total

    # Booking lifecycle hooks; called inside the booking transaction

    def schedule_booking_reminders(
        self, booking: Booking, slot: TimeSlot, tz_name: Optional[str]
    ) -> List[Reminder]:
        """Plan the default reminders before the appointment, skipping instants already past."""
        starts_at = slot.starts_at(tz_name)
        now = self.now()
        rows = []
        for offset_hours in self.settings.default_reminder_offsets_hours:
            scheduled_at = starts_at - timedelta(hours=offset_hours)
            if scheduled_at <= now:
                continue
            rows.append(
                {
                    "booking_id": booking.id,
                    "customer_id": booking.customer_id,
                    "channel": ReminderChannel.EMAIL.value,
                    "status": ReminderStatus.PENDING.value,
                    "scheduled_at": scheduled_at,
                    "retry_count": 0,
                }
            )
        if not rows:
            return []
        return self.repository.bulk_create(rows)

    def cancel_pending_for_booking(self, booking_id: str) -> int:
        return self.repository.cancel_open_for_booking(booking_id)

    def replan_for_booking(self, booking: Booking, slot: TimeSlot, tz_name: Optional[str]) -> List[Reminder]:
        """Replace the open reminders of a moved booking with ones for its new slot."""
        self.cancel_pending_for_booking(booking.id)
        return self.schedule_booking_reminders(booking, slot, tz_name)

    # Delivery

    @BaseService.measure_operation("send_reminder")
    def send_reminder(self, reminder_id: str, caller: CallerPrincipal) -> Reminder:
        """
        Deliver one reminder now instead of waiting for the scan.

        Raises:
            NotFoundException: Unknown reminder or booking
            ForbiddenException: Caller neither owns the reminder nor is an admin
            ConflictException: Reminder already sent or cancelled, or booking cancelled
            ReminderDeliveryException: The sender failed; the reminder is left FAILED
        """
        reminder = self._require_reminder(reminder_id)
        self._check_access(caller, reminder.customer_id, reminder_id)
        self._raise_for_closed(reminder)
        booking = self._require_booking(reminder.booking_id)
        if booking.is_cancelled:
            raise ConflictException(
                "Cannot send a reminder for a cancelled booking",
                code="BOOKING_CANCELLED",
                details={"booking_id": booking.id},
            )

        outcome, reason = self._dispatch(reminder, booking, self.now())
        if outcome is None:
            # Closed by a concurrent send or cancel
            self._raise_for_closed(self._require_reminder(reminder_id))
            raise ConflictException(
                "Reminder changed concurrently",
                code="REMINDER_CONFLICT",
                details={"reminder_id": reminder_id},
            )
        if outcome == ReminderStatus.FAILED:
            raise ReminderDeliveryException(reminder_id, reason or "failed")

        self.log_operation("send_reminder", reminder_id=reminder_id, booking_id=booking.id)
        return self._require_reminder(reminder_id)

    def _dispatch(
        self, reminder: Reminder, booking: Booking, at: datetime
    ) -> Tuple[Optional[ReminderStatus], Optional[str]]:
        """
        Send one reminder and record the result.

        Returns the recorded status and the failure reason. The status is None
        when the reminder was no longer open by the time the result was written.
        """
        reminder_id = reminder.id
        booking_id = booking.id
        slot = self.slot_repository.get_by_id(booking.slot_id, include_deleted=True)
        try:
            self.notification_service.send_reminder(reminder, booking, slot)
        except Exception as exc:
            reason = str(exc) or exc.__class__.__name__
            recorded = self.run_in_transaction(
                "mark_reminder_failed",
                lambda: self.repository.mark_failed(reminder_id, at, reason),
            )
            prometheus_metrics.record_reminder_outcome(reminder.channel, ReminderStatus.FAILED.value)
            self.logger.warning(
                f"Reminder {reminder_id} failed: {reason}",
                extra={"reminder_id": reminder_id, "recorded": recorded},
            )
            return (ReminderStatus.FAILED if recorded else None), reason

        def _record_sent() -> bool:
            if not self.repository.mark_sent(reminder_id, at):
                return False
            self.booking_repository.mark_reminder_sent(booking_id, at)
            return True

        recorded = self.run_in_transaction("mark_reminder_sent", _record_sent)
        prometheus_metrics.record_reminder_outcome(reminder.channel, ReminderStatus.SENT.value)
        return (ReminderStatus.SENT if recorded else None), None

    # Due-reminder scan

    @BaseService.measure_operation("process_reminders")
    def process_reminders(self, now: Optional[datetime] = None) -> ReminderProcessingResult:
        """
        Dispatch every reminder that is due.

        PENDING reminders whose time has come are sent; FAILED ones are retried
        while below the configured retry limit. Reminders of bookings that no
        longer exist or were cancelled are cancelled instead of sent.
        """
        scan_time = ensure_utc(now) or self.now()
        due = self.repository.find_due(
            scan_time, self.settings.reminder_max_retries, self.settings.reminder_batch_size
        )
        result = ReminderProcessingResult(total=len(due))

        for reminder in due:
            reminder_id = reminder.id
            try:
                outcome, reason = self._process_one(reminder, scan_time)
            except DomainException as exc:
                self._record_scan_error(result, reminder_id, exc.message)
                continue
            except (RepositoryException, SQLAlchemyError) as exc:
                self.db.rollback()
                self.logger.exception(f"Store error while processing reminder {reminder_id}: {exc}")
                self._record_scan_error(result, reminder_id, "Could not load reminder data")
                continue

            if outcome == ReminderStatus.SENT:
                result.sent += 1
            elif outcome == ReminderStatus.FAILED:
                result.failed += 1
                result.errors.append(
                    ReminderError(reminder_id=reminder_id, error=reason or "failed")
                )

        self.logger.info(
            "Reminder scan finished",
            extra={"total": result.total, "sent": result.sent, "failed": result.failed},
        )
        return result

    def _record_scan_error(self, result: ReminderProcessingResult, reminder_id: str, error: str) -> None:
        self.logger.error(
            f"Could not record outcome for reminder {reminder_id}: {error}",
            extra={"reminder_id": reminder_id},
        )
        result.errors.append(ReminderError(reminder_id=reminder_id, error=error))

    def _process_one(
        self, reminder: Reminder, scan_time: datetime
    ) -> Tuple[Optional[ReminderStatus], Optional[str]]:
        reminder_id = reminder.id
        booking = self.booking_repository.get_by_id(reminder.booking_id)
        if booking is None or booking.is_cancelled:
            self.run_in_transaction(
                "cancel_orphan_reminder",
                lambda: self.repository.update_if_open(
                    reminder_id, status=ReminderStatus.CANCELLED.value
                ),
            )
            return ReminderStatus.CANCELLED, None
        return self._dispatch(reminder, booking, scan_time)
