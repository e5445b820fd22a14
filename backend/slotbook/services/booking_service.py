# backend/slotbook/services/booking_service.py
"""
Booking Service for the booking core.

The booking state machine:

    PENDING -> CONFIRMED
    PENDING -> CANCELLED
    CONFIRMED -> CANCELLED

CANCELLED is terminal. Slot occupancy changes only through the conditional
writes in TimeSlotRepository, so concurrent requests for one slot resolve to
exactly one winner at the store: whoever's claim lands first. Every flow runs
its writes in one transaction; cache invalidation and customer notifications
happen after commit.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import Settings
from ..core.exceptions import (
    BookingAlreadyCancelledException,
    ConflictException,
    DomainException,
    ForbiddenException,
    NotFoundException,
    SlotUnavailableException,
    ValidationException,
)
from ..models.booking import Booking, BookingStatus
from ..models.booking_reschedule import Reschedule
from ..models.consultant import Consultant
from ..models.time_slot import TimeSlot
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..principal import CallerPrincipal
from ..repositories import RepositoryFactory
from ..repositories.filters import BookingFilter, PageRequest, RescheduleFilter
from ..schemas.booking import BookingCreate, BookingResponse, RescheduleResponse
from .base import BaseService
from .cache_service import CacheService
from .notification_service import NotificationService
from .reminder_service import ReminderService
from .slot_service import validate_bookable_time

logger = logging.getLogger(__name__)


class BookingService(BaseService):
    """
    Service layer for booking operations.

    Preconditions (existence, ownership, slot state, time rules) are checked
    before any write so callers get precise errors; the conditional writes
    inside the transaction re-check the state that matters and turn a lost
    race into a 409.
    """

    def __init__(
        self,
        db: Session,
        cache: Optional[CacheService] = None,
        settings: Optional[Settings] = None,
        notification_service: Optional[NotificationService] = None,
        reminder_service: Optional[ReminderService] = None,
    ):
        super().__init__(db, cache, settings)
        self.repository = RepositoryFactory.create_booking_repository(db)
        self.slot_repository = RepositoryFactory.create_time_slot_repository(db)
        self.consultant_repository = RepositoryFactory.create_consultant_repository(db)
        self.notification_service = notification_service or NotificationService()
        self.reminder_service = reminder_service or ReminderService(
            db, cache, self.settings, notification_service=self.notification_service
        )

    # Lookups and guards

    def _require_booking(self, booking_id: str) -> Booking:
        booking = self.repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException(
                f"Booking {booking_id} not found",
                code="BOOKING_NOT_FOUND",
                details={"booking_id": booking_id},
            )
        return booking

    def _require_slot(self, slot_id: str) -> TimeSlot:
        slot = self.slot_repository.get_by_id(slot_id)
        if slot is None:
            raise NotFoundException(
                f"Time slot {slot_id} not found",
                code="SLOT_NOT_FOUND",
                details={"slot_id": slot_id},
            )
        return slot

    @staticmethod
    def _check_owner(booking: Booking, caller: CallerPrincipal) -> None:
        if not caller.can_act_for(booking.customer_id):
            raise ForbiddenException(
                "You do not have permission to modify this booking",
                code="BOOKING_FORBIDDEN",
                details={"booking_id": booking.id},
            )

    @staticmethod
    def _require_reason(reason: Optional[str]) -> str:
        cleaned = (reason or "").strip()
        if not cleaned:
            raise ValidationException("A reason is required", code="REASON_REQUIRED")
        return cleaned

    def _require_bookable_slot(self, slot: TimeSlot) -> Consultant:
        """
        Check a slot can take a new booking right now.

        Returns the slot's consultant, whose zone decides the time rules.
        """
        if slot.is_blocked:
            raise SlotUnavailableException(slot.id, "This time slot is blocked")
        if not slot.is_available:
            raise SlotUnavailableException(slot.id)
        consultant = self.consultant_repository.get_active(slot.consultant_id)
        if consultant is None:
            raise SlotUnavailableException(slot.id, "This consultant is not accepting bookings")
        validate_bookable_time(
            slot.date,
            slot.start_time,
            consultant.timezone,
            self.now(),
            self.settings.booking_window_days,
        )
        return consultant

    def _claim(self, slot_id: str) -> None:
        claimed = self.slot_repository.claim(slot_id)
        prometheus_metrics.record_slot_claim(claimed)
        if not claimed:
            raise SlotUnavailableException(slot_id)

    def _invalidate_slots(self, consultant_id: str, slot_ids: List[str]) -> None:
        if self.cache is not None:
            self.cache.invalidate_slots(consultant_id, slot_ids)

    def _record_confirmation(self, booking: Booking, slot: TimeSlot) -> Booking:
        """Notify the customer; a failed notification never undoes the booking."""
        if not self.notification_service.send_booking_confirmation(booking, slot):
            return booking
        try:
            self.run_in_transaction(
                "mark_confirmation_sent",
                lambda: self.repository.mark_confirmation_sent(booking.id, self.now()),
            )
        except DomainException as exc:
            self.logger.warning(
                f"Could not record confirmation for booking {booking.id}: {exc.message}",
                extra={"booking_id": booking.id},
            )
            return booking
        return self.repository.get_by_id(booking.id) or booking

    # State machine

    @BaseService.measure_operation("create_booking")
    def create_booking(self, data: BookingCreate, caller: CallerPrincipal) -> Booking:
        """
        Book a slot for a customer.

        Raises:
            ForbiddenException: A customer tried to book for someone else
            NotFoundException: Unknown slot
            SlotUnavailableException: Slot blocked, taken, or lost to a concurrent claim
            ValidationException: Slot already started or beyond the booking window
        """
        customer_id = caller.user_id
        if data.customer_id and data.customer_id != caller.user_id:
            if not caller.is_admin:
                raise ForbiddenException(
                    "Only administrators can book on behalf of another customer",
                    code="BOOKING_FORBIDDEN",
                )
            customer_id = data.customer_id

        slot = self._require_slot(data.slot_id)
        consultant = self._require_bookable_slot(slot)

        def _work() -> Booking:
            self._claim(slot.id)
            booking = self.repository.create(
                customer_id=customer_id,
                customer_name=data.customer_name.strip(),
                customer_email=str(data.customer_email),
                customer_phone=data.customer_phone,
                appointment_type=data.appointment_type,
                notes=data.notes,
                consultant_id=slot.consultant_id,
                slot_id=slot.id,
                status=BookingStatus.PENDING.value,
            )
            self.reminder_service.schedule_booking_reminders(booking, slot, consultant.timezone)
            return booking

        booking = self.run_in_transaction("create_booking", _work)
        self._invalidate_slots(slot.consultant_id, [slot.id])
        self.log_operation("create_booking", booking_id=booking.id, slot_id=slot.id)
        return self._record_confirmation(booking, slot)

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(self, booking_id: str, reason: Optional[str], caller: CallerPrincipal) -> Booking:
        """
        Cancel a booking and free its slot.

        Cancelling is not idempotent: a second cancel of the same booking is a
        409. A slot that was blocked while booked stays unavailable.
        """
        cleaned_reason = self._require_reason(reason)
        booking = self._require_booking(booking_id)
        self._check_owner(booking, caller)
        if booking.is_cancelled:
            raise BookingAlreadyCancelledException(booking_id)

        def _work() -> Booking:
            at = self.now()
            if not self.repository.cancel_if_active(booking_id, cleaned_reason, at):
                raise BookingAlreadyCancelledException(booking_id)
            current = self._require_booking(booking_id)
            self.repository.create_cancellation(booking_id, cleaned_reason, caller.user_id, at)
            if not self.slot_repository.release(current.slot_id):
                self.logger.warning(
                    f"Slot {current.slot_id} held no booking while cancelling {booking_id}",
                    extra={"booking_id": booking_id, "slot_id": current.slot_id},
                )
            self.reminder_service.cancel_pending_for_booking(booking_id)
            return current

        cancelled = self.run_in_transaction("cancel_booking", _work)
        self._invalidate_slots(cancelled.consultant_id, [cancelled.slot_id])
        self.log_operation("cancel_booking", booking_id=booking_id, slot_id=cancelled.slot_id)
        self.notification_service.send_booking_cancellation(cancelled, cleaned_reason)
        return cancelled

    @BaseService.measure_operation("reschedule_booking")
    def reschedule_booking(
        self,
        booking_id: str,
        new_slot_id: str,
        reason: Optional[str],
        caller: CallerPrincipal,
    ) -> Booking:
        """
        Move a booking to another slot.

        The new slot is claimed with the same conditional write as a new
        booking, then the booking is repointed and the old slot released, all
        in one transaction. If any step fails nothing changes: the booking
        keeps its old slot and the new slot stays as it was.
        """
        cleaned_reason = self._require_reason(reason)
        booking = self._require_booking(booking_id)
        self._check_owner(booking, caller)
        if booking.is_cancelled:
            raise BookingAlreadyCancelledException(booking_id)
        if new_slot_id == booking.slot_id:
            raise ConflictException(
                "Booking already holds this time slot",
                code="SAME_SLOT",
                details={"booking_id": booking_id, "slot_id": new_slot_id},
            )

        new_slot = self._require_slot(new_slot_id)
        consultant = self._require_bookable_slot(new_slot)
        old_slot_id = booking.slot_id
        old_consultant_id = booking.consultant_id

        def _work() -> Tuple[Booking, Reschedule]:
            self._claim(new_slot_id)
            moved = self.repository.move_to_slot(
                booking_id, old_slot_id, new_slot_id, consultant_id=new_slot.consultant_id
            )
            if not moved:
                raise ConflictException(
                    "Booking changed while rescheduling; please retry",
                    code="BOOKING_CHANGED",
                    details={"booking_id": booking_id},
                )
            if not self.slot_repository.release(old_slot_id):
                self.logger.warning(
                    f"Slot {old_slot_id} held no booking while rescheduling {booking_id}",
                    extra={"booking_id": booking_id, "slot_id": old_slot_id},
                )
            reschedule = self.repository.create_reschedule(
                booking_id, old_slot_id, new_slot_id, cleaned_reason, caller.user_id
            )
            updated = self._require_booking(booking_id)
            self.reminder_service.replan_for_booking(updated, new_slot, consultant.timezone)
            return updated, reschedule

        updated, reschedule = self.run_in_transaction("reschedule_booking", _work)
        self._invalidate_slots(old_consultant_id, [old_slot_id, new_slot_id])
        if new_slot.consultant_id != old_consultant_id:
            self._invalidate_slots(new_slot.consultant_id, [old_slot_id, new_slot_id])
        self.log_operation(
            "reschedule_booking",
            booking_id=booking_id,
            old_slot_id=old_slot_id,
            new_slot_id=new_slot_id,
            reschedule_id=reschedule.id,
        )
        self.notification_service.send_booking_rescheduled(updated, new_slot)
        return updated

    @BaseService.measure_operation("confirm_booking")
    def confirm_booking(self, booking_id: str, caller: CallerPrincipal) -> Booking:
        if not caller.is_admin:
            raise ForbiddenException(
                "Only administrators can confirm bookings",
                code="ADMIN_REQUIRED",
            )
        self._require_booking(booking_id)

        def _work() -> Booking:
            if not self.repository.confirm_if_pending(booking_id, self.now()):
                current = self._require_booking(booking_id)
                if current.is_cancelled:
                    raise BookingAlreadyCancelledException(booking_id)
                raise ConflictException(
                    "Booking is already confirmed",
                    code="BOOKING_ALREADY_CONFIRMED",
                    details={"booking_id": booking_id, "status": current.status},
                )
            return self._require_booking(booking_id)

        confirmed = self.run_in_transaction("confirm_booking", _work)
        self.log_operation("confirm_booking", booking_id=booking_id)
        return confirmed

    # Reads

    def get_booking(self, booking_id: str, caller: CallerPrincipal) -> Booking:
        booking = self._require_booking(booking_id)
        if not caller.can_act_for(booking.customer_id):
            raise ForbiddenException(
                "You do not have permission to view this booking",
                code="BOOKING_FORBIDDEN",
                details={"booking_id": booking_id},
            )
        return booking

    def list_bookings(self, criteria: BookingFilter, page: PageRequest) -> Tuple[List[BookingResponse], int]:
        items, total = self.repository.find(criteria, page)
        return [BookingResponse.model_validate(item) for item in items], total

    def get_reschedule(self, reschedule_id: str, caller: CallerPrincipal) -> Reschedule:
        reschedule = self.repository.get_reschedule(reschedule_id)
        if reschedule is None:
            raise NotFoundException(
                f"Reschedule {reschedule_id} not found",
                code="RESCHEDULE_NOT_FOUND",
                details={"reschedule_id": reschedule_id},
            )
        self.get_booking(reschedule.booking_id, caller)
        return reschedule

    def list_reschedules(
        self, criteria: RescheduleFilter, page: PageRequest
    ) -> Tuple[List[RescheduleResponse], int]:
        items, total = self.repository.find_reschedules(criteria, page)
        return [RescheduleResponse.model_validate(item) for item in items], total
