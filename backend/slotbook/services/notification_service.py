# backend/slotbook/services/notification_service.py
"""
Notification Service

Dispatches booking confirmations and appointment reminders through a
pluggable sender. Booking notifications are best-effort: a failed send is
logged and reported as False, never raised into the booking flow. Reminder
sends raise so the reminder processor can record the failure and retry.
"""

import logging
from typing import Optional, Protocol

from ..core.constants import BRAND_NAME
from ..models.booking import Booking
from ..models.reminder import Reminder, ReminderChannel
from ..models.time_slot import TimeSlot

logger = logging.getLogger(__name__)


class NotificationDeliveryError(Exception):
    """Raised when a message could not be handed to the delivery channel."""


class NotificationSender(Protocol):
    def send(self, channel: str, recipient: str, subject: str, body: str) -> None:
        ...


class ConsoleNotificationSender:
    """Sender that only logs; used for local runs and tests."""

    def send(self, channel: str, recipient: str, subject: str, body: str) -> None:
        logger.info(
            f"[{channel}] to {recipient}: {subject}",
            extra={"channel": channel, "recipient": recipient},
        )


class NotificationService:
    """Formats and dispatches customer-facing messages."""

    def __init__(self, sender: Optional[NotificationSender] = None) -> None:
        self.sender: NotificationSender = sender or ConsoleNotificationSender()
        self.logger = logging.getLogger(self.__class__.__name__)

    @staticmethod
    def _describe_slot(slot: Optional[TimeSlot]) -> str:
        if slot is None:
            return "your appointment"
        return (
            f"{slot.date.isoformat()} {slot.start_time.strftime('%H:%M')}-"
            f"{slot.end_time.strftime('%H:%M')}"
        )

    def _send_best_effort(self, booking: Booking, subject: str, body: str) -> bool:
        try:
            self.sender.send(ReminderChannel.EMAIL.value, booking.customer_email, subject, body)
        except Exception as exc:
            self.logger.warning(
                f"Notification for booking {booking.id} failed: {exc}",
                extra={"booking_id": booking.id},
            )
            return False
        return True

    def send_booking_confirmation(self, booking: Booking, slot: Optional[TimeSlot]) -> bool:
        subject = f"{BRAND_NAME}: your {booking.appointment_type} is booked"
        body = (
            f"Hi {booking.customer_name}, your {booking.appointment_type} on "
            f"{self._describe_slot(slot)} is booked. Reference: {booking.id}."
        )
        return self._send_best_effort(booking, subject, body)

    def send_booking_cancellation(self, booking: Booking, reason: str) -> bool:
        subject = f"{BRAND_NAME}: your booking was cancelled"
        body = f"Hi {booking.customer_name}, booking {booking.id} was cancelled. Reason: {reason}"
        return self._send_best_effort(booking, subject, body)

    def send_booking_rescheduled(self, booking: Booking, slot: Optional[TimeSlot]) -> bool:
        subject = f"{BRAND_NAME}: your booking was moved"
        body = (
            f"Hi {booking.customer_name}, booking {booking.id} now takes place on "
            f"{self._describe_slot(slot)}."
        )
        return self._send_best_effort(booking, subject, body)

    def send_reminder(self, reminder: Reminder, booking: Booking, slot: Optional[TimeSlot]) -> None:
        """
        Deliver one reminder.

        Raises:
            NotificationDeliveryError: No address for the channel or the sender failed
        """
        if reminder.channel == ReminderChannel.SMS.value:
            recipient = booking.customer_phone
        else:
            recipient = booking.customer_email
        if not recipient:
            raise NotificationDeliveryError(
                f"Booking {booking.id} has no recipient for channel {reminder.channel}"
            )

        subject = f"{BRAND_NAME}: upcoming {booking.appointment_type}"
        body = f"Reminder: {self._describe_slot(slot)}. Reference: {booking.id}."
        try:
            self.sender.send(reminder.channel, recipient, subject, body)
        except NotificationDeliveryError:
            raise
        except Exception as exc:
            raise NotificationDeliveryError(str(exc)) from exc
