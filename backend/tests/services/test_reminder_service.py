"""Tests for explicit reminder management and the due-reminder scan."""

from datetime import datetime, time, timedelta, timezone

import pytest

from slotbook.core.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    ReminderAlreadySentException,
    ReminderCancelledException,
    ReminderDeliveryException,
    RepositoryException,
    ValidationException,
)
from slotbook.models.reminder import ReminderChannel, ReminderStatus
from slotbook.repositories.filters import PageRequest, ReminderFilter
from slotbook.schemas.booking import BookingCreate
from slotbook.schemas.reminder import ReminderCreate, ReminderUpdate
from slotbook.services.booking_service import BookingService
from slotbook.services.reminder_service import ReminderService


@pytest.fixture
def reminders(db, cache, test_settings, notification_service):
    return ReminderService(db, cache, test_settings, notification_service=notification_service)


@pytest.fixture
def bookings(db, cache, test_settings, notification_service, reminders):
    return BookingService(
        db,
        cache,
        test_settings,
        notification_service=notification_service,
        reminder_service=reminders,
    )


@pytest.fixture
def booking(bookings, consultant, upcoming, make_slot, customer):
    slot = make_slot(consultant, upcoming(), time(10), time(11))
    return bookings.create_booking(
        BookingCreate(
            slot_id=slot.id,
            customer_name="Ada Lovelace",
            customer_email="ada@example.com",
            customer_phone="+15550100",
        ),
        customer,
    )


def _soon(hours=1):
    return datetime.now(timezone.utc) + timedelta(hours=hours)


def _far_future():
    return datetime.now(timezone.utc) + timedelta(days=30)


def _statuses(service, booking_id):
    items, _ = service.list_reminders(ReminderFilter(booking_id=booking_id), PageRequest(limit=50))
    return sorted(item.status.value for item in items)


class TestCreateReminder:
    def test_creates_pending(self, reminders, booking, customer):
        reminder = reminders.create_reminder(
            ReminderCreate(booking_id=booking.id, channel=ReminderChannel.SMS, scheduled_at=_soon()),
            customer,
        )
        assert reminder.status == ReminderStatus.PENDING.value
        assert reminder.channel == ReminderChannel.SMS.value
        assert reminder.customer_id == booking.customer_id
        assert reminder.retry_count == 0

    def test_past_time_rejected(self, reminders, booking, customer):
        with pytest.raises(ValidationException) as exc_info:
            reminders.create_reminder(
                ReminderCreate(booking_id=booking.id, scheduled_at=_soon(hours=-1)), customer
            )
        assert exc_info.value.code == "REMINDER_IN_PAST"

    def test_unknown_booking(self, reminders, customer):
        with pytest.raises(NotFoundException):
            reminders.create_reminder(
                ReminderCreate(booking_id="01HF4G12ABCDEF3456789XYZAB", scheduled_at=_soon()), customer
            )

    def test_other_customer_forbidden(self, reminders, booking, other_customer):
        with pytest.raises(ForbiddenException):
            reminders.create_reminder(
                ReminderCreate(booking_id=booking.id, scheduled_at=_soon()), other_customer
            )

    def test_cancelled_booking_rejected(self, reminders, bookings, booking, customer):
        bookings.cancel_booking(booking.id, "Change of plans", customer)
        with pytest.raises(ConflictException) as exc_info:
            reminders.create_reminder(ReminderCreate(booking_id=booking.id, scheduled_at=_soon()), customer)
        assert exc_info.value.code == "BOOKING_CANCELLED"


class TestReminderLifecycle:
    @pytest.fixture
    def reminder(self, reminders, booking, customer):
        return reminders.create_reminder(
            ReminderCreate(booking_id=booking.id, scheduled_at=_soon(hours=2)), customer
        )

    def test_reschedule_reminder(self, reminders, reminder, customer):
        new_time = _soon(hours=5)
        updated = reminders.update_reminder(
            reminder.id, ReminderUpdate(scheduled_at=new_time, channel=ReminderChannel.SMS), customer
        )
        assert updated.channel == ReminderChannel.SMS.value
        assert abs(
            updated.scheduled_at.replace(tzinfo=timezone.utc) - new_time
        ) < timedelta(seconds=1)

    def test_update_to_past_rejected(self, reminders, reminder, customer):
        with pytest.raises(ValidationException):
            reminders.update_reminder(reminder.id, ReminderUpdate(scheduled_at=_soon(hours=-2)), customer)

    def test_cancel(self, reminders, reminder, customer):
        cancelled = reminders.cancel_reminder(reminder.id, customer)
        assert cancelled.status == ReminderStatus.CANCELLED.value

    def test_update_cancelled_is_conflict(self, reminders, reminder, customer):
        reminders.cancel_reminder(reminder.id, customer)
        with pytest.raises(ReminderCancelledException):
            reminders.update_reminder(reminder.id, ReminderUpdate(channel=ReminderChannel.SMS), customer)

    def test_sent_reminder_is_frozen(self, reminders, reminder, customer):
        reminders.process_reminders(now=_soon(hours=3))
        assert reminders.get_reminder(reminder.id, customer).status == ReminderStatus.SENT.value

        with pytest.raises(ReminderAlreadySentException):
            reminders.update_reminder(reminder.id, ReminderUpdate(scheduled_at=_soon(hours=6)), customer)
        with pytest.raises(ReminderAlreadySentException):
            reminders.cancel_reminder(reminder.id, customer)
        with pytest.raises(ReminderAlreadySentException):
            reminders.delete_reminder(reminder.id, customer)

    def test_delete(self, reminders, reminder, customer):
        reminders.delete_reminder(reminder.id, customer)
        with pytest.raises(NotFoundException):
            reminders.get_reminder(reminder.id, customer)

    def test_other_customer_cannot_read(self, reminders, reminder, other_customer, admin):
        with pytest.raises(ForbiddenException):
            reminders.get_reminder(reminder.id, other_customer)
        assert reminders.get_reminder(reminder.id, admin).id == reminder.id


class TestProcessReminders:
    def test_nothing_due(self, reminders, booking):
        result = reminders.process_reminders(now=datetime.now(timezone.utc))
        assert result.total == 0

    def test_due_reminders_sent(self, reminders, booking, sender):
        sender.send.reset_mock()
        result = reminders.process_reminders(now=_far_future())

        assert result.total == 2
        assert result.sent == 2
        assert result.failed == 0
        assert sender.send.call_count == 2
        assert _statuses(reminders, booking.id) == ["SENT", "SENT"]

    def test_sent_reminders_not_resent(self, reminders, booking, sender):
        reminders.process_reminders(now=_far_future())
        sender.send.reset_mock()
        result = reminders.process_reminders(now=_far_future())
        assert result.total == 0
        sender.send.assert_not_called()

    def test_failure_recorded_and_retried(self, reminders, booking, sender, test_settings):
        sender.send.side_effect = RuntimeError("gateway timeout")
        first = reminders.process_reminders(now=_far_future())
        assert first.failed == 2
        assert {error.error for error in first.errors} == {"gateway timeout"}

        items, _ = reminders.list_reminders(ReminderFilter(booking_id=booking.id), PageRequest())
        assert all(item.status == ReminderStatus.FAILED for item in items)
        assert all(item.retry_count == 1 for item in items)
        assert all(item.failure_reason == "gateway timeout" for item in items)

        sender.send.side_effect = None
        second = reminders.process_reminders(now=_far_future())
        assert second.sent == 2
        assert _statuses(reminders, booking.id) == ["SENT", "SENT"]

    def test_retries_stop_at_limit(self, reminders, booking, sender, test_settings):
        sender.send.side_effect = RuntimeError("gateway timeout")
        for _ in range(test_settings.reminder_max_retries):
            reminders.process_reminders(now=_far_future())

        result = reminders.process_reminders(now=_far_future())
        assert result.total == 0
        assert _statuses(reminders, booking.id) == ["FAILED", "FAILED"]

    def test_sms_without_phone_fails(self, reminders, bookings, consultant, upcoming, make_slot, customer):
        slot = make_slot(consultant, upcoming(), time(15), time(16))
        no_phone = bookings.create_booking(
            BookingCreate(slot_id=slot.id, customer_name="Bob", customer_email="bob@example.com"),
            customer,
        )
        reminders.cancel_pending_for_booking(no_phone.id)
        reminders.db.commit()
        reminders.create_reminder(
            ReminderCreate(booking_id=no_phone.id, channel=ReminderChannel.SMS, scheduled_at=_soon()),
            customer,
        )

        result = reminders.process_reminders(now=_soon(hours=2))
        assert result.failed == 1
        assert "no recipient" in result.errors[0].error

    def test_reminders_of_cancelled_booking_are_cancelled(self, reminders, bookings, booking, customer, sender):
        reminder = reminders.create_reminder(
            ReminderCreate(booking_id=booking.id, scheduled_at=_soon()), customer
        )
        # Bypass the booking flow so the reminder is still open when the booking goes away
        bookings.repository.cancel_if_active(booking.id, "Gone", datetime.now(timezone.utc))
        bookings.db.commit()
        sender.send.reset_mock()

        result = reminders.process_reminders(now=_far_future())

        sender.send.assert_not_called()
        assert result.sent == 0
        assert result.failed == 0
        assert reminders.get_reminder(reminder.id, customer).status == ReminderStatus.CANCELLED.value

    def test_one_failure_does_not_block_the_rest(self, reminders, bookings, booking, sender, customer):
        calls = []

        def _fail_first(*args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                raise RuntimeError("mailbox full")

        sender.send.side_effect = _fail_first
        result = reminders.process_reminders(now=_far_future())

        assert result.total == 2
        assert result.sent == 1
        assert result.failed == 1
        assert [error.error for error in result.errors] == ["mailbox full"]
        assert _statuses(reminders, booking.id) == ["FAILED", "SENT"]
        assert bookings.get_booking(booking.id, customer).reminder_sent_at is not None

    def test_store_error_on_one_reminder_does_not_abort_scan(self, reminders, booking, sender, monkeypatch):
        load_booking = reminders.booking_repository.get_by_id
        calls = []

        def _flaky_load(booking_id, *args, **kwargs):
            calls.append(booking_id)
            if len(calls) == 1:
                raise RepositoryException("connection reset")
            return load_booking(booking_id, *args, **kwargs)

        monkeypatch.setattr(reminders.booking_repository, "get_by_id", _flaky_load)
        sender.send.reset_mock()

        result = reminders.process_reminders(now=_far_future())

        assert result.total == 2
        assert result.sent == 1
        assert len(result.errors) == 1
        assert sender.send.call_count == 1
        assert _statuses(reminders, booking.id) == ["PENDING", "SENT"]

    def test_scan_stamps_booking_when_reminder_sent(self, reminders, bookings, booking, customer):
        assert bookings.get_booking(booking.id, customer).reminder_sent_at is None
        reminders.process_reminders(now=_far_future())
        assert bookings.get_booking(booking.id, customer).reminder_sent_at is not None


class TestSendReminder:
    @pytest.fixture
    def reminder(self, reminders, booking, customer):
        return reminders.create_reminder(
            ReminderCreate(booking_id=booking.id, scheduled_at=_soon(hours=5)), customer
        )

    def test_sends_ahead_of_schedule(self, reminders, bookings, booking, reminder, customer, sender):
        sender.send.reset_mock()

        sent = reminders.send_reminder(reminder.id, customer)

        assert sent.status == ReminderStatus.SENT.value
        assert sent.sent_at is not None
        sender.send.assert_called_once()
        assert bookings.get_booking(booking.id, customer).reminder_sent_at is not None

    def test_already_sent_is_conflict(self, reminders, reminder, customer, sender):
        reminders.send_reminder(reminder.id, customer)
        sender.send.reset_mock()
        with pytest.raises(ReminderAlreadySentException):
            reminders.send_reminder(reminder.id, customer)
        sender.send.assert_not_called()

    def test_cancelled_is_conflict(self, reminders, reminder, customer):
        reminders.cancel_reminder(reminder.id, customer)
        with pytest.raises(ReminderCancelledException):
            reminders.send_reminder(reminder.id, customer)

    def test_cancelled_booking_is_conflict(self, reminders, bookings, booking, reminder, customer):
        bookings.repository.cancel_if_active(booking.id, "Gone", datetime.now(timezone.utc))
        bookings.db.commit()
        with pytest.raises(ConflictException) as exc_info:
            reminders.send_reminder(reminder.id, customer)
        assert exc_info.value.code == "BOOKING_CANCELLED"

    def test_sender_failure_leaves_reminder_failed(self, reminders, bookings, booking, reminder, customer, sender):
        sender.send.side_effect = RuntimeError("gateway timeout")
        with pytest.raises(ReminderDeliveryException) as exc_info:
            reminders.send_reminder(reminder.id, customer)
        assert exc_info.value.details["reason"] == "gateway timeout"

        current = reminders.get_reminder(reminder.id, customer)
        assert current.status == ReminderStatus.FAILED.value
        assert current.retry_count == 1
        assert bookings.get_booking(booking.id, customer).reminder_sent_at is None

    def test_other_customer_forbidden(self, reminders, reminder, other_customer):
        with pytest.raises(ForbiddenException):
            reminders.send_reminder(reminder.id, other_customer)
