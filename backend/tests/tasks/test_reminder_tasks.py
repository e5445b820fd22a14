"""Tests for the reminder worker task, its beat schedule and the CLI."""

from datetime import datetime, time, timedelta, timezone
import json
from unittest.mock import MagicMock, patch

from slotbook.commands import reminders as reminder_commands
from slotbook.models.reminder import Reminder, ReminderStatus
from slotbook.schemas.booking import BookingCreate
from slotbook.schemas.reminder import ReminderProcessingResult
from slotbook.services.booking_service import BookingService
from slotbook.tasks.beat_schedule import PROCESS_DUE_REMINDERS_TASK, get_beat_schedule
from slotbook.tasks.celery_app import create_celery_app
from slotbook.tasks.reminders import process_due_reminders, run_reminder_scan


def _due_reminder(db, cache, test_settings, notification_service, customer, slot):
    booking = BookingService(db, cache, test_settings, notification_service=notification_service).create_booking(
        BookingCreate(slot_id=slot.id, customer_name="Ada", customer_email="ada@example.com"),
        customer,
    )
    reminder = Reminder(
        booking_id=booking.id,
        customer_id=booking.customer_id,
        channel="EMAIL",
        status=ReminderStatus.PENDING.value,
        scheduled_at=datetime.now(timezone.utc) - timedelta(minutes=5),
        retry_count=0,
    )
    db.add(reminder)
    db.commit()
    return reminder.id


class TestRunReminderScan:
    def test_sends_due_reminders(
        self, database, db, cache, test_settings, notification_service, customer, consultant, upcoming, make_slot
    ):
        slot = make_slot(consultant, upcoming(), time(10), time(11))
        reminder_id = _due_reminder(db, cache, test_settings, notification_service, customer, slot)

        result = run_reminder_scan(test_settings)

        assert result.total == 1
        assert result.sent == 1
        db.expire_all()
        assert db.get(Reminder, reminder_id).status == ReminderStatus.SENT.value

    def test_empty_store(self, database, test_settings):
        assert run_reminder_scan(test_settings) == ReminderProcessingResult()


class TestCeleryWiring:
    def test_task_returns_plain_dict(self):
        outcome = ReminderProcessingResult(total=2, sent=1, failed=1)
        with patch("slotbook.tasks.reminders.run_reminder_scan", return_value=outcome):
            payload = process_due_reminders()
        assert payload == {"total": 2, "sent": 1, "failed": 1, "errors": []}

    def test_beat_schedule_follows_settings(self, test_settings):
        test_settings.reminder_scan_interval_seconds = 30
        entry = get_beat_schedule(test_settings)["process-due-reminders"]
        assert entry["task"] == PROCESS_DUE_REMINDERS_TASK
        assert entry["schedule"] == timedelta(seconds=30)
        assert entry["options"]["queue"] == "reminders"

    def test_app_configuration(self, test_settings):
        app = create_celery_app(test_settings)
        assert app.conf.task_serializer == "json"
        assert "process-due-reminders" in app.conf.beat_schedule


class TestCommand:
    def test_inline_run(self, capsys):
        outcome = ReminderProcessingResult(total=1, sent=1)
        with patch("slotbook.tasks.reminders.run_reminder_scan", return_value=outcome) as scan:
            exit_code = reminder_commands.main(["process"])
        assert exit_code == 0
        scan.assert_called_once()
        assert json.loads(capsys.readouterr().out)["sent"] == 1

    def test_failures_give_nonzero_exit(self, capsys):
        outcome = ReminderProcessingResult(total=1, failed=1)
        with patch("slotbook.tasks.reminders.run_reminder_scan", return_value=outcome):
            assert reminder_commands.main(["process"]) == 1

    def test_async_run_queues_task(self, capsys):
        task = MagicMock()
        task.delay.return_value.id = "task-123"
        with patch("slotbook.tasks.reminders.process_due_reminders", task):
            exit_code = reminder_commands.main(["process", "--async"])
        assert exit_code == 0
        task.delay.assert_called_once_with()
        assert json.loads(capsys.readouterr().out) == {"task_id": "task-123", "mode": "async"}
