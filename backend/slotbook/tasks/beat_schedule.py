# backend/slotbook/tasks/beat_schedule.py
"""
Celery Beat schedule configuration for Slotbook.

The reminder scan is the only periodic job; its cadence comes from settings so
tests and local runs can tighten it.
"""

from datetime import timedelta
from typing import Any, Dict

from ..core.config import Settings

PROCESS_DUE_REMINDERS_TASK = "slotbook.tasks.reminders.process_due_reminders"


def get_beat_schedule(app_settings: Settings) -> Dict[str, Dict[str, Any]]:
    interval = app_settings.reminder_scan_interval_seconds
    return {
        "process-due-reminders": {
            "task": PROCESS_DUE_REMINDERS_TASK,
            "schedule": timedelta(seconds=interval),
            "options": {
                "queue": "reminders",
                # A scan older than its own interval has been superseded.
                "expires": interval,
            },
        },
    }
