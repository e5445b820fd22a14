# backend/slotbook/tasks/reminders.py
"""
Celery task that delivers due reminders.

The task body is a thin wrapper over ``run_reminder_scan`` so the CLI and the
worker share one code path.
"""

from __future__ import annotations

from typing import Any, Dict

from celery.utils.log import get_task_logger

from ..core.config import Settings, settings
from ..database import Database
from ..schemas.reminder import ReminderProcessingResult
from ..services.cache_service import CacheService
from ..services.notification_service import NotificationService
from ..services.reminder_service import ReminderService
from .beat_schedule import PROCESS_DUE_REMINDERS_TASK
from .celery_app import BaseTask, celery_app

logger = get_task_logger(__name__)


def run_reminder_scan(app_settings: Settings = settings) -> ReminderProcessingResult:
    """Open the store and cache for one pass, process due reminders, close both."""
    database = Database.from_settings(app_settings).connect()
    cache = CacheService.from_settings(app_settings)
    try:
        session = database.session()
        try:
            service = ReminderService(
                session, cache, app_settings, notification_service=NotificationService()
            )
            return service.process_reminders()
        finally:
            session.close()
    finally:
        cache.close()
        database.close()


@celery_app.task(name=PROCESS_DUE_REMINDERS_TASK, base=BaseTask, autoretry_for=(), max_retries=0)
def process_due_reminders() -> Dict[str, Any]:
    """
    Deliver every reminder whose time has come.

    Failures of individual reminders are recorded on the reminder and picked
    up by the next scan, so the task itself is never retried.
    """
    result = run_reminder_scan()
    if result.total:
        logger.info(
            "Processed %s reminders: sent=%s failed=%s",
            result.total,
            result.sent,
            result.failed,
        )
    return result.model_dump()
