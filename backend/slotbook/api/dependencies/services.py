# backend/slotbook/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected. The cache and settings
are process-wide and live on ``app.state``; sessions are per request.
"""

import logging

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ...core.config import Settings
from ...services.availability_service import AvailabilityService
from ...services.booking_service import BookingService
from ...services.cache_service import CacheService
from ...services.consultant_service import ConsultantService
from ...services.notification_service import NotificationService
from ...services.reminder_service import ReminderService
from ...services.slot_service import SlotService
from .database import get_db

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_cache_service(request: Request) -> CacheService:
    """Get the process-wide cache service for dependency injection."""
    return request.app.state.cache


def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notification_service


def get_consultant_service(
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
    settings: Settings = Depends(get_settings),
) -> ConsultantService:
    return ConsultantService(db, cache, settings)


def get_availability_service(
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
    settings: Settings = Depends(get_settings),
) -> AvailabilityService:
    """Get AvailabilityService instance with proper dependencies."""
    return AvailabilityService(db, cache, settings)


def get_slot_service(
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
    settings: Settings = Depends(get_settings),
) -> SlotService:
    return SlotService(db, cache, settings)


def get_reminder_service(
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
    settings: Settings = Depends(get_settings),
    notification_service: NotificationService = Depends(get_notification_service),
) -> ReminderService:
    return ReminderService(db, cache, settings, notification_service=notification_service)


def get_booking_service(
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
    settings: Settings = Depends(get_settings),
    notification_service: NotificationService = Depends(get_notification_service),
) -> BookingService:
    """
    Get booking service instance.

    The reminder service shares the request session so default reminders are
    written in the booking transaction.
    """
    reminder_service = ReminderService(db, cache, settings, notification_service=notification_service)
    return BookingService(
        db,
        cache,
        settings,
        notification_service=notification_service,
        reminder_service=reminder_service,
    )
