# backend/tests/conftest.py
"""
Pytest configuration for the booking core.

Every test gets its own file-backed SQLite database under ``tmp_path`` and
the in-process cache, so nothing here needs Redis or Postgres. File-backed
(rather than ``:memory:``) databases let the concurrency tests give every
thread its own connection.
"""

import os

# Set testing mode BEFORE any slotbook imports
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("CI", "1")

from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Dict, Iterator, Optional
from unittest.mock import MagicMock

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.orm import Session

from slotbook.core.config import Settings
from slotbook.core.constants import CALLER_ID_HEADER, CALLER_ROLE_HEADER
from slotbook.core.enums import RoleName
from slotbook.database import Database
from slotbook.main import create_app
from slotbook.models.availability import Availability
from slotbook.models.consultant import Consultant
from slotbook.models.time_slot import TimeSlot
from slotbook.principal import CallerPrincipal
from slotbook.services.cache_service import CacheService
from slotbook.services.notification_service import NotificationService

ADMIN_ID = "admin-1"
CUSTOMER_ID = "customer-1"
OTHER_CUSTOMER_ID = "customer-2"


# ============================================================================
# Settings, store and cache
# ============================================================================


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        environment="test",
        database_url=f"sqlite:///{tmp_path / 'slotbook_test.db'}",
        redis_url=None,
        booking_window_days=90,
        max_generation_days=92,
        default_slot_duration_minutes=60,
        default_reminder_offsets_hours=[24, 1],
        reminder_max_retries=3,
        transaction_max_attempts=8,
        transaction_retry_base_delay=0.01,
    )


@pytest.fixture
def database(test_settings: Settings) -> Iterator[Database]:
    db = Database.from_settings(test_settings).connect()
    db.create_all()
    yield db
    db.close()


@pytest.fixture
def db(database: Database) -> Iterator[Session]:
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def cache() -> Iterator[CacheService]:
    service = CacheService(default_ttl=300)
    yield service
    service.close()


@pytest.fixture
def sender() -> MagicMock:
    """Notification sender double; ``send`` succeeds unless a test says otherwise."""
    return MagicMock()


@pytest.fixture
def notification_service(sender: MagicMock) -> NotificationService:
    return NotificationService(sender=sender)


# ============================================================================
# Callers
# ============================================================================


@pytest.fixture
def admin() -> CallerPrincipal:
    return CallerPrincipal(user_id=ADMIN_ID, role=RoleName.ADMIN)


@pytest.fixture
def customer() -> CallerPrincipal:
    return CallerPrincipal(user_id=CUSTOMER_ID, role=RoleName.CUSTOMER)


@pytest.fixture
def other_customer() -> CallerPrincipal:
    return CallerPrincipal(user_id=OTHER_CUSTOMER_ID, role=RoleName.CUSTOMER)


# ============================================================================
# Dates and data builders
# ============================================================================


def _upcoming(weekday: Optional[int] = None, min_days_ahead: int = 2) -> date:
    """A date at least ``min_days_ahead`` days out, optionally on a given weekday (Monday = 0)."""
    candidate = datetime.now(timezone.utc).date() + timedelta(days=min_days_ahead)
    if weekday is None:
        return candidate
    while candidate.weekday() != weekday:
        candidate += timedelta(days=1)
    return candidate


@pytest.fixture
def upcoming() -> Callable[..., date]:
    return _upcoming


@pytest.fixture
def make_consultant(db: Session) -> Callable[..., Consultant]:
    counter = {"n": 0}

    def _make(tz: str = "UTC", is_active: bool = True, name: Optional[str] = None) -> Consultant:
        counter["n"] += 1
        consultant = Consultant(
            name=name or f"Consultant {counter['n']}",
            email=f"consultant{counter['n']}@example.com",
            timezone=tz,
            is_active=is_active,
        )
        db.add(consultant)
        db.commit()
        return consultant

    return _make


@pytest.fixture
def consultant(make_consultant) -> Consultant:
    return make_consultant()


@pytest.fixture
def make_slot(db: Session) -> Callable[..., TimeSlot]:
    def _make(
        consultant: Consultant,
        slot_date: date,
        start: time = time(10, 0),
        end: time = time(11, 0),
        **overrides,
    ) -> TimeSlot:
        values = {
            "consultant_id": consultant.id,
            "date": slot_date,
            "start_time": start,
            "end_time": end,
            "duration": (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute),
            "is_available": True,
            "is_blocked": False,
            "max_bookings": 1,
            "current_bookings": 0,
        }
        values.update(overrides)
        slot = TimeSlot(**values)
        db.add(slot)
        db.commit()
        return slot

    return _make


@pytest.fixture
def make_availability(db: Session) -> Callable[..., Availability]:
    def _make(
        consultant: Consultant,
        day_of_week: Optional[int] = None,
        specific_date: Optional[date] = None,
        start: time = time(9, 0),
        end: time = time(12, 0),
        is_blocked: bool = False,
    ) -> Availability:
        window = Availability(
            consultant_id=consultant.id,
            day_of_week=day_of_week,
            specific_date=specific_date,
            start_time=start,
            end_time=end,
            is_recurring=specific_date is None,
            is_blocked=is_blocked,
        )
        db.add(window)
        db.commit()
        return window

    return _make


# ============================================================================
# HTTP
# ============================================================================


def _identity(user_id: str, role: RoleName) -> Dict[str, str]:
    return {CALLER_ID_HEADER: user_id, CALLER_ROLE_HEADER: role.value}


@pytest.fixture
def admin_headers() -> Dict[str, str]:
    return _identity(ADMIN_ID, RoleName.ADMIN)


@pytest.fixture
def customer_headers() -> Dict[str, str]:
    return _identity(CUSTOMER_ID, RoleName.CUSTOMER)


@pytest.fixture
def other_customer_headers() -> Dict[str, str]:
    return _identity(OTHER_CUSTOMER_ID, RoleName.CUSTOMER)


@pytest.fixture
def client(test_settings: Settings) -> Iterator[TestClient]:
    """TestClient running the full lifespan against the per-test database."""
    with TestClient(create_app(test_settings)) as test_client:
        yield test_client
