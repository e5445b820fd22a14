"""
Concurrent booking of one slot.

Every worker gets its own session and service, releases at the same moment
through a barrier and tries to book, or move a booking onto, the same slot.
The conditional claim must let exactly one of them through.
"""

from concurrent.futures import ThreadPoolExecutor
import threading
from datetime import time

import pytest

from slotbook.core.enums import RoleName
from slotbook.core.exceptions import ConflictException, SlotUnavailableException
from slotbook.models.booking import Booking
from slotbook.models.time_slot import TimeSlot
from slotbook.principal import CallerPrincipal
from slotbook.schemas.booking import BookingCreate
from slotbook.services.booking_service import BookingService
from slotbook.services.cache_service import CacheService

WORKERS = 8


def _book(database, settings, notification_service, barrier, slot_id, n):
    session = database.session()
    try:
        service = BookingService(
            session,
            CacheService(),
            settings,
            notification_service=notification_service,
        )
        caller = CallerPrincipal(user_id=f"customer-{n}", role=RoleName.CUSTOMER)
        request = BookingCreate(
            slot_id=slot_id,
            customer_name=f"Customer {n}",
            customer_email=f"customer{n}@example.com",
        )
        barrier.wait(timeout=10)
        try:
            return service.create_booking(request, caller).id
        except SlotUnavailableException:
            return None
    finally:
        session.close()


@pytest.mark.parametrize("round_", range(3))
def test_only_one_booking_wins(round_, database, db, test_settings, notification_service, consultant, upcoming, make_slot):
    slot = make_slot(consultant, upcoming(), time(10), time(11))
    barrier = threading.Barrier(WORKERS)

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        futures = [
            pool.submit(_book, database, test_settings, notification_service, barrier, slot.id, n)
            for n in range(WORKERS)
        ]
        outcomes = [future.result(timeout=60) for future in futures]

    winners = [booking_id for booking_id in outcomes if booking_id is not None]
    assert len(winners) == 1

    db.expire_all()
    stored = db.get(TimeSlot, slot.id)
    assert stored.current_bookings == 1
    assert stored.is_available is False
    assert db.query(Booking).filter(Booking.slot_id == slot.id).count() == 1


def _customer(n):
    return CallerPrincipal(user_id=f"customer-{n}", role=RoleName.CUSTOMER)


def _reschedule(database, settings, notification_service, barrier, booking_id, target_slot_id, n):
    session = database.session()
    try:
        service = BookingService(
            session,
            CacheService(),
            settings,
            notification_service=notification_service,
        )
        barrier.wait(timeout=10)
        try:
            return service.reschedule_booking(booking_id, target_slot_id, "Earlier works", _customer(n)).id
        except (SlotUnavailableException, ConflictException):
            return None
    finally:
        session.close()


RESCHEDULERS = 6


@pytest.mark.parametrize("round_", range(3))
def test_only_one_reschedule_onto_a_slot_wins(
    round_, database, db, test_settings, notification_service, consultant, upcoming, make_slot
):
    day = upcoming()
    setup = BookingService(db, CacheService(), test_settings, notification_service=notification_service)
    bookings = []
    for n in range(RESCHEDULERS):
        slot = make_slot(consultant, day, time(8 + n), time(9 + n))
        booking = setup.create_booking(
            BookingCreate(
                slot_id=slot.id,
                customer_name=f"Customer {n}",
                customer_email=f"customer{n}@example.com",
            ),
            _customer(n),
        )
        bookings.append((booking.id, slot.id))
    target = make_slot(consultant, day, time(16), time(17))
    barrier = threading.Barrier(RESCHEDULERS)

    with ThreadPoolExecutor(max_workers=RESCHEDULERS) as pool:
        futures = [
            pool.submit(
                _reschedule, database, test_settings, notification_service, barrier, booking_id, target.id, n
            )
            for n, (booking_id, _) in enumerate(bookings)
        ]
        outcomes = [future.result(timeout=60) for future in futures]

    winners = [booking_id for booking_id in outcomes if booking_id is not None]
    assert len(winners) == 1

    db.expire_all()
    stored = db.get(TimeSlot, target.id)
    assert stored.current_bookings == 1
    assert stored.is_available is False
    assert db.query(Booking).filter(Booking.slot_id == target.id).count() == 1

    # Losers keep their original slot
    for booking_id, original_slot_id in bookings:
        if booking_id in winners:
            continue
        assert db.get(Booking, booking_id).slot_id == original_slot_id
        assert db.get(TimeSlot, original_slot_id).current_bookings == 1
