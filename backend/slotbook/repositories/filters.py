# backend/slotbook/repositories/filters.py
"""
Listing criteria.

Every optional query parameter a listing endpoint accepts becomes a field on a
frozen dataclass here. Builders are plain functions from the query DTO so the
repositories never assemble ``where`` clauses from arbitrary dictionaries.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ..schemas.availability import AvailabilityListQuery
    from ..schemas.booking import BookingListQuery, RescheduleListQuery
    from ..schemas.reminder import ReminderListQuery
    from ..schemas.time_slot import SlotListQuery


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    limit: int = 10


@dataclass(frozen=True)
class AvailabilityFilter:
    consultant_id: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    is_recurring: Optional[bool] = None
    include_blocked: bool = True


@dataclass(frozen=True)
class SlotFilter:
    consultant_id: Optional[str] = None
    availability_id: Optional[str] = None
    showroom_id: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    available_only: bool = False


@dataclass(frozen=True)
class BookingFilter:
    customer_id: Optional[str] = None
    consultant_id: Optional[str] = None
    slot_id: Optional[str] = None
    status: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None


@dataclass(frozen=True)
class RescheduleFilter:
    booking_id: Optional[str] = None
    customer_id: Optional[str] = None


@dataclass(frozen=True)
class ReminderFilter:
    booking_id: Optional[str] = None
    customer_id: Optional[str] = None
    channel: Optional[str] = None
    status: Optional[str] = None


def page_request(query) -> PageRequest:
    return PageRequest(page=query.page, limit=query.limit)


def availability_filter(query: "AvailabilityListQuery") -> AvailabilityFilter:
    return AvailabilityFilter(
        consultant_id=query.consultant_id,
        date_from=query.date_from,
        date_to=query.date_to,
        is_recurring=query.is_recurring,
        include_blocked=query.include_blocked,
    )


def slot_filter(query: "SlotListQuery") -> SlotFilter:
    return SlotFilter(
        consultant_id=query.consultant_id,
        availability_id=query.availability_id,
        showroom_id=query.showroom_id,
        date_from=query.date_from,
        date_to=query.date_to,
        available_only=query.available_only,
    )


def booking_filter(query: "BookingListQuery", *, customer_id: Optional[str] = None) -> BookingFilter:
    """``customer_id`` overrides the query value when the caller may only see their own."""
    return BookingFilter(
        customer_id=customer_id or query.customer_id,
        consultant_id=query.consultant_id,
        slot_id=query.slot_id,
        status=query.status.value if query.status else None,
        date_from=query.date_from,
        date_to=query.date_to,
    )


def reschedule_filter(
    query: "RescheduleListQuery", *, customer_id: Optional[str] = None
) -> RescheduleFilter:
    return RescheduleFilter(booking_id=query.booking_id, customer_id=customer_id)


def reminder_filter(query: "ReminderListQuery", *, customer_id: Optional[str] = None) -> ReminderFilter:
    return ReminderFilter(
        booking_id=query.booking_id,
        customer_id=customer_id,
        channel=query.channel.value if query.channel else None,
        status=query.status.value if query.status else None,
    )
