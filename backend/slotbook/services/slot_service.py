# backend/slotbook/services/slot_service.py
"""
Slot Service for the booking core.

Turns availability into bookable time slots and guards every administrative
slot edit:
- Ad-hoc and bulk slot creation with overlap rejection
- Generation of slots from an availability window
- Time edits, blocking and deletion, refused while a booking holds the slot
- Read-through cached lookups and listings

Occupancy itself (claim / release) belongs to BookingService; this service
only ever calls the guarded variants that require an empty slot.
"""

from dataclasses import asdict
from datetime import date, datetime, time, timedelta
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..core.config import Settings
from ..core.exceptions import (
    BookingWindowExceededException,
    ConflictException,
    NotFoundException,
    SlotOccupiedException,
    SlotOverlapException,
    ValidationException,
)
from ..core.intervals import find_overlapping_pair, format_range, intervals_overlap, to_minutes
from ..core.timezone_utils import local_to_utc, today_in
from ..models.availability import Availability
from ..models.consultant import Consultant
from ..models.time_slot import TimeSlot
from ..repositories import RepositoryFactory
from ..repositories.filters import PageRequest, SlotFilter
from ..schemas.time_slot import (
    BulkSlotCreate,
    SlotCreate,
    SlotGenerateRequest,
    SlotGenerationResult,
    SlotUpdate,
    TimeSlotResponse,
)
from .base import BaseService
from .cache_service import CacheKeyBuilder, CacheService

logger = logging.getLogger(__name__)


def duration_minutes(start: time, end: time) -> int:
    return to_minutes(end) - to_minutes(start)


def validate_time_range(start: time, end: time) -> None:
    if start >= end:
        raise ValidationException(
            "Start time must be before end time",
            code="INVALID_TIME_RANGE",
            details={"start_time": start.isoformat(), "end_time": end.isoformat()},
        )


def validate_bookable_time(
    slot_date: date,
    start: time,
    tz_name: Optional[str],
    now: datetime,
    window_days: int,
) -> None:
    """
    Reject slot times that already started or lie beyond the booking window.

    Both checks use the consultant's zone.

    Raises:
        ValidationException: The start instant is not in the future
        BookingWindowExceededException: The date is more than ``window_days`` ahead
    """
    if local_to_utc(slot_date, start, tz_name) <= now:
        raise ValidationException(
            "Cannot use a time slot in the past",
            code="SLOT_IN_PAST",
            details={"date": slot_date.isoformat(), "start_time": start.isoformat()},
        )
    last_day = today_in(tz_name, now) + timedelta(days=window_days)
    if slot_date > last_day:
        raise BookingWindowExceededException(slot_date.isoformat(), window_days)


class SlotService(BaseService):
    """Creation, generation and administrative edits of time slots."""

    def __init__(
        self,
        db: Session,
        cache: Optional[CacheService] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(db, cache, settings)
        self.repository = RepositoryFactory.create_time_slot_repository(db)
        self.availability_repository = RepositoryFactory.create_availability_repository(db)
        self.consultant_repository = RepositoryFactory.create_consultant_repository(db)

    # Lookups

    def _require_consultant(self, consultant_id: str) -> Consultant:
        consultant = self.consultant_repository.get_active(consultant_id)
        if consultant is None:
            raise NotFoundException(
                f"Consultant {consultant_id} not found",
                code="CONSULTANT_NOT_FOUND",
                details={"consultant_id": consultant_id},
            )
        return consultant

    def _require_slot(self, slot_id: str) -> TimeSlot:
        slot = self.repository.get_by_id(slot_id)
        if slot is None:
            raise NotFoundException(
                f"Time slot {slot_id} not found",
                code="SLOT_NOT_FOUND",
                details={"slot_id": slot_id},
            )
        return slot

    def _require_availability(self, availability_id: str, consultant_id: Optional[str]) -> Availability:
        window = self.availability_repository.get_by_id(availability_id)
        if window is None:
            raise NotFoundException(
                f"Availability {availability_id} not found",
                code="AVAILABILITY_NOT_FOUND",
                details={"availability_id": availability_id},
            )
        if consultant_id is not None and window.consultant_id != consultant_id:
            raise ValidationException(
                "Availability belongs to a different consultant",
                code="AVAILABILITY_CONSULTANT_MISMATCH",
                details={"availability_id": availability_id, "consultant_id": consultant_id},
            )
        return window

    def _lock_schedule(self, consultant_id: str) -> None:
        if not self.consultant_repository.lock_schedule(consultant_id):
            raise NotFoundException(
                f"Consultant {consultant_id} not found",
                code="CONSULTANT_NOT_FOUND",
                details={"consultant_id": consultant_id},
            )

    def _check_overlap(
        self,
        consultant_id: str,
        slot_date: date,
        start: time,
        end: time,
        exclude_id: Optional[str] = None,
    ) -> None:
        conflict = self.repository.find_overlapping(consultant_id, slot_date, start, end, exclude_id)
        if conflict is not None:
            raise SlotOverlapException(
                slot_date=slot_date.isoformat(),
                new_range=format_range(start, end),
                conflicting_range=format_range(conflict.start_time, conflict.end_time),
                conflicting_id=conflict.id,
            )

    def _check_bookable(self, consultant: Consultant, slot_date: date, start: time) -> None:
        validate_bookable_time(
            slot_date,
            start,
            consultant.timezone,
            self.now(),
            self.settings.booking_window_days,
        )

    def _invalidate(self, consultant_id: str, slot_ids: Sequence[str]) -> None:
        if self.cache is not None:
            self.cache.invalidate_slots(consultant_id, slot_ids)

    # Creation

    @BaseService.measure_operation("create_slot")
    def create_slot(self, data: SlotCreate) -> TimeSlot:
        """
        Create a single slot.

        Raises:
            ValidationException: Bad range, past start or beyond the booking window
            NotFoundException: Unknown consultant or availability
            SlotOverlapException: Overlaps a live slot of the same consultant
        """
        validate_time_range(data.start_time, data.end_time)
        consultant = self._require_consultant(data.consultant_id)
        self._check_bookable(consultant, data.date, data.start_time)
        if data.availability_id:
            self._require_availability(data.availability_id, data.consultant_id)

        def _work() -> TimeSlot:
            self._lock_schedule(data.consultant_id)
            self._check_overlap(data.consultant_id, data.date, data.start_time, data.end_time)
            return self.repository.create(
                consultant_id=data.consultant_id,
                availability_id=data.availability_id,
                showroom_id=data.showroom_id,
                date=data.date,
                start_time=data.start_time,
                end_time=data.end_time,
                duration=duration_minutes(data.start_time, data.end_time),
                is_available=True,
                is_blocked=False,
                max_bookings=1,
                current_bookings=0,
            )

        slot = self.run_in_transaction("create_slot", _work)
        self._invalidate(slot.consultant_id, [slot.id])
        self.log_operation("create_slot", slot_id=slot.id, consultant_id=slot.consultant_id)
        return slot

    @BaseService.measure_operation("bulk_create_slots")
    def bulk_create_slots(self, data: BulkSlotCreate) -> List[TimeSlot]:
        """
        Create a batch of slots for one consultant, all or nothing.

        Every slot gets the single-slot checks, and every pair inside the batch
        is compared before anything is written.
        """
        for item in data.slots:
            validate_time_range(item.start_time, item.end_time)

        instants = [
            (datetime.combine(item.date, item.start_time), datetime.combine(item.date, item.end_time))
            for item in data.slots
        ]
        pair = find_overlapping_pair(instants)
        if pair is not None:
            first, second = data.slots[pair[0]], data.slots[pair[1]]
            raise SlotOverlapException(
                slot_date=second.date.isoformat(),
                new_range=format_range(second.start_time, second.end_time),
                conflicting_range=format_range(first.start_time, first.end_time),
            )

        consultant = self._require_consultant(data.consultant_id)
        for item in data.slots:
            self._check_bookable(consultant, item.date, item.start_time)
        for availability_id in {item.availability_id for item in data.slots if item.availability_id}:
            self._require_availability(availability_id, data.consultant_id)

        def _work() -> List[TimeSlot]:
            self._lock_schedule(data.consultant_id)
            for item in data.slots:
                self._check_overlap(data.consultant_id, item.date, item.start_time, item.end_time)
            return self.repository.bulk_create(
                [
                    {
                        "consultant_id": data.consultant_id,
                        "availability_id": item.availability_id,
                        "showroom_id": item.showroom_id,
                        "date": item.date,
                        "start_time": item.start_time,
                        "end_time": item.end_time,
                        "duration": duration_minutes(item.start_time, item.end_time),
                        "is_available": True,
                        "is_blocked": False,
                        "max_bookings": 1,
                        "current_bookings": 0,
                    }
                    for item in data.slots
                ]
            )

        slots = self.run_in_transaction("bulk_create_slots", _work)
        self._invalidate(data.consultant_id, [slot.id for slot in slots])
        self.log_operation("bulk_create_slots", consultant_id=data.consultant_id, count=len(slots))
        return slots

    @BaseService.measure_operation("generate_slots")
    def generate_from_availability(self, data: SlotGenerateRequest) -> SlotGenerationResult:
        """
        Slice an availability window into slots for every matching date in range.

        Partial tail slices, slices that already started, slices beyond the
        booking window and slices overlapping existing slots are skipped. A
        blocked window generates nothing.
        """
        if data.date_from > data.date_to:
            raise ValidationException(
                "date_from must not be after date_to",
                code="INVALID_DATE_RANGE",
                details={"date_from": data.date_from.isoformat(), "date_to": data.date_to.isoformat()},
            )
        span_days = (data.date_to - data.date_from).days + 1
        if span_days > self.settings.max_generation_days:
            raise ValidationException(
                f"Cannot generate slots for more than {self.settings.max_generation_days} days at once",
                code="GENERATION_RANGE_TOO_LARGE",
                details={"days": span_days, "max_days": self.settings.max_generation_days},
            )

        window = self._require_availability(data.availability_id, None)
        consultant = self._require_consultant(window.consultant_id)
        duration = data.slot_duration or self.settings.default_slot_duration_minutes

        if window.is_blocked:
            self.logger.info(
                "Availability window is blocked, nothing generated",
                extra={"availability_id": window.id},
            )
            return SlotGenerationResult(created=[], skipped=0)

        dates = [
            data.date_from + timedelta(days=offset)
            for offset in range(span_days)
            if window.applies_to(data.date_from + timedelta(days=offset))
        ]
        slices = [
            (slot_date, start, end)
            for slot_date in dates
            for start, end in self._slice_window(window.start_time, window.end_time, duration)
        ]

        def _work() -> Tuple[List[TimeSlot], int]:
            self._lock_schedule(consultant.id)
            taken: Dict[date, List[Tuple[time, time]]] = {}
            for existing in self.repository.find_for_dates(consultant.id, dates):
                taken.setdefault(existing.date, []).append((existing.start_time, existing.end_time))

            rows: List[Dict[str, Any]] = []
            skipped = 0
            for slot_date, start, end in slices:
                if not self._is_generatable(consultant, slot_date, start):
                    skipped += 1
                    continue
                if any(intervals_overlap(start, end, s, e) for s, e in taken.get(slot_date, [])):
                    skipped += 1
                    continue
                taken.setdefault(slot_date, []).append((start, end))
                rows.append(
                    {
                        "consultant_id": consultant.id,
                        "availability_id": window.id,
                        "date": slot_date,
                        "start_time": start,
                        "end_time": end,
                        "duration": duration,
                        "is_available": True,
                        "is_blocked": False,
                        "max_bookings": 1,
                        "current_bookings": 0,
                    }
                )
            created = self.repository.bulk_create(rows) if rows else []
            return created, skipped

        created, skipped = self.run_in_transaction("generate_slots", _work)
        if created:
            self._invalidate(consultant.id, [slot.id for slot in created])
        self.log_operation(
            "generate_slots",
            availability_id=window.id,
            created=len(created),
            skipped=skipped,
        )
        return SlotGenerationResult(
            created=[TimeSlotResponse.model_validate(slot) for slot in created],
            skipped=skipped,
        )

    @staticmethod
    def _slice_window(start: time, end: time, duration: int) -> List[Tuple[time, time]]:
        """Consecutive [start, start + duration) pieces that fit entirely inside the window."""
        pieces = []
        cursor = to_minutes(start)
        limit = to_minutes(end)
        while cursor + duration <= limit:
            piece_end = cursor + duration
            pieces.append((time(cursor // 60, cursor % 60), time(piece_end // 60, piece_end % 60)))
            cursor = piece_end
        return pieces

    def _is_generatable(self, consultant: Consultant, slot_date: date, start: time) -> bool:
        try:
            self._check_bookable(consultant, slot_date, start)
        except ValidationException:
            return False
        return True

    # Administrative edits

    @BaseService.measure_operation("update_slot")
    def update_slot(self, slot_id: str, data: SlotUpdate) -> TimeSlot:
        """
        Edit a slot's times or flags.

        Changes that would disturb a booking holding the slot (moving it,
        blocking it, marking it unavailable) are refused with
        SlotOccupiedException. Unblocking makes the slot claimable again only
        when it is empty.
        """
        changes = data.model_dump(exclude_unset=True)
        slot = self._require_slot(slot_id)
        consultant_id = slot.consultant_id

        time_fields = {"date", "start_time", "end_time"}
        new_times: Optional[Tuple[date, time, time]] = None
        if time_fields & changes.keys():
            new_date = changes.get("date") or slot.date
            new_start = changes.get("start_time") or slot.start_time
            new_end = changes.get("end_time") or slot.end_time
            validate_time_range(new_start, new_end)
            consultant = self._require_consultant(consultant_id)
            self._check_bookable(consultant, new_date, new_start)
            new_times = (new_date, new_start, new_end)

        block = changes.get("is_blocked")
        if block is None and "block_reason" in changes and slot.is_blocked:
            block = True
        available = changes.get("is_available")

        def _work() -> TimeSlot:
            self._lock_schedule(consultant_id)
            self._require_slot(slot_id)

            if new_times is not None:
                new_date, new_start, new_end = new_times
                self._check_overlap(consultant_id, new_date, new_start, new_end, exclude_id=slot_id)
                moved = self.repository.reschedule_times_if_unoccupied(
                    slot_id, new_date, new_start, new_end, duration_minutes(new_start, new_end)
                )
                if not moved:
                    raise SlotOccupiedException(slot_id, "reschedule")

            if block is True:
                if not self.repository.block_if_unoccupied(slot_id, changes.get("block_reason")):
                    raise SlotOccupiedException(slot_id, "block")
            elif block is False:
                self.repository.unblock(slot_id)

            if available is False:
                if not self.repository.set_unavailable_if_unoccupied(slot_id):
                    raise SlotOccupiedException(slot_id, "mark unavailable")
            elif available is True and not self.repository.set_available_if_free(slot_id):
                current = self._require_slot(slot_id)
                if current.is_occupied:
                    raise SlotOccupiedException(slot_id, "mark available")
                raise ConflictException(
                    "A blocked time slot cannot be made available",
                    code="SLOT_BLOCKED",
                    details={"slot_id": slot_id},
                )

            return self._require_slot(slot_id)

        updated = self.run_in_transaction("update_slot", _work)
        self._invalidate(consultant_id, [slot_id])
        self.log_operation("update_slot", slot_id=slot_id, fields=sorted(changes))
        return updated

    @BaseService.measure_operation("delete_slot")
    def delete_slot(self, slot_id: str) -> None:
        """Soft delete an empty slot; a slot holding a booking cannot be deleted."""
        slot = self._require_slot(slot_id)
        consultant_id = slot.consultant_id

        def _work() -> None:
            if not self.repository.soft_delete_if_unoccupied(slot_id, self.now()):
                self._require_slot(slot_id)
                raise SlotOccupiedException(slot_id, "delete")

        self.run_in_transaction("delete_slot", _work)
        self._invalidate(consultant_id, [slot_id])
        self.log_operation("delete_slot", slot_id=slot_id)

    # Reads

    def get_slot(self, slot_id: str) -> TimeSlotResponse:
        def _load() -> Optional[Dict[str, Any]]:
            slot = self.repository.get_by_id(slot_id)
            if slot is None:
                return None
            return TimeSlotResponse.model_validate(slot).model_dump(mode="json")

        payload = self.read_through(
            ["slot", slot_id],
            lambda cache: cache.slot_generation_keys(slot_id),
            _load,
        )
        if payload is None:
            raise NotFoundException(
                f"Time slot {slot_id} not found",
                code="SLOT_NOT_FOUND",
                details={"slot_id": slot_id},
            )
        return TimeSlotResponse.model_validate(payload)

    def list_slots(self, criteria: SlotFilter, page: PageRequest) -> Tuple[List[TimeSlotResponse], int]:
        def _load() -> Dict[str, Any]:
            items, total = self.repository.find(criteria, page)
            return {
                "items": [TimeSlotResponse.model_validate(item).model_dump(mode="json") for item in items],
                "total": total,
            }

        fingerprint = CacheKeyBuilder.hash_complex_key({**asdict(criteria), **asdict(page)})
        payload = self.read_through(
            ["slot", "list", criteria.consultant_id or "all", fingerprint],
            lambda cache: cache.slot_listing_generation_keys(criteria.consultant_id),
            _load,
        )
        return (
            [TimeSlotResponse.model_validate(item) for item in payload["items"]],
            payload["total"],
        )
