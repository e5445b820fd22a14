# backend/slotbook/services/availability_service.py
"""
Availability Service

Owns consultant availability windows:
- Weekly windows keyed by weekday, one-off windows keyed by date
- Overlap rejection per (consultant, day key)
- Read-through cached lookups and listings
- Cache invalidation after every committed change

All mutations are administrative; the route layer enforces the role.
"""

from dataclasses import asdict
from datetime import date, time
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import Settings
from ..core.exceptions import (
    AvailabilityOverlapException,
    NotFoundException,
    ValidationException,
)
from ..core.intervals import format_range
from ..core.timezone_utils import today_in
from ..models.availability import Availability, DayKey, describe_day_key
from ..models.consultant import Consultant
from ..repositories import RepositoryFactory
from ..repositories.filters import AvailabilityFilter, PageRequest
from ..schemas.availability import AvailabilityCreate, AvailabilityResponse, AvailabilityUpdate
from .base import BaseService
from .cache_service import CacheKeyBuilder, CacheService

logger = logging.getLogger(__name__)


class AvailabilityService(BaseService):
    """Availability window management for consultants."""

    def __init__(
        self,
        db: Session,
        cache: Optional[CacheService] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(db, cache, settings)
        self.repository = RepositoryFactory.create_availability_repository(db)
        self.consultant_repository = RepositoryFactory.create_consultant_repository(db)

    # Validation helpers

    @staticmethod
    def _resolve_day_key(day_of_week: Optional[int], specific_date: Optional[date]) -> DayKey:
        """A window is keyed by exactly one of weekday or date."""
        if day_of_week is None and specific_date is None:
            raise ValidationException(
                "Either day_of_week or specific_date is required",
                code="AVAILABILITY_DAY_REQUIRED",
            )
        if day_of_week is not None and specific_date is not None:
            raise ValidationException(
                "Provide day_of_week or specific_date, not both",
                code="AVAILABILITY_DAY_AMBIGUOUS",
                details={"day_of_week": day_of_week, "specific_date": specific_date.isoformat()},
            )
        return specific_date if specific_date is not None else day_of_week

    @staticmethod
    def _validate_range(start: time, end: time) -> None:
        if start >= end:
            raise ValidationException(
                "Start time must be before end time",
                code="INVALID_TIME_RANGE",
                details={"start_time": start.isoformat(), "end_time": end.isoformat()},
            )

    def _validate_not_past(self, consultant: Consultant, day_key: DayKey) -> None:
        if isinstance(day_key, date) and day_key < today_in(consultant.timezone, self.now()):
            raise ValidationException(
                "Cannot add availability for a past date",
                code="AVAILABILITY_IN_PAST",
                details={"specific_date": day_key.isoformat()},
            )

    def _require_consultant(self, consultant_id: str) -> Consultant:
        consultant = self.consultant_repository.get_active(consultant_id)
        if consultant is None:
            raise NotFoundException(
                f"Consultant {consultant_id} not found",
                code="CONSULTANT_NOT_FOUND",
                details={"consultant_id": consultant_id},
            )
        return consultant

    def _lock_schedule(self, consultant_id: str) -> None:
        if not self.consultant_repository.lock_schedule(consultant_id):
            raise NotFoundException(
                f"Consultant {consultant_id} not found",
                code="CONSULTANT_NOT_FOUND",
                details={"consultant_id": consultant_id},
            )

    def _require_window(self, availability_id: str) -> Availability:
        window = self.repository.get_by_id(availability_id)
        if window is None:
            raise NotFoundException(
                f"Availability {availability_id} not found",
                code="AVAILABILITY_NOT_FOUND",
                details={"availability_id": availability_id},
            )
        return window

    def _check_overlap(
        self,
        consultant_id: str,
        day_key: DayKey,
        start: time,
        end: time,
        exclude_id: Optional[str] = None,
    ) -> None:
        conflict = self.repository.find_conflict(consultant_id, day_key, start, end, exclude_id)
        if conflict is not None:
            raise AvailabilityOverlapException(
                day_key=describe_day_key(day_key),
                new_range=format_range(start, end),
                conflicting_range=format_range(conflict.start_time, conflict.end_time),
                conflicting_id=conflict.id,
            )

    def _invalidate(self, consultant_id: str, availability_ids: List[str]) -> None:
        if self.cache is not None:
            self.cache.invalidate_availability(consultant_id, availability_ids)

    # Mutations

    @BaseService.measure_operation("create_availability")
    def create_availability(self, data: AvailabilityCreate) -> Availability:
        """
        Create an availability window.

        Raises:
            ValidationException: Bad range, bad day key or a past date
            NotFoundException: Unknown or inactive consultant
            AvailabilityOverlapException: Overlaps a live window on the same day key
        """
        day_key = self._resolve_day_key(data.day_of_week, data.specific_date)
        self._validate_range(data.start_time, data.end_time)
        consultant = self._require_consultant(data.consultant_id)
        self._validate_not_past(consultant, day_key)

        def _work() -> Availability:
            self._lock_schedule(data.consultant_id)
            self._check_overlap(data.consultant_id, day_key, data.start_time, data.end_time)
            return self.repository.create(
                consultant_id=data.consultant_id,
                day_of_week=data.day_of_week,
                specific_date=data.specific_date,
                start_time=data.start_time,
                end_time=data.end_time,
                is_recurring=data.specific_date is None,
                is_blocked=data.is_blocked,
                block_reason=data.block_reason if data.is_blocked else None,
            )

        window = self.run_in_transaction("create_availability", _work)
        self._invalidate(window.consultant_id, [window.id])
        self.log_operation(
            "create_availability",
            availability_id=window.id,
            consultant_id=window.consultant_id,
        )
        return window

    @BaseService.measure_operation("update_availability")
    def update_availability(self, availability_id: str, data: AvailabilityUpdate) -> Availability:
        """Apply a partial update, re-running the overlap check against the other windows."""
        changes = data.model_dump(exclude_unset=True)
        existing = self._require_window(availability_id)
        consultant_id = existing.consultant_id
        consultant = self._require_consultant(consultant_id)

        def _work() -> Availability:
            self._lock_schedule(consultant_id)
            window = self._require_window(availability_id)
            values = self._merge_changes(window, changes)

            day_key = self._resolve_day_key(values["day_of_week"], values["specific_date"])
            self._validate_range(values["start_time"], values["end_time"])
            self._validate_not_past(consultant, day_key)
            self._check_overlap(
                consultant_id,
                day_key,
                values["start_time"],
                values["end_time"],
                exclude_id=availability_id,
            )
            values["is_recurring"] = values["specific_date"] is None
            if not values["is_blocked"]:
                values["block_reason"] = None
            return self.repository.update(availability_id, **values)

        window = self.run_in_transaction("update_availability", _work)
        self._invalidate(consultant_id, [availability_id])
        self.log_operation("update_availability", availability_id=availability_id)
        return window

    @staticmethod
    def _merge_changes(window: Availability, changes: Dict[str, Any]) -> Dict[str, Any]:
        values: Dict[str, Any] = {
            "day_of_week": window.day_of_week,
            "specific_date": window.specific_date,
            "start_time": window.start_time,
            "end_time": window.end_time,
            "is_blocked": window.is_blocked,
            "block_reason": window.block_reason,
        }
        # Switching the key kind clears the other one
        if changes.get("day_of_week") is not None and "specific_date" not in changes:
            values["specific_date"] = None
        if changes.get("specific_date") is not None and "day_of_week" not in changes:
            values["day_of_week"] = None
        values.update(changes)
        return values

    @BaseService.measure_operation("delete_availability")
    def delete_availability(self, availability_id: str) -> None:
        """Tombstone a window. Slots already generated from it are left untouched."""
        existing = self._require_window(availability_id)
        consultant_id = existing.consultant_id

        def _work() -> None:
            self._lock_schedule(consultant_id)
            self._require_window(availability_id)
            self.repository.soft_delete(availability_id)

        self.run_in_transaction("delete_availability", _work)
        self._invalidate(consultant_id, [availability_id])
        self.log_operation("delete_availability", availability_id=availability_id)

    # Reads

    def get_availability(self, availability_id: str) -> AvailabilityResponse:
        def _load() -> Optional[Dict[str, Any]]:
            window = self.repository.get_by_id(availability_id)
            if window is None:
                return None
            return AvailabilityResponse.model_validate(window).model_dump(mode="json")

        payload = self.read_through(
            ["availability", availability_id],
            lambda cache: cache.availability_generation_keys(availability_id),
            _load,
        )
        if payload is None:
            raise NotFoundException(
                f"Availability {availability_id} not found",
                code="AVAILABILITY_NOT_FOUND",
                details={"availability_id": availability_id},
            )
        return AvailabilityResponse.model_validate(payload)

    def list_availability(
        self, criteria: AvailabilityFilter, page: PageRequest
    ) -> Tuple[List[AvailabilityResponse], int]:
        """One page of windows matching ``criteria``, served from the cache when warm."""

        def _load() -> Dict[str, Any]:
            items, total = self.repository.find_by_consultant(criteria, page)
            return {
                "items": [
                    AvailabilityResponse.model_validate(item).model_dump(mode="json") for item in items
                ],
                "total": total,
            }

        fingerprint = CacheKeyBuilder.hash_complex_key({**asdict(criteria), **asdict(page)})
        payload = self.read_through(
            ["availability", "list", criteria.consultant_id or "all", fingerprint],
            lambda cache: cache.availability_listing_generation_keys(criteria.consultant_id),
            _load,
        )
        return (
            [AvailabilityResponse.model_validate(item) for item in payload["items"]],
            payload["total"],
        )
