# backend/slotbook/models/base.py
"""
Shared column mixins.

Soft deletion is exposed as a lifecycle value (``Active`` or ``Deleted``)
rather than a nullable timestamp that every query checks by hand. The only
place the "exclude deleted rows" predicate is spelled out is
``SoftDeleteMixin.not_deleted()``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Union

from sqlalchemy import Column, DateTime
from sqlalchemy.sql import func

from ..core.timezone_utils import ensure_utc


@dataclass(frozen=True)
class Active:
    """Row is live."""


@dataclass(frozen=True)
class Deleted:
    """Row is tombstoned."""

    at: datetime


Lifecycle = Union[Active, Deleted]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)


class SoftDeleteMixin:
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)

    @classmethod
    def not_deleted(cls) -> Any:
        """SQL predicate selecting live rows."""
        return cls.deleted_at.is_(None)

    @property
    def lifecycle(self) -> Lifecycle:
        deleted_at: Optional[datetime] = ensure_utc(self.deleted_at)
        if deleted_at is None:
            return Active()
        return Deleted(at=deleted_at)

    @property
    def is_deleted(self) -> bool:
        return isinstance(self.lifecycle, Deleted)

    def mark_deleted(self, at: Optional[datetime] = None) -> None:
        self.deleted_at = at or datetime.now(timezone.utc)
