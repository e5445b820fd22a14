"""Consultant model: the person whose time is being booked."""

from sqlalchemy import Boolean, Column, String
import ulid

from ..core.constants import DEFAULT_TIMEZONE
from ..database import Base
from .base import SoftDeleteMixin, TimestampMixin


class Consultant(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "consultants"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    phone = Column(String(50), nullable=True)
    timezone = Column(String(64), nullable=False, default=DEFAULT_TIMEZONE)
    is_active = Column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Consultant {self.id}: {self.name} tz={self.timezone}>"
