"""Consultant request/response schemas."""

from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from ..core.constants import DEFAULT_TIMEZONE, MAX_NAME_LENGTH
from ..core.timezone_utils import is_valid_timezone
from .base import PageParams, StandardizedModel, StrictRequestModel


def _check_timezone(value: Optional[str]) -> Optional[str]:
    if value is not None and not is_valid_timezone(value):
        raise ValueError(f"Unknown time zone: {value}")
    return value


class ConsultantCreate(StrictRequestModel):
    name: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=50)
    timezone: str = Field(default=DEFAULT_TIMEZONE, description="IANA time zone")

    _validate_timezone = field_validator("timezone")(_check_timezone)


class ConsultantUpdate(StrictRequestModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=MAX_NAME_LENGTH)
    phone: Optional[str] = Field(default=None, max_length=50)
    timezone: Optional[str] = None
    is_active: Optional[bool] = None

    _validate_timezone = field_validator("timezone")(_check_timezone)


class ConsultantListQuery(PageParams):
    include_inactive: bool = False


class ConsultantResponse(StandardizedModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    timezone: str
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None
