"""
Timezone utilities for the booking core.

Every consultant works in a single IANA zone. Slot dates and times are stored
as local wall-clock values for that zone; comparisons against "now" go
through the helpers here.
"""

from datetime import date, datetime, time, timezone
from typing import Optional

import pytz


def utc_now() -> datetime:
    """Current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to aware UTC.

    SQLite hands back naive datetimes for timezone-aware columns; those are
    stored as UTC, so they are localized rather than converted.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC)


def get_timezone(tz_name: Optional[str]) -> pytz.BaseTzInfo:
    """Resolve an IANA zone name, falling back to UTC for blanks."""
    return pytz.timezone(tz_name or "UTC")


def is_valid_timezone(tz_name: str) -> bool:
    try:
        pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        return False
    return True


def local_to_utc(local_date: date, local_time: time, tz_name: Optional[str]) -> datetime:
    """
    Convert a consultant-local wall clock value to an aware UTC datetime.

    Args:
        local_date: Calendar date in the consultant zone
        local_time: Time of day in the consultant zone
        tz_name: IANA zone of the consultant

    Returns:
        The same instant in UTC
    """
    tz = get_timezone(tz_name)
    localized = tz.localize(datetime.combine(local_date, local_time))
    return localized.astimezone(pytz.UTC)


def today_in(tz_name: Optional[str], now: Optional[datetime] = None) -> date:
    """Today's date in the given zone."""
    current = ensure_utc(now) or utc_now()
    return current.astimezone(get_timezone(tz_name)).date()
