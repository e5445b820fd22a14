# backend/slotbook/core/intervals.py
"""
Half-open interval helpers.

A single predicate covers every overlap rule in the booking core: two ranges
[s1, e1) and [s2, e2) intersect iff s1 < e2 and s2 < e1. Ranges that merely
touch (e1 == s2) do not overlap, so back-to-back slots are allowed.
"""

from datetime import time
from typing import Optional, Sequence, Tuple, TypeVar, Union

T = TypeVar("T")

TimeLike = Union[str, time]


def intervals_overlap(start1: T, end1: T, start2: T, end2: T) -> bool:
    """Return True when [start1, end1) and [start2, end2) share any instant."""
    return start1 < end2 and start2 < end1  # type: ignore[operator]


def parse_time(value: TimeLike) -> time:
    """
    Parse "HH:MM" or "HH:MM:SS" into a time.

    Raises:
        ValueError: If the string is not a valid time of day
    """
    if isinstance(value, time):
        return value
    parts = value.strip().split(":")
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        raise ValueError(f"Invalid time of day: {value!r}")
    hour, minute = int(parts[0]), int(parts[1])
    second = int(parts[2]) if len(parts) == 3 else 0
    return time(hour, minute, second)


def to_minutes(value: TimeLike) -> int:
    """Minutes since midnight for a time or "HH:MM" string."""
    parsed = parse_time(value)
    return parsed.hour * 60 + parsed.minute


def format_range(start: time, end: time) -> str:
    return f"{start.strftime('%H:%M')}-{end.strftime('%H:%M')}"


def find_overlapping_pair(
    ranges: Sequence[Tuple[T, T]],
) -> Optional[Tuple[int, int]]:
    """
    Find the first pair of ranges that overlap each other.

    Args:
        ranges: Sequence of (start, end) pairs

    Returns:
        Indices (i, j) with i < j of the first overlapping pair, or None
    """
    for i in range(len(ranges)):
        s1, e1 = ranges[i]
        for j in range(i + 1, len(ranges)):
            s2, e2 = ranges[j]
            if intervals_overlap(s1, e1, s2, e2):
                return i, j
    return None
