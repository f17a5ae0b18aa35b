"""Utility functions for time-of-day handling.

Automation times are wall-clock times without a date, evaluated in the
process's local timezone. They are accepted as ``datetime.time`` objects or
as ``"HH:MM"`` / ``"HH:MM:SS"`` strings.
"""

from __future__ import annotations

import datetime


def parse_time_of_day(value: str) -> datetime.time:
    """Parse ``HH:MM`` or ``HH:MM:SS`` into a ``datetime.time``.

    Raises:
        ValueError: If the string is malformed or out of range.
    """
    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError("time must be in HH:MM or HH:MM:SS format")
    try:
        h, m = int(parts[0]), int(parts[1])
        s = int(parts[2]) if len(parts) == 3 else 0
    except ValueError:
        raise ValueError("time components must be integers") from None
    if not (0 <= h <= 23):
        raise ValueError("hour must be between 0 and 23")
    if not (0 <= m <= 59):
        raise ValueError("minute must be between 0 and 59")
    if not (0 <= s <= 59):
        raise ValueError("second must be between 0 and 59")
    return datetime.time(hour=h, minute=m, second=s)

