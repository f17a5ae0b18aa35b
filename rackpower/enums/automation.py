"""
Automation-related Enumerations
===============================

This module contains the enums used by automation definitions.
"""

from enum import Enum, IntEnum


class AutomationType(str, Enum):
    """Kind of automation rule.

    - TIME_RANGE: socket on at start time, off at end time, on selected weekdays
    - INTERVAL_TOGGLE: toggle the socket every N minutes
    - AUTO_OFF: switch on now, switch off after N minutes
    """

    TIME_RANGE = "TIME_RANGE"
    INTERVAL_TOGGLE = "INTERVAL_TOGGLE"
    AUTO_OFF = "AUTO_OFF"

    @classmethod
    def _missing_(cls, value: object) -> "AutomationType | None":
        if isinstance(value, str):
            normalized = value.strip().upper().replace("-", "_")
            for member in cls:
                if member.value == normalized:
                    return member
        return None

    def __str__(self):
        return self.value


class Weekday(IntEnum):
    """Day of week, Monday=0 as in ``datetime.weekday()``."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @classmethod
    def _missing_(cls, value: object) -> "Weekday | None":
        """Accept enum names ("MONDAY") and abbreviations ("mon")."""
        if not isinstance(value, str):
            return None
        raw = value.strip().upper()
        if raw.isdigit():
            return cls(int(raw))
        for member in cls:
            if member.name == raw or member.name[:3] == raw:
                return member
        return None

    @property
    def short_name(self) -> str:
        return self.name[:3].lower()
