"""
Automation Domain Entities
==========================

An automation is a declarative rule that the scheduling engine turns into
concrete timed actions against one socket. It is modelled as a tagged union:
each variant carries only the parameters its type needs, so a TIME_RANGE
automation cannot exist without both of its times and an INTERVAL_TOGGLE
automation cannot exist with a zero interval.

Variants:
- TimeRangeAutomation: on at ``start_time``, off at ``end_time``, on selected weekdays
- IntervalToggleAutomation: toggle every ``interval_minutes``
- AutoOffAutomation: on immediately, off after ``auto_off_minutes``
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any, ClassVar, Iterable, Union

from rackpower.domain.exceptions import ValidationError
from rackpower.enums import AutomationType, Weekday

# Upper bound for interval and auto-off durations (one leap year)
MAX_AUTOMATION_MINUTES = 366 * 24 * 60


def normalize_days(days: Iterable[Any] | None) -> frozenset[Weekday]:
    """Coerce an iterable of ints/names to a frozenset of ``Weekday``."""
    if not days:
        return frozenset()
    try:
        return frozenset(Weekday(d) for d in days)
    except ValueError as e:
        raise ValidationError(f"Invalid day of week: {e}") from None


@dataclass(frozen=True)
class _AutomationBase:
    id: str
    socket_id: str

    type: ClassVar[AutomationType]

    def _require_identity(self) -> None:
        if not self.id:
            raise ValidationError("automation id must not be empty")
        if not self.socket_id:
            raise ValidationError("socket_id is required")

    def to_dict(self) -> dict[str, Any]:
        """Flat representation with every optional field present."""
        return {
            "id": self.id,
            "socket_id": self.socket_id,
            "type": self.type.value,
            "start_time": None,
            "end_time": None,
            "days_of_week": [],
            "interval_minutes": None,
            "auto_off_minutes": None,
        }


@dataclass(frozen=True)
class TimeRangeAutomation(_AutomationBase):
    """
    Socket on at ``start_time`` and off at ``end_time`` on each selected day.

    An empty ``days_of_week`` means every day. An ``end_time`` earlier than
    ``start_time`` is kept as given: the off action simply fires earlier in
    the day than the on action.
    """

    start_time: datetime.time
    end_time: datetime.time
    days_of_week: frozenset[Weekday] = field(default_factory=frozenset)

    type: ClassVar[AutomationType] = AutomationType.TIME_RANGE

    def __post_init__(self):
        self._require_identity()
        if not isinstance(self.start_time, datetime.time) or not isinstance(self.end_time, datetime.time):
            raise ValidationError("start_time and end_time are required for TIME_RANGE automations")
        object.__setattr__(self, "days_of_week", normalize_days(self.days_of_week))

    @property
    def effective_days(self) -> list[Weekday]:
        """Selected days in calendar order, all seven when none selected."""
        return sorted(self.days_of_week) if self.days_of_week else list(Weekday)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "start_time": self.start_time.isoformat(),
                "end_time": self.end_time.isoformat(),
                "days_of_week": [d.name for d in sorted(self.days_of_week)],
            }
        )
        return data


@dataclass(frozen=True)
class IntervalToggleAutomation(_AutomationBase):
    """Toggle the socket every ``interval_minutes``, first toggle one interval after scheduling."""

    interval_minutes: int

    type: ClassVar[AutomationType] = AutomationType.INTERVAL_TOGGLE

    def __post_init__(self):
        self._require_identity()
        if isinstance(self.interval_minutes, bool) or not isinstance(self.interval_minutes, int):
            raise ValidationError("intervalMinutes must be provided for INTERVAL_TOGGLE automations")
        if self.interval_minutes < 1:
            raise ValidationError("intervalMinutes must be at least 1")
        if self.interval_minutes > MAX_AUTOMATION_MINUTES:
            raise ValidationError(f"intervalMinutes must be at most {MAX_AUTOMATION_MINUTES}")

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["interval_minutes"] = self.interval_minutes
        return data


@dataclass(frozen=True)
class AutoOffAutomation(_AutomationBase):
    """Switch on at scheduling time, switch off ``auto_off_minutes`` later."""

    auto_off_minutes: int

    type: ClassVar[AutomationType] = AutomationType.AUTO_OFF

    def __post_init__(self):
        self._require_identity()
        if isinstance(self.auto_off_minutes, bool) or not isinstance(self.auto_off_minutes, int):
            raise ValidationError("autoOffMinutes must be provided for AUTO_OFF automations")
        if self.auto_off_minutes < 1:
            raise ValidationError("autoOffMinutes must be at least 1")
        if self.auto_off_minutes > MAX_AUTOMATION_MINUTES:
            raise ValidationError(f"autoOffMinutes must be at most {MAX_AUTOMATION_MINUTES}")

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["auto_off_minutes"] = self.auto_off_minutes
        return data


Automation = Union[TimeRangeAutomation, IntervalToggleAutomation, AutoOffAutomation]
