"""
Automation Schemas
==================

Pydantic model for automation creation requests. Field names are accepted in
both snake_case and camelCase (``socket_id`` / ``socketId``).
"""

import datetime
import uuid
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from rackpower.domain.automations import (
    MAX_AUTOMATION_MINUTES,
    Automation,
    AutoOffAutomation,
    IntervalToggleAutomation,
    TimeRangeAutomation,
)
from rackpower.enums import AutomationType, Weekday
from rackpower.utils.time import parse_time_of_day


class CreateAutomationRequest(BaseModel):
    """Request model for creating (or replacing) an automation"""

    id: Optional[str] = Field(default=None, min_length=1, max_length=128, description="Automation ID; generated when absent")
    socket_id: str = Field(..., min_length=1, alias="socketId", description="Target socket ID")
    type: AutomationType = Field(..., description="Automation type")
    start_time: Optional[datetime.time] = Field(default=None, alias="startTime", description="TIME_RANGE on time")
    end_time: Optional[datetime.time] = Field(default=None, alias="endTime", description="TIME_RANGE off time")
    days_of_week: Optional[List[Weekday]] = Field(
        default=None,
        alias="daysOfWeek",
        description="TIME_RANGE weekdays; empty means every day",
    )
    interval_minutes: Optional[int] = Field(default=None, ge=1, le=MAX_AUTOMATION_MINUTES, alias="intervalMinutes")
    auto_off_minutes: Optional[int] = Field(default=None, ge=1, le=MAX_AUTOMATION_MINUTES, alias="autoOffMinutes")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "socketId": "rack-a1-s1",
                "type": "TIME_RANGE",
                "startTime": "08:00",
                "endTime": "20:00",
                "daysOfWeek": ["MONDAY", "FRIDAY"],
            }
        },
    )

    @field_validator("type", mode="before")
    def _coerce_type(cls, v):
        if isinstance(v, AutomationType):
            return v
        if isinstance(v, str):
            try:
                return AutomationType(v)
            except ValueError:
                pass
        raise ValueError(f"Unsupported automation type '{v}'")

    @field_validator("start_time", "end_time", mode="before")
    def _coerce_time(cls, v):
        if isinstance(v, str):
            return parse_time_of_day(v)
        return v

    @field_validator("days_of_week", mode="before")
    def _coerce_days(cls, v):
        if v is None:
            return v
        if isinstance(v, (str, int)):
            v = [v]
        try:
            return [d if isinstance(d, Weekday) else Weekday(d) for d in v]
        except ValueError:
            raise ValueError(f"Unsupported day of week in {v!r}") from None

    @model_validator(mode="after")
    def _check_required_fields(self):
        """Each type must carry the fields it schedules from."""
        if self.type == AutomationType.TIME_RANGE and (self.start_time is None or self.end_time is None):
            raise ValueError("startTime and endTime are required for TIME_RANGE automations")
        if self.type == AutomationType.INTERVAL_TOGGLE and self.interval_minutes is None:
            raise ValueError("intervalMinutes must be provided for INTERVAL_TOGGLE automations")
        if self.type == AutomationType.AUTO_OFF and self.auto_off_minutes is None:
            raise ValueError("autoOffMinutes must be provided for AUTO_OFF automations")
        return self

    def to_automation(self) -> Automation:
        """Build the automation variant for this request."""
        automation_id = self.id or str(uuid.uuid4())

        if self.type == AutomationType.TIME_RANGE:
            return TimeRangeAutomation(
                id=automation_id,
                socket_id=self.socket_id,
                start_time=self.start_time,
                end_time=self.end_time,
                days_of_week=frozenset(self.days_of_week or ()),
            )
        if self.type == AutomationType.INTERVAL_TOGGLE:
            return IntervalToggleAutomation(
                id=automation_id,
                socket_id=self.socket_id,
                interval_minutes=self.interval_minutes,
            )
        return AutoOffAutomation(
            id=automation_id,
            socket_id=self.socket_id,
            auto_off_minutes=self.auto_off_minutes,
        )
