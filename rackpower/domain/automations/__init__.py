"""
Automation Domain Module
========================

Tagged-union automation entities consumed by the scheduling engine.
"""
from rackpower.domain.automations.automation_entity import (
    MAX_AUTOMATION_MINUTES,
    Automation,
    AutoOffAutomation,
    IntervalToggleAutomation,
    TimeRangeAutomation,
    normalize_days,
)

__all__ = [
    "MAX_AUTOMATION_MINUTES",
    "Automation",
    "AutoOffAutomation",
    "IntervalToggleAutomation",
    "TimeRangeAutomation",
    "normalize_days",
]
