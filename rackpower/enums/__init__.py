"""
Enums Module
============

Enumeration types shared across RackPower.
"""

from rackpower.enums.automation import AutomationType, Weekday

__all__ = [
    "AutomationType",
    "Weekday",
]
