"""
RackPower
=========

Scheduling engine and device control for rack-mounted network power sockets.
"""

__version__ = "1.0.0"
