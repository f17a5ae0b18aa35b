"""
Schemas Module
==============

Pydantic models for validating automation definitions and the socket
registry file.
"""

from rackpower.schemas.automation import CreateAutomationRequest
from rackpower.schemas.registry import RackConfig, RegistryConfig, RoomConfig, SocketConfig

__all__ = [
    "CreateAutomationRequest",
    "RackConfig",
    "RegistryConfig",
    "RoomConfig",
    "SocketConfig",
]
