from .automation_service import AutomationService
from .device_control_service import DeviceControlService

__all__ = ["AutomationService", "DeviceControlService"]
