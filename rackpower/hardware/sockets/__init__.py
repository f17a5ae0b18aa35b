from .registry import SocketRegistry
from .shelly_client import ShellyClient

__all__ = ["ShellyClient", "SocketRegistry"]
