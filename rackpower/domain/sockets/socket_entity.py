"""
Socket Domain Entities
======================

Physical hierarchy (rooms -> racks -> sockets) and the point-in-time
``Status`` observed for a socket.

Everything here is immutable: the hierarchy is loaded once at startup and a
``Status`` is produced whole by every device interaction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class Socket:
    """A single controllable network power switch.

    Attributes:
        id: Unique, stable identifier
        name: Human-readable name
        rack_id: Rack this socket is mounted in
        ip_address: Network address of the device
    """

    id: str
    name: str
    rack_id: str
    ip_address: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "rack_id": self.rack_id,
            "ip_address": self.ip_address,
        }


@dataclass(frozen=True)
class Rack:
    """A rack holding one or more sockets."""

    id: str
    name: str
    room_id: str
    sockets: tuple[Socket, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "room_id": self.room_id,
            "sockets": [s.to_dict() for s in self.sockets],
        }


@dataclass(frozen=True)
class Room:
    """A room holding one or more racks."""

    id: str
    name: str
    racks: tuple[Rack, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "racks": [r.to_dict() for r in self.racks],
        }


@dataclass(frozen=True)
class Status:
    """
    Observed operational state of a socket at a point in time.

    ``output_on`` is only meaningful when ``online`` is True. Power and
    voltage are present only when the device was reachable and reported them.
    """

    socket_id: str
    online: bool
    output_on: bool
    power_watts: Decimal | None = None
    voltage_volts: Decimal | None = None

    def __post_init__(self):
        if not self.online and (self.power_watts is not None or self.voltage_volts is not None):
            raise ValueError("offline status cannot carry power or voltage readings")

    @classmethod
    def offline(cls, socket_id: str, output_on: bool = False) -> "Status":
        """Degraded status for a socket whose network call failed."""
        return cls(socket_id=socket_id, online=False, output_on=output_on)

    def to_dict(self) -> dict[str, Any]:
        return {
            "socket_id": self.socket_id,
            "online": self.online,
            "output_on": self.output_on,
            "power_watts": str(self.power_watts) if self.power_watts is not None else None,
            "voltage_volts": str(self.voltage_volts) if self.voltage_volts is not None else None,
        }
