"""
Registry Schemas
================

Pydantic models for the socket hierarchy file::

    {"rooms": [{"id": "...", "name": "...",
                "racks": [{"id": "...", "name": "...",
                           "sockets": [{"id": "...", "name": "...", "ip": "10.0.0.5"}]}]}]}
"""

from typing import List

from pydantic import BaseModel, Field, model_validator

from rackpower.domain.sockets import Rack, Room, Socket


class SocketConfig(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    ip: str = Field(..., min_length=1, description="Device IP address or host[:port]")


class RackConfig(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    sockets: List[SocketConfig] = Field(default_factory=list)


class RoomConfig(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    racks: List[RackConfig] = Field(default_factory=list)


class RegistryConfig(BaseModel):
    """Whole hierarchy; socket IDs must be unique across all rooms."""

    rooms: List[RoomConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique_socket_ids(self):
        seen: set[str] = set()
        for room in self.rooms:
            for rack in room.racks:
                for socket in rack.sockets:
                    if socket.id in seen:
                        raise ValueError(f"Duplicate socket id '{socket.id}'")
                    seen.add(socket.id)
        return self

    def to_rooms(self) -> list[Room]:
        return [
            Room(
                id=room.id,
                name=room.name,
                racks=tuple(
                    Rack(
                        id=rack.id,
                        name=rack.name,
                        room_id=room.id,
                        sockets=tuple(
                            Socket(id=s.id, name=s.name, rack_id=rack.id, ip_address=s.ip) for s in rack.sockets
                        ),
                    )
                    for rack in room.racks
                ),
            )
            for room in self.rooms
        ]
