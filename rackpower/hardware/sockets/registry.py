"""
Socket registry: resolves socket identifiers to their network addresses.

The hierarchy is loaded once (from a JSON file or an in-memory mapping) and
is read-only afterwards, so lookups need no locking.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from rackpower.domain.exceptions import ConfigurationError, NotFoundError
from rackpower.domain.sockets import Room, Socket
from rackpower.schemas.registry import RegistryConfig

logger = logging.getLogger(__name__)


class SocketRegistry:
    """Index of every configured socket, keyed by socket ID."""

    def __init__(self, rooms: list[Room]):
        self._rooms = tuple(rooms)
        self._socket_index: dict[str, Socket] = {
            socket.id: socket for room in self._rooms for rack in room.racks for socket in rack.sockets
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SocketRegistry":
        """Build a registry from a ``{"rooms": [...]}`` mapping."""
        try:
            config = RegistryConfig.model_validate(data)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid socket registry: {e}", detail={"errors": e.errors()}) from e
        return cls(config.to_rooms())

    @classmethod
    def from_file(cls, path: str | Path) -> "SocketRegistry":
        """Load the hierarchy from a JSON file."""
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise ConfigurationError(f"Socket registry file not found: {path}") from None
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Socket registry file {path} is not valid JSON: {e}") from e

        registry = cls.from_dict(data)
        logger.info(f"Loaded {len(registry)} sockets in {len(registry.rooms())} rooms from {path}")
        return registry

    def resolve(self, socket_id: str) -> Socket:
        """Return the socket for ``socket_id`` or raise ``NotFoundError``."""
        socket = self._socket_index.get(socket_id)
        if socket is None:
            raise NotFoundError(f"Socket {socket_id} not found", detail={"socket_id": socket_id})
        return socket

    def rooms(self) -> list[Room]:
        return list(self._rooms)

    def sockets(self) -> list[Socket]:
        """All sockets in hierarchy order."""
        return [socket for room in self._rooms for rack in room.racks for socket in rack.sockets]

    def __contains__(self, socket_id: object) -> bool:
        return socket_id in self._socket_index

    def __len__(self) -> int:
        return len(self._socket_index)
