"""
Device Control Service
======================

Single mediator for every socket read and write.

Each operation resolves the socket through the registry (propagating
``NotFoundError`` unchanged), calls the transport, and records the resulting
``Status`` in the state cache. Transport failures are not raised: an
unreachable device is itself a meaningful, cacheable observation, reported
as ``Status(online=False)``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

from rackpower.domain.exceptions import DeviceError
from rackpower.domain.sockets import Room, Socket, Status

if TYPE_CHECKING:
    from rackpower.services.protocols import SocketResolver, SocketTransport
    from rackpower.utils.cache import StatusCache

logger = logging.getLogger(__name__)


class DeviceControlService:
    """Reads, toggles and switches sockets, keeping the status cache current."""

    def __init__(
        self,
        registry: "SocketResolver",
        transport: "SocketTransport",
        cache: "StatusCache",
    ):
        self.registry = registry
        self.transport = transport
        self.cache = cache

    def resolve(self, socket_id: str) -> Socket:
        return self.registry.resolve(socket_id)

    def read(self, socket_id: str) -> Status:
        """Query the socket's current state."""
        socket = self.registry.resolve(socket_id)
        return self._read(socket)

    def toggle(self, socket_id: str) -> Status:
        """Invert the socket's output, then confirm with a fresh read."""
        socket = self.registry.resolve(socket_id)
        try:
            self.transport.toggle(socket)
        except DeviceError as e:
            logger.warning(f"Toggle failed for socket {socket_id}: {e}")
            status = Status.offline(socket_id)
            self.cache.put(socket_id, status)
            return status
        return self._read(socket)

    def set_state(self, socket_id: str, on: bool) -> Status:
        """
        Switch the socket on or off, then confirm with a fresh read.

        When the command fails the requested state is echoed in the offline
        status even though it could not be confirmed.
        """
        socket = self.registry.resolve(socket_id)
        try:
            self.transport.set_state(socket, on)
        except DeviceError as e:
            logger.warning(f"Set state {'on' if on else 'off'} failed for socket {socket_id}: {e}")
            status = Status.offline(socket_id, output_on=on)
            self.cache.put(socket_id, status)
            return status
        return self._read(socket)

    def get_cached(self, socket_id: str) -> Status | None:
        """Last observed status, or None when the socket was never observed."""
        return self.cache.get(socket_id)

    def fetch_statuses(self, socket_ids: Iterable[str] | None = None) -> dict[str, Status]:
        """
        Read several sockets at once.

        Args:
            socket_ids: Sockets to read; every registered socket when empty or None

        Returns:
            Mapping of socket ID to fresh status

        Raises:
            NotFoundError: If any ID is unknown (checked before any device is contacted)
        """
        ids = list(socket_ids or [])
        sockets = [self.registry.resolve(sid) for sid in ids] if ids else self.registry.sockets()
        return {socket.id: self._read(socket) for socket in sockets}

    def list_sockets(self) -> list[Socket]:
        return self.registry.sockets()

    def rooms(self) -> list[Room]:
        return self.registry.rooms()

    def _read(self, socket: Socket) -> Status:
        try:
            status = self.transport.fetch_status(socket)
        except DeviceError as e:
            logger.debug(f"Read failed for socket {socket.id}: {e}")
            status = Status.offline(socket.id)
        self.cache.put(socket.id, status)
        return status
