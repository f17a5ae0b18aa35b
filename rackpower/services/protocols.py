"""
Service protocols (structural typing interfaces).

Protocols let consumer services declare the *minimal* surface they depend on
without importing the concrete class, making tests trivially mockable.

At runtime ``SocketRegistry``, ``ShellyClient`` and ``DeviceControlService``
satisfy these protocols via structural subtyping; no explicit inheritance
needed.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from rackpower.domain.sockets import Room, Socket, Status


@runtime_checkable
class SocketResolver(Protocol):
    """Resolves socket identifiers to sockets."""

    def resolve(self, socket_id: str) -> Socket:
        """Return the socket or raise ``NotFoundError``."""
        ...

    def sockets(self) -> list[Socket]:
        """Return every known socket."""
        ...

    def rooms(self) -> list[Room]:
        ...


@runtime_checkable
class SocketTransport(Protocol):
    """Performs the network call against a socket.

    Implementations raise ``DeviceError`` when the device cannot be reached.
    """

    def fetch_status(self, socket: Socket) -> Status:
        ...

    def set_state(self, socket: Socket, turn_on: bool) -> None:
        ...

    def toggle(self, socket: Socket) -> None:
        ...


@runtime_checkable
class DeviceController(Protocol):
    """Device actions the automation engine issues when triggers fire."""

    def resolve(self, socket_id: str) -> Socket:
        ...

    def toggle(self, socket_id: str) -> Status:
        ...

    def set_state(self, socket_id: str, on: bool) -> Status:
        ...
