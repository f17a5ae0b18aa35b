"""
HTTP transport for Shelly Gen2 smart sockets.

Talks to the device's local RPC endpoints:

    GET  http://<ip>/rpc/Switch.GetStatus?id=0
    POST http://<ip>/rpc/Switch.Set       {"id": 0, "on": true}
    POST http://<ip>/rpc/Switch.Toggle    {"id": 0}

Every network or HTTP failure is raised as ``DeviceError``; turning that into
an offline ``Status`` is the device control service's job.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any

import requests

from rackpower.domain.exceptions import DeviceError
from rackpower.domain.sockets import Socket, Status

logger = logging.getLogger(__name__)


class ShellyClient:
    """
    Controls Shelly sockets via their HTTP RPC API.

    Attributes:
        timeout_seconds (float): Per-request timeout.
        session (requests.Session): Shared HTTP session (connection pooling).

    Methods:
        fetch_status(socket): Read switch output, power and voltage.
        set_state(socket, turn_on): Switch the output on or off.
        toggle(socket): Invert the output.
    """

    SWITCH_ID = 0

    def __init__(self, timeout_seconds: float = 5.0, session: requests.Session | None = None):
        self.timeout_seconds = float(timeout_seconds)
        self.session = session or requests.Session()

    def fetch_status(self, socket: Socket) -> Status:
        """Read the current switch status of ``socket``."""
        data = self._send_request("GET", socket, "Switch.GetStatus", params={"id": self.SWITCH_ID})
        return Status(
            socket_id=socket.id,
            online=True,
            output_on=data.get("output") is True,
            power_watts=self._to_decimal(data.get("apower")),
            voltage_volts=self._to_decimal(data.get("voltage")),
        )

    def set_state(self, socket: Socket, turn_on: bool) -> None:
        """Switch ``socket`` on or off."""
        self._send_request("POST", socket, "Switch.Set", json={"id": self.SWITCH_ID, "on": bool(turn_on)})
        logger.info(f"Turned {'on' if turn_on else 'off'} socket {socket.id} at {socket.ip_address}")

    def toggle(self, socket: Socket) -> None:
        """Invert the output of ``socket``."""
        self._send_request("POST", socket, "Switch.Toggle", json={"id": self.SWITCH_ID})
        logger.info(f"Toggled socket {socket.id} at {socket.ip_address}")

    def close(self) -> None:
        self.session.close()

    def _send_request(self, method: str, socket: Socket, rpc: str, **kwargs: Any) -> dict[str, Any]:
        """
        Send an RPC request to the socket.

        Returns:
            dict: Decoded JSON body (empty when the device sent none).

        Raises:
            DeviceError: On connection errors, timeouts or non-2xx responses.
        """
        url = f"http://{socket.ip_address}/rpc/{rpc}"
        try:
            response = self.session.request(method, url, timeout=self.timeout_seconds, **kwargs)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.warning(f"Socket {socket.id} unreachable ({rpc}): {e}")
            raise DeviceError(
                f"Error calling {rpc} on socket {socket.id}: {e}",
                detail={"socket_id": socket.id, "url": url},
            ) from e

        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError as e:
            raise DeviceError(f"Socket {socket.id} returned invalid JSON for {rpc}") from e
        return body if isinstance(body, dict) else {}

    @staticmethod
    def _to_decimal(value: Any) -> Decimal | None:
        if value is None or isinstance(value, bool):
            return None
        try:
            return Decimal(str(value))
        except (InvalidOperation, ValueError):
            return None
