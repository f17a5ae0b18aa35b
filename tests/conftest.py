"""
Shared test fixtures for the RackPower test suite.

Provides:
- A small socket registry (one room, two racks, three sockets)
- FakeTransport: in-memory socket transport recording every call
- Device control service, status cache and scheduler wired together
- An automation service driven by a fixed clock

Time-dependent behaviour is driven through ``UnifiedScheduler.process_due_jobs(now=...)``
instead of sleeping; see ``run_due``.

Usage:
    def test_example(automation_service, scheduler, transport):
        automation_service.create({...})
        run_due(scheduler, NOW + timedelta(minutes=5))
        assert transport.actions() == [...]
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from decimal import Decimal

import pytest

from rackpower.domain.exceptions import DeviceError
from rackpower.domain.sockets import Socket, Status
from rackpower.hardware.sockets import SocketRegistry
from rackpower.services.hardware import AutomationService, DeviceControlService
from rackpower.utils.cache import StatusCache
from rackpower.workers.unified_scheduler import UnifiedScheduler

# ---------------------------------------------------------------------------
# Logging: keep test output clean
# ---------------------------------------------------------------------------
logging.getLogger("rackpower").setLevel(logging.WARNING)

# Monday
NOW = datetime(2026, 3, 2, 10, 0, 0)

REGISTRY_DATA = {
    "rooms": [
        {
            "id": "lab",
            "name": "Lab",
            "racks": [
                {
                    "id": "rack-1",
                    "name": "Rack 1",
                    "sockets": [
                        {"id": "s1", "name": "Switch", "ip": "10.0.0.11"},
                        {"id": "s2", "name": "Router", "ip": "10.0.0.12"},
                    ],
                },
                {
                    "id": "rack-2",
                    "name": "Rack 2",
                    "sockets": [{"id": "s3", "name": "Bench PSU", "ip": "10.0.0.21"}],
                },
            ],
        }
    ]
}


class FakeTransport:
    """In-memory socket transport; devices in ``unreachable`` raise DeviceError."""

    def __init__(self):
        self.outputs: dict[str, bool] = {}
        self.unreachable: set[str] = set()
        self.calls: list[tuple] = []
        self._lock = threading.Lock()

    def _record(self, *call) -> None:
        with self._lock:
            self.calls.append(call)

    def _check(self, socket: Socket) -> None:
        if socket.id in self.unreachable:
            raise DeviceError(f"Socket {socket.id} unreachable")

    def fetch_status(self, socket: Socket) -> Status:
        self._record("read", socket.id)
        self._check(socket)
        return Status(
            socket_id=socket.id,
            online=True,
            output_on=self.outputs.get(socket.id, False),
            power_watts=Decimal("12.5"),
            voltage_volts=Decimal("230.1"),
        )

    def set_state(self, socket: Socket, turn_on: bool) -> None:
        self._record("set_state", socket.id, turn_on)
        self._check(socket)
        with self._lock:
            self.outputs[socket.id] = turn_on

    def toggle(self, socket: Socket) -> None:
        self._record("toggle", socket.id)
        self._check(socket)
        with self._lock:
            self.outputs[socket.id] = not self.outputs.get(socket.id, False)

    def actions(self, socket_id: str | None = None) -> list[tuple]:
        """Every call except reads, optionally for one socket."""
        with self._lock:
            return [c for c in self.calls if c[0] != "read" and (socket_id is None or c[1] == socket_id)]


def run_due(scheduler: UnifiedScheduler, now: datetime) -> int:
    """Fire every job due at ``now`` and wait for the executions to finish."""
    futures = scheduler.process_due_jobs(now=now)
    for future in futures:
        future.result(timeout=5)
    return len(futures)


# ========================== Fixtures ==============================


@pytest.fixture()
def registry():
    return SocketRegistry.from_dict(REGISTRY_DATA)


@pytest.fixture()
def transport():
    return FakeTransport()


@pytest.fixture()
def status_cache():
    return StatusCache()


@pytest.fixture()
def device_control(registry, transport, status_cache):
    return DeviceControlService(registry, transport, status_cache)


@pytest.fixture()
def scheduler():
    """Scheduler whose loop thread is never started; tests call process_due_jobs()."""
    sched = UnifiedScheduler(max_workers=2)
    yield sched
    sched.shutdown()


@pytest.fixture()
def automation_service(device_control, scheduler):
    service = AutomationService(device_control, scheduler, clock=lambda: NOW)
    yield service
    service.shutdown()
