"""Centralized exception hierarchy for RackPower.

All domain and service exceptions inherit from :class:`RackPowerError` so that
callers can catch a single base class when they need a broad safety net, yet
still match on specific subclasses where narrower handling is appropriate.

Only :class:`ValidationError` and :class:`NotFoundError` cross the automation
engine's public boundary. :class:`DeviceError` is raised by the socket
transport and absorbed by the device control facade into an offline status.

Hierarchy
---------
::

    RackPowerError (base, maps to 500)
    ├── ValidationError          (400: bad input from caller)
    ├── NotFoundError            (404: socket or automation does not exist)
    ├── DeviceError              (503: socket communication failure)
    └── ConfigurationError       (500: missing / invalid config)
"""

from __future__ import annotations


class RackPowerError(Exception):
    """Base exception for all RackPower errors.

    Parameters
    ----------
    message:
        Human-readable description.
    detail:
        Optional machine-readable context dict attached to the error for
        structured logging.
    """

    http_status: int = 500

    def __init__(self, message: str = "", *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.detail = detail or {}


# ── Client errors (4xx) ──────────────────────────────────────────────


class ValidationError(RackPowerError):
    """Caller supplied invalid or incomplete input (HTTP 400)."""

    http_status: int = 400


class NotFoundError(RackPowerError):
    """Requested socket or automation does not exist (HTTP 404)."""

    http_status: int = 404


# ── Server errors (5xx) ──────────────────────────────────────────────


class DeviceError(RackPowerError):
    """Socket unreachable or returned an error response (HTTP 503)."""

    http_status: int = 503


class ConfigurationError(RackPowerError):
    """Missing or invalid application configuration (HTTP 500)."""

    http_status: int = 500
