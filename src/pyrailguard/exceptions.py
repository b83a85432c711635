"""Custom exception hierarchy for pyrailguard."""

from __future__ import annotations


class RailguardError(Exception):
    """Base exception for all pyrailguard errors."""


class RailguardConfigError(RailguardError):
    """Invalid or missing configuration."""


class AlertSourceError(RailguardError):
    """Alert query failed (network, non-200, invalid JSON, timeout)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class AlertParseError(RailguardError):
    """An alert payload could not be turned into a :class:`HazardAlert`."""


class TelemetryError(RailguardError):
    """A telemetry provider could not report position or speed."""


class MonitorError(RailguardError):
    """Invalid monitor lifecycle operation.

    Raised by :class:`~pyrailguard.monitor.FleetMonitor` when starting a
    vehicle that is already monitored or stopping one that is not.
    """
