"""Pydantic models for alerts, telemetry and speed control."""

from pyrailguard.models.alert import AlertSeverity, AlertStatus, AlertType, HazardAlert, ProximityResult
from pyrailguard.models.control import (
    Classification,
    MonitorStatus,
    SeverityTier,
    SpeedCommand,
    SpeedControlState,
    SpeedPhase,
    TickResult,
    TransitionEvent,
)
from pyrailguard.models.geo import GeoPoint, coerce_geo_point
from pyrailguard.models.telemetry import VehicleTelemetry

__all__ = [
    "AlertSeverity",
    "AlertStatus",
    "AlertType",
    "Classification",
    "GeoPoint",
    "HazardAlert",
    "MonitorStatus",
    "ProximityResult",
    "SeverityTier",
    "SpeedCommand",
    "SpeedControlState",
    "SpeedPhase",
    "TickResult",
    "TransitionEvent",
    "VehicleTelemetry",
    "coerce_geo_point",
]
