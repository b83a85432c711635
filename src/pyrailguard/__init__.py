"""pyrailguard - hazard-proximity speed control for monitored trains."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyrailguard")
except PackageNotFoundError:
    __version__ = "0+local"
from pyrailguard.classifier import classify, tier_for_alert
from pyrailguard.config import DecelerationMode, MonitorConfig, SpeedPolicy
from pyrailguard.control import speed_reduction_label, tick
from pyrailguard.exceptions import (
    AlertParseError,
    AlertSourceError,
    MonitorError,
    RailguardConfigError,
    RailguardError,
    TelemetryError,
)
from pyrailguard.geo import haversine_km, haversine_km_coords
from pyrailguard.models import (
    AlertSeverity,
    AlertStatus,
    AlertType,
    Classification,
    GeoPoint,
    HazardAlert,
    MonitorStatus,
    ProximityResult,
    SeverityTier,
    SpeedCommand,
    SpeedControlState,
    SpeedPhase,
    TickResult,
    TransitionEvent,
    VehicleTelemetry,
)
from pyrailguard.monitor import FleetMonitor, MonitorSnapshot, VehicleMonitor
from pyrailguard.proximity import AlertQuery, filter_nearby
from pyrailguard.ranking import rank_alerts
from pyrailguard.sources import AlertSource, HttpAlertSource, StaticAlertSource
from pyrailguard.stations import StationLocator, StationTelemetryProvider
from pyrailguard.telemetry import ScriptedTelemetryProvider, SimulatedTelemetryProvider, TelemetryProvider

__all__ = [
    "__version__",
    "AlertParseError",
    "AlertQuery",
    "AlertSeverity",
    "AlertSource",
    "AlertSourceError",
    "AlertStatus",
    "AlertType",
    "Classification",
    "DecelerationMode",
    "FleetMonitor",
    "GeoPoint",
    "HazardAlert",
    "HttpAlertSource",
    "MonitorConfig",
    "MonitorError",
    "MonitorSnapshot",
    "MonitorStatus",
    "ProximityResult",
    "RailguardConfigError",
    "RailguardError",
    "ScriptedTelemetryProvider",
    "SeverityTier",
    "SimulatedTelemetryProvider",
    "SpeedCommand",
    "SpeedControlState",
    "SpeedPhase",
    "SpeedPolicy",
    "StaticAlertSource",
    "StationLocator",
    "StationTelemetryProvider",
    "TelemetryError",
    "TelemetryProvider",
    "TickResult",
    "TransitionEvent",
    "VehicleMonitor",
    "VehicleTelemetry",
    "classify",
    "filter_nearby",
    "haversine_km",
    "haversine_km_coords",
    "rank_alerts",
    "speed_reduction_label",
    "tick",
    "tier_for_alert",
]
