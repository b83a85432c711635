"""Configuration for pyrailguard monitors and the speed policy."""

from __future__ import annotations

import dataclasses
import math
import os
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from pyrailguard.exceptions import RailguardConfigError
from pyrailguard.models.control import SeverityTier


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_float(env: Mapping[str, str], key: str) -> float | None:
    raw = env.get(key)
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise RailguardConfigError(f"{key} must be a number, got {raw!r}") from exc


def _env_int(env: Mapping[str, str], key: str) -> int | None:
    raw = env.get(key)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise RailguardConfigError(f"{key} must be an integer, got {raw!r}") from exc


def _require_positive(name: str, value: float, *, allow_zero: bool = False) -> None:
    if not math.isfinite(value) or value < 0 or (value == 0 and not allow_zero):
        raise RailguardConfigError(f"{name} must be a positive number, got {value!r}")


class DecelerationMode(StrEnum):
    """How the per-tick deceleration rate is chosen under a restriction."""

    TIER = "tier"
    """Rate depends on the winning severity tier."""
    DISTANCE = "distance"
    """Rate depends on the distance to the nearest alert (bucket table)."""


def _default_tier_targets() -> dict[SeverityTier, float]:
    return {SeverityTier.A: 20.0, SeverityTier.B: 40.0, SeverityTier.C: 60.0}


def _default_tier_decelerations() -> dict[SeverityTier, float]:
    return {SeverityTier.A: 5.0, SeverityTier.B: 3.0, SeverityTier.C: 1.5}


@dataclasses.dataclass(frozen=True)
class SpeedPolicy:
    """Speed targets and rates used by the classifier and state machine.

    All speeds are km/h and all rates km/h per tick.

    Parameters
    ----------
    tier_targets : dict
        Target speed per :class:`SeverityTier`.
    tier_decelerations : dict
        Deceleration per tick per :class:`SeverityTier`.
    accel_rate : float
        Acceleration per tick while returning to nominal speed.
    deceleration_mode : DecelerationMode
        ``TIER`` (default) or ``DISTANCE``.
    distance_buckets : tuple
        ``(max_distance_km, deceleration)`` pairs, ascending, used in
        ``DISTANCE`` mode. A distance beyond the last bucket falls back
        to the tier rate.
    hold_at_target : bool
        When ``True`` deceleration stops at the tier target speed instead
        of continuing to a full stop.
    acceleration_overshoot_bound : float
        How far above nominal speed a provider may drift.
    """

    tier_targets: dict[SeverityTier, float] = dataclasses.field(default_factory=_default_tier_targets)
    tier_decelerations: dict[SeverityTier, float] = dataclasses.field(default_factory=_default_tier_decelerations)
    accel_rate: float = 0.5
    deceleration_mode: DecelerationMode = DecelerationMode.TIER
    distance_buckets: tuple[tuple[float, float], ...] = ((1.0, 5.0), (2.0, 3.0), (5.0, 1.5))
    hold_at_target: bool = False
    acceleration_overshoot_bound: float = 5.0

    def __post_init__(self) -> None:
        for tier in SeverityTier:
            if tier not in self.tier_targets:
                raise RailguardConfigError(f"missing target speed for tier {tier}")
            if tier not in self.tier_decelerations:
                raise RailguardConfigError(f"missing deceleration rate for tier {tier}")
            _require_positive(f"tier_targets[{tier}]", self.tier_targets[tier], allow_zero=True)
            _require_positive(f"tier_decelerations[{tier}]", self.tier_decelerations[tier])
        _require_positive("accel_rate", self.accel_rate)
        _require_positive("acceleration_overshoot_bound", self.acceleration_overshoot_bound, allow_zero=True)
        previous = 0.0
        for limit, rate in self.distance_buckets:
            _require_positive("distance bucket limit", limit)
            _require_positive("distance bucket rate", rate)
            if limit <= previous:
                raise RailguardConfigError("distance_buckets must be sorted by ascending distance")
            previous = limit

    def target_for(self, tier: SeverityTier) -> float:
        return self.tier_targets[tier]

    def deceleration_for(self, tier: SeverityTier, distance_km: float | None = None) -> float:
        """Deceleration per tick for a restriction of *tier* at *distance_km*."""
        if self.deceleration_mode == DecelerationMode.DISTANCE and distance_km is not None:
            for limit, rate in self.distance_buckets:
                if distance_km <= limit:
                    return rate
        return self.tier_decelerations[tier]


@dataclasses.dataclass(frozen=True)
class MonitorConfig:
    """Monitor loop configuration.

    Parameters
    ----------
    tick_interval : float
        Seconds between ticks (1 s in simulation; the telemetry refresh
        period in a real deployment).
    fetch_timeout : float
        Seconds an alert fetch may take before the tick is treated as a
        transient failure.
    proximity_radius_km : float
        Alerts at or within this distance restrict the vehicle.
    alert_window : float
        Only alerts created within this many seconds are fetched.
    alert_limit : int
        Maximum number of alerts fetched per tick.
    alert_source_url : str or None
        Base URL of the alert service, for :class:`HttpAlertSource`.
    station_cache_ttl : float
        Seconds a resolved station position stays cached.
    station_cache_size : int
        Maximum number of cached station positions.
    policy : SpeedPolicy
        Speed targets and rates.
    """

    tick_interval: float = 1.0
    fetch_timeout: float = 5.0
    proximity_radius_km: float = 2.0
    alert_window: float = 5 * 60
    alert_limit: int = 50
    alert_source_url: str | None = None
    station_cache_ttl: float = 24 * 3600
    station_cache_size: int = 256
    policy: SpeedPolicy = dataclasses.field(default_factory=SpeedPolicy)

    def __post_init__(self) -> None:
        _require_positive("tick_interval", self.tick_interval)
        _require_positive("fetch_timeout", self.fetch_timeout)
        _require_positive("proximity_radius_km", self.proximity_radius_km)
        _require_positive("alert_window", self.alert_window)
        _require_positive("station_cache_ttl", self.station_cache_ttl)
        if self.alert_limit <= 0:
            raise RailguardConfigError(f"alert_limit must be positive, got {self.alert_limit!r}")
        if self.station_cache_size <= 0:
            raise RailguardConfigError(f"station_cache_size must be positive, got {self.station_cache_size!r}")

    @classmethod
    def from_env(cls, **overrides: Any) -> MonitorConfig:
        """Create configuration from ``RAILGUARD_*`` environment variables.

        Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        MonitorConfig
            Populated configuration.

        Raises
        ------
        RailguardConfigError
            If a variable cannot be parsed or a value is out of range.
        """
        env = os.environ

        policy_kwargs: dict[str, Any] = {}
        mode = env.get("RAILGUARD_DECELERATION_MODE")
        if mode is not None:
            try:
                policy_kwargs["deceleration_mode"] = DecelerationMode(mode.strip().lower())
            except ValueError as exc:
                raise RailguardConfigError(f"RAILGUARD_DECELERATION_MODE: unknown mode {mode!r}") from exc
        accel = _env_float(env, "RAILGUARD_ACCEL_RATE")
        if accel is not None:
            policy_kwargs["accel_rate"] = accel
        if "RAILGUARD_HOLD_AT_TARGET" in env:
            policy_kwargs["hold_at_target"] = _env_bool(env.get("RAILGUARD_HOLD_AT_TARGET"), False)

        policy_override = overrides.pop("policy", None)
        if isinstance(policy_override, SpeedPolicy):
            policy = policy_override
        elif isinstance(policy_override, dict):
            policy_kwargs.update(policy_override)
            policy = SpeedPolicy(**policy_kwargs)
        else:
            policy = SpeedPolicy(**policy_kwargs)

        config_kwargs: dict[str, Any] = {"policy": policy}

        _ENV_FLOAT_MAP = {
            "RAILGUARD_TICK_INTERVAL": "tick_interval",
            "RAILGUARD_FETCH_TIMEOUT": "fetch_timeout",
            "RAILGUARD_PROXIMITY_RADIUS_KM": "proximity_radius_km",
            "RAILGUARD_ALERT_WINDOW": "alert_window",
            "RAILGUARD_STATION_CACHE_TTL": "station_cache_ttl",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            value = _env_float(env, env_key)
            if value is not None and field_name not in overrides:
                config_kwargs[field_name] = value

        _ENV_INT_MAP = {
            "RAILGUARD_ALERT_LIMIT": "alert_limit",
            "RAILGUARD_STATION_CACHE_SIZE": "station_cache_size",
        }
        for env_key, field_name in _ENV_INT_MAP.items():
            value_int = _env_int(env, env_key)
            if value_int is not None and field_name not in overrides:
                config_kwargs[field_name] = value_int

        url = env.get("RAILGUARD_ALERT_SOURCE_URL")
        if url and "alert_source_url" not in overrides:
            config_kwargs["alert_source_url"] = url.rstrip("/")

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
