"""Per-vehicle speed-control state machine.

:func:`tick` is a pure function of the previous state and the current
classification. It performs no I/O and never raises for bad numeric
input: such ticks are no-ops and report an anomaly instead.

Transition rules, evaluated in order:

1. No restriction: accelerate by ``accel_rate`` up to nominal speed;
   phase becomes ``MONITORING``.
2. Restriction: decelerate by the policy rate, not below zero; phase
   becomes ``SLOWING_DOWN``.
3. Speed reaching zero under a restriction: phase becomes ``STOPPED``.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime

from pyrailguard.config import SpeedPolicy
from pyrailguard.models.control import (
    Classification,
    SeverityTier,
    SpeedCommand,
    SpeedControlState,
    SpeedPhase,
    TickResult,
)

_TIER_MESSAGES: dict[SeverityTier, str] = {
    SeverityTier.A: "Critical hazard detected ahead. Speed reduced to {target:g} km/h.",
    SeverityTier.B: "Animals detected near tracks. Speed reduced to {target:g} km/h.",
    SeverityTier.C: "Alert detected near tracks. Speed reduced to {target:g} km/h.",
}


def _validate(state: SpeedControlState, classification: Classification, speed: float) -> str | None:
    if not math.isfinite(speed):
        return f"non-finite current speed {speed!r}"
    if speed < 0:
        return f"negative current speed {speed!r}"
    if not math.isfinite(classification.target_speed) or classification.target_speed < 0:
        return f"invalid target speed {classification.target_speed!r}"
    distance = classification.nearest_distance_km
    if distance is not None and (not math.isfinite(distance) or distance < 0):
        return f"invalid alert distance {distance!r}"
    return None


def tick(
    state: SpeedControlState,
    classification: Classification,
    *,
    current_speed: float | None = None,
    now: datetime | None = None,
    policy: SpeedPolicy | None = None,
) -> TickResult:
    """Advance *state* by one tick.

    Parameters
    ----------
    state : SpeedControlState
        State after the previous tick.
    classification : Classification
        Classifier output for this tick.
    current_speed : float or None
        Speed observed by the telemetry provider. Defaults to the speed
        recorded in *state*.
    now : datetime or None
        Tick time, recorded as ``last_transition_at`` on a phase change.
    policy : SpeedPolicy or None
        Rates to apply. Defaults to :class:`SpeedPolicy`.

    Returns
    -------
    TickResult
        The new state and commanded speed, or the unchanged state and an
        anomaly description when the inputs are invalid.
    """
    policy = policy or SpeedPolicy()
    speed = state.current_speed if current_speed is None else current_speed

    anomaly = _validate(state, classification, speed)
    if anomaly is not None:
        return TickResult(state=state, commanded_speed=state.current_speed, anomaly=anomaly)

    nominal = state.nominal_speed
    # Readings above the overshoot bound are clamped before either branch.
    speed = min(speed, nominal + policy.acceleration_overshoot_bound)
    if classification.tier is None:
        new_speed = min(nominal, speed + policy.accel_rate) if speed < nominal else speed
        phase = SpeedPhase.MONITORING
        target = nominal
    else:
        target = classification.target_speed
        rate = policy.deceleration_for(classification.tier, classification.nearest_distance_km)
        new_speed = max(0.0, speed - rate)
        if policy.hold_at_target:
            new_speed = max(new_speed, min(speed, target))
        phase = SpeedPhase.STOPPED if new_speed == 0 else SpeedPhase.SLOWING_DOWN

    last_transition_at = state.last_transition_at
    if phase != state.phase:
        last_transition_at = now or datetime.now(UTC)

    new_state = state.model_copy(
        update={
            "phase": phase,
            "current_speed": new_speed,
            "target_speed": target,
            "tier": classification.tier,
            "nearest_distance_km": classification.nearest_distance_km,
            "last_transition_at": last_transition_at,
        }
    )
    return TickResult(state=new_state, commanded_speed=new_speed)


def build_command(previous_speed: float, result: TickResult, *, now: datetime) -> SpeedCommand:
    """Speed command for the actuator after a tick."""
    state = result.state
    return SpeedCommand(
        vehicle_id=state.vehicle_id,
        commanded_speed=result.commanded_speed,
        target_speed=state.target_speed,
        delta=result.commanded_speed - previous_speed,
        phase=state.phase,
        issued_at=now,
    )


def describe_transition(previous: SpeedControlState, current: SpeedControlState) -> str:
    """Operator-facing message for a phase change."""
    if current.phase == SpeedPhase.STOPPED:
        return "Vehicle stopped: hazard within proximity radius."
    if current.phase == SpeedPhase.SLOWING_DOWN and current.tier is not None:
        return _TIER_MESSAGES[current.tier].format(target=current.target_speed)
    if previous.phase != SpeedPhase.MONITORING:
        return "Clear zone: no alerts detected. Resuming normal speed."
    return "Monitoring."


def speed_reduction_label(distance_km: float | None) -> str:
    """Display label for the reduction expected at *distance_km*."""
    if distance_km is None or not math.isfinite(distance_km):
        return "None"
    if distance_km <= 1:
        return "Full Stop (Aggressive)"
    if distance_km <= 2:
        return "Significant Reduction (Moderate)"
    if distance_km <= 5:
        return "Slight Reduction"
    return "None"
