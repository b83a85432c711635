"""Speed-control state and command models."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class SeverityTier(StrEnum):
    """Restriction tier assigned by the severity classifier.

    ``A`` is the most restrictive.
    """

    A = "A"
    B = "B"
    C = "C"


class SpeedPhase(StrEnum):
    MONITORING = "monitoring"
    SLOWING_DOWN = "slowing_down"
    STOPPED = "stopped"


class MonitorStatus(StrEnum):
    """Display status of a vehicle monitor."""

    IDLE = "idle"
    MONITORING = "monitoring"
    SLOWING = "slowing"
    STOPPED = "stopped"

    @classmethod
    def from_phase(cls, phase: SpeedPhase | None) -> MonitorStatus:
        if phase is None:
            return cls.IDLE
        return {
            SpeedPhase.MONITORING: cls.MONITORING,
            SpeedPhase.SLOWING_DOWN: cls.SLOWING,
            SpeedPhase.STOPPED: cls.STOPPED,
        }[phase]


class Classification(BaseModel):
    """Outcome of classifying the nearby alert set for one tick.

    ``tier`` is ``None`` when no alert is nearby; ``target_speed`` is then
    the vehicle's nominal speed.
    """

    model_config = ConfigDict(frozen=True)

    tier: SeverityTier | None = None
    target_speed: float
    nearest_distance_km: float | None = None
    alert_count: int = 0

    @property
    def restricted(self) -> bool:
        return self.tier is not None


class SpeedControlState(BaseModel):
    """Per-vehicle speed-control state.

    Instances are immutable; :func:`pyrailguard.control.tick` returns a new
    state for every tick.
    """

    model_config = ConfigDict(frozen=True)

    vehicle_id: str
    phase: SpeedPhase = SpeedPhase.MONITORING
    current_speed: float = Field(ge=0.0)
    nominal_speed: float = Field(gt=0.0)
    target_speed: float
    tier: SeverityTier | None = None
    nearest_distance_km: float | None = None
    last_transition_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def initial(
        cls,
        vehicle_id: str,
        *,
        nominal_speed: float,
        current_speed: float | None = None,
        now: datetime | None = None,
    ) -> SpeedControlState:
        """State for a vehicle that just started being monitored."""
        return cls(
            vehicle_id=vehicle_id,
            phase=SpeedPhase.MONITORING,
            current_speed=nominal_speed if current_speed is None else current_speed,
            nominal_speed=nominal_speed,
            target_speed=nominal_speed,
            last_transition_at=now or datetime.now(UTC),
        )


class SpeedCommand(BaseModel):
    """Speed command produced by one tick, for an actuator or simulator."""

    model_config = ConfigDict(frozen=True)

    vehicle_id: str
    commanded_speed: float
    """Speed the vehicle should run at after this tick (km/h)."""
    target_speed: float
    """Speed the active restriction asks for (nominal when unrestricted)."""
    delta: float
    """Signed change from the speed observed at the start of the tick."""
    phase: SpeedPhase
    issued_at: datetime


class TickResult(BaseModel):
    """Result of one state-machine evaluation.

    ``anomaly`` is set when the inputs were rejected; the state is then
    returned unchanged.
    """

    model_config = ConfigDict(frozen=True)

    state: SpeedControlState
    commanded_speed: float
    anomaly: str | None = None

    @property
    def ok(self) -> bool:
        return self.anomaly is None


class TransitionEvent(BaseModel):
    """Emitted when a vehicle changes phase."""

    model_config = ConfigDict(frozen=True)

    vehicle_id: str
    previous: SpeedPhase
    current: SpeedPhase
    tier: SeverityTier | None = None
    target_speed: float
    message: str
    occurred_at: datetime
