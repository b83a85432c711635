"""Telemetry providers.

A provider reports a vehicle's position and speed and receives the speed
command produced by each tick. The control loop depends only on the
:class:`TelemetryProvider` protocol, so a deterministic provider can be
substituted in tests and the random-walk simulator stays out of the core.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Protocol

from pyrailguard.exceptions import TelemetryError
from pyrailguard.models.control import SpeedCommand, SpeedPhase
from pyrailguard.models.geo import GeoPoint
from pyrailguard.models.telemetry import VehicleTelemetry

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TelemetryProvider(Protocol):
    """Structural interface for position/speed sources.

    ``apply_speed_command`` either drives the vehicle (simulation) or
    forwards the command as advisory output to a real actuator.
    """

    @property
    def vehicle_id(self) -> str:
        ...

    @property
    def nominal_speed(self) -> float:
        ...

    async def current_position(self) -> GeoPoint:
        ...

    async def current_speed(self) -> float:
        ...

    async def apply_speed_command(self, command: SpeedCommand) -> None:
        ...


async def read_telemetry(provider: TelemetryProvider, *, now: datetime | None = None) -> VehicleTelemetry:
    """Snapshot a provider into a :class:`VehicleTelemetry`."""
    return VehicleTelemetry(
        id=provider.vehicle_id,
        position=await provider.current_position(),
        current_speed=await provider.current_speed(),
        nominal_speed=provider.nominal_speed,
        last_updated=now or _utcnow(),
    )


class ScriptedTelemetryProvider:
    """Deterministic provider that walks a fixed trajectory.

    Each applied command moves the vehicle to the next point of
    *trajectory* (staying on the last one) and sets its speed to the
    commanded speed. :meth:`fail_next` makes the next position read
    raise :class:`TelemetryError`.
    """

    def __init__(
        self,
        vehicle_id: str,
        trajectory: Sequence[GeoPoint],
        *,
        nominal_speed: float,
        initial_speed: float | None = None,
    ) -> None:
        if not trajectory:
            raise ValueError("trajectory must contain at least one point")
        self._vehicle_id = vehicle_id
        self._trajectory = list(trajectory)
        self._index = 0
        self._nominal_speed = nominal_speed
        self._speed = nominal_speed if initial_speed is None else initial_speed
        self._failures_pending = 0
        self.commands: list[SpeedCommand] = []

    @property
    def vehicle_id(self) -> str:
        return self._vehicle_id

    @property
    def nominal_speed(self) -> float:
        return self._nominal_speed

    def set_speed(self, speed: float) -> None:
        """Override the reported speed (e.g. to inject a bad reading)."""
        self._speed = speed

    def fail_next(self, count: int = 1) -> None:
        self._failures_pending += count

    async def current_position(self) -> GeoPoint:
        if self._failures_pending > 0:
            self._failures_pending -= 1
            raise TelemetryError(f"scripted telemetry failure for {self._vehicle_id}")
        return self._trajectory[self._index]

    async def current_speed(self) -> float:
        return self._speed

    async def apply_speed_command(self, command: SpeedCommand) -> None:
        self.commands.append(command)
        self._speed = command.commanded_speed
        if self._index < len(self._trajectory) - 1:
            self._index += 1


class SimulatedTelemetryProvider:
    """Random-walk simulator used when no real telemetry is available.

    The heading drifts by up to ``±1e-5`` degrees per tick and is clamped to
    ``±1e-4`` degrees per tick. Movement is scaled down to 30% while slowing
    and halts when stopped. Speed follows the commanded speed; at cruise it
    fluctuates by up to ``±0.25`` km/h within ``[10, nominal + overshoot]``.

    Pass *seed* (or an explicit *rng*) for reproducible runs.
    """

    DRIFT: float = 0.00001
    MAX_STEP: float = 0.0001
    SLOWING_FACTOR: float = 0.3
    CRUISE_JITTER: float = 0.25
    MIN_CRUISE_SPEED: float = 10.0

    def __init__(
        self,
        vehicle_id: str,
        start: GeoPoint,
        *,
        nominal_speed: float,
        initial_speed: float | None = None,
        overshoot_bound: float = 5.0,
        seed: int | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._vehicle_id = vehicle_id
        self._position = start
        self._nominal_speed = nominal_speed
        self._speed = nominal_speed if initial_speed is None else initial_speed
        self._overshoot_bound = overshoot_bound
        self._rng = rng or random.Random(seed)
        self._clock = clock
        self._dx = self._rng.uniform(-self.MAX_STEP / 2, self.MAX_STEP / 2)
        self._dy = self._rng.uniform(-self.MAX_STEP / 2, self.MAX_STEP / 2)
        self.last_updated = clock()

    @property
    def vehicle_id(self) -> str:
        return self._vehicle_id

    @property
    def nominal_speed(self) -> float:
        return self._nominal_speed

    async def current_position(self) -> GeoPoint:
        return self._position

    async def current_speed(self) -> float:
        return self._speed

    async def apply_speed_command(self, command: SpeedCommand) -> None:
        self._speed = self._next_speed(command)
        self._position = self._next_position(command.phase)
        self.last_updated = self._clock()

    def _next_speed(self, command: SpeedCommand) -> float:
        cruising = command.phase == SpeedPhase.MONITORING and command.commanded_speed >= self._nominal_speed
        if not cruising:
            return command.commanded_speed
        jitter = self._rng.uniform(-self.CRUISE_JITTER, self.CRUISE_JITTER)
        ceiling = self._nominal_speed + self._overshoot_bound
        return max(self.MIN_CRUISE_SPEED, min(ceiling, command.commanded_speed + jitter))

    def _next_position(self, phase: SpeedPhase) -> GeoPoint:
        self._dx = max(-self.MAX_STEP, min(self.MAX_STEP, self._dx + self._rng.uniform(-self.DRIFT, self.DRIFT)))
        self._dy = max(-self.MAX_STEP, min(self.MAX_STEP, self._dy + self._rng.uniform(-self.DRIFT, self.DRIFT)))

        if phase == SpeedPhase.STOPPED:
            return self._position
        factor = self.SLOWING_FACTOR if phase == SpeedPhase.SLOWING_DOWN else 1.0

        longitude = self._position.longitude + self._dx * factor
        if longitude > 180.0:
            longitude -= 360.0
        elif longitude < -180.0:
            longitude += 360.0
        latitude = max(-90.0, min(90.0, self._position.latitude + self._dy * factor))
        return GeoPoint(longitude=longitude, latitude=latitude)
