"""Station position lookup and station-based telemetry.

Some deployments only know which station a train last passed. Station
positions come from an external geocoding lookup, which is slow and
rate limited, so resolved positions are kept in a bounded TTL cache.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable

from pyrailguard._cache import TTLCache
from pyrailguard.exceptions import TelemetryError
from pyrailguard.models.control import SpeedCommand
from pyrailguard.models.geo import GeoPoint

_logger = logging.getLogger(__name__)

#: Default lifetime of a resolved station position (24 hours).
DEFAULT_STATION_TTL: float = 24 * 3600

StationResolver = Callable[[str, str | None], Awaitable[GeoPoint | None]]
"""``resolver(station_code, station_name)`` returning a position or ``None``."""

CurrentStation = Callable[[], Awaitable[tuple[str, str | None] | None]]
"""Returns the ``(station_code, station_name)`` a vehicle is at, if known."""


class StationLocator:
    """Resolve station codes to positions, caching successful lookups.

    Failed lookups (``None`` or an exception from the resolver) are not
    cached, so the next call retries.
    """

    def __init__(
        self,
        resolver: StationResolver,
        *,
        ttl: float = DEFAULT_STATION_TTL,
        maxsize: int = 256,
        clock: Callable[[], float] = time.monotonic,
        cache: TTLCache[str, GeoPoint] | None = None,
    ) -> None:
        self._resolver = resolver
        self._cache: TTLCache[str, GeoPoint] = cache or TTLCache(ttl=ttl, maxsize=maxsize, clock=clock)

    @property
    def cache(self) -> TTLCache[str, GeoPoint]:
        return self._cache

    async def locate(self, station_code: str, station_name: str | None = None) -> GeoPoint | None:
        code = station_code.strip().upper()
        if not code:
            return None

        cached = self._cache.get(code)
        if cached is not None:
            return cached

        try:
            position = await self._resolver(code, station_name)
        except Exception:
            _logger.warning("Station lookup failed for %s", code, exc_info=True)
            return None

        if position is None:
            _logger.info("No position found for station %s", code)
            return None
        self._cache.set(code, position)
        return position


class StationTelemetryProvider:
    """Telemetry provider that places a vehicle at its current station.

    Speed commands are advisory: they are recorded and forwarded to
    *on_command* for a real actuator, never applied to the vehicle.
    Reported speed comes from *speed_reader* when given, otherwise the
    last advisory speed.
    """

    def __init__(
        self,
        vehicle_id: str,
        *,
        locator: StationLocator,
        current_station: CurrentStation,
        nominal_speed: float,
        speed_reader: Callable[[], Awaitable[float]] | None = None,
        on_command: Callable[[SpeedCommand], Awaitable[None]] | None = None,
    ) -> None:
        self._vehicle_id = vehicle_id
        self._locator = locator
        self._current_station = current_station
        self._nominal_speed = nominal_speed
        self._speed_reader = speed_reader
        self._on_command = on_command
        self._advisory_speed = nominal_speed
        self._last_position: GeoPoint | None = None
        self.last_command: SpeedCommand | None = None

    @property
    def vehicle_id(self) -> str:
        return self._vehicle_id

    @property
    def nominal_speed(self) -> float:
        return self._nominal_speed

    async def current_position(self) -> GeoPoint:
        station = await self._current_station()
        position: GeoPoint | None = None
        if station is not None:
            code, name = station
            position = await self._locator.locate(code, name)
        if position is not None:
            self._last_position = position
            return position
        if self._last_position is not None:
            _logger.debug("Using last known position for %s", self._vehicle_id)
            return self._last_position
        raise TelemetryError(f"no known position for vehicle {self._vehicle_id}")

    async def current_speed(self) -> float:
        if self._speed_reader is not None:
            return await self._speed_reader()
        return self._advisory_speed

    async def apply_speed_command(self, command: SpeedCommand) -> None:
        self.last_command = command
        self._advisory_speed = command.commanded_speed
        if self._on_command is not None:
            await self._on_command(command)
