"""Per-vehicle monitor loops.

Each monitored vehicle gets a :class:`VehicleMonitor` running as its own
asyncio task. A tick fetches the recent active alerts (with a timeout),
reads the vehicle's position and speed, then synchronously filters,
classifies and advances the speed-control state.

Ticks for one vehicle never overlap: a tick requested while another is in
flight is skipped, and periods overrun by a slow tick are dropped rather
than queued. A failing tick freezes the state at its last value and marks
the monitor stale; it never affects other vehicles.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field

from pyrailguard.classifier import classify
from pyrailguard.config import MonitorConfig
from pyrailguard.control import build_command, describe_transition, tick
from pyrailguard.exceptions import AlertSourceError, MonitorError, TelemetryError
from pyrailguard.models.alert import ProximityResult
from pyrailguard.models.control import MonitorStatus, SpeedControlState, TransitionEvent
from pyrailguard.proximity import AlertQuery, filter_nearby
from pyrailguard.sources.base import AlertSource
from pyrailguard.telemetry import TelemetryProvider

_logger = logging.getLogger(__name__)

TransitionCallback = Callable[[TransitionEvent], None]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class MonitorSnapshot(BaseModel):
    """What a presentation layer needs to render one vehicle's monitor."""

    model_config = ConfigDict(frozen=True)

    vehicle_id: str
    state: SpeedControlState
    status: MonitorStatus
    nearby: list[ProximityResult] = Field(default_factory=list)
    stale: bool = False
    """``True`` while the last tick failed; ``state`` is the last good one."""
    last_success_at: datetime | None = None
    consecutive_failures: int = 0
    skipped_ticks: int = 0
    anomaly: str | None = None
    last_error: str | None = None


class VehicleMonitor:
    """Control loop for a single vehicle.

    Usage::

        monitor = VehicleMonitor(provider, source, config=config)
        monitor.start()
        ...
        await monitor.stop()

    :meth:`tick_once` can also be driven directly by an external scheduler
    (or a test) without starting the background task.
    """

    def __init__(
        self,
        provider: TelemetryProvider,
        source: AlertSource,
        *,
        config: MonitorConfig | None = None,
        clock: Callable[[], datetime] = _utcnow,
        on_transition: TransitionCallback | None = None,
        state: SpeedControlState | None = None,
    ) -> None:
        self._provider = provider
        self._source = source
        self._config = config or MonitorConfig()
        self._clock = clock
        self._on_transition = on_transition
        self._state = state or SpeedControlState.initial(
            provider.vehicle_id,
            nominal_speed=provider.nominal_speed,
            now=clock(),
        )
        self._nearby: list[ProximityResult] = []
        self._busy = False
        self._task: asyncio.Task[None] | None = None
        self._stale = False
        self._last_success_at: datetime | None = None
        self._consecutive_failures = 0
        self._skipped_ticks = 0
        self._anomaly: str | None = None
        self._last_error: str | None = None

    @property
    def vehicle_id(self) -> str:
        return self._provider.vehicle_id

    @property
    def state(self) -> SpeedControlState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _status(self) -> MonitorStatus:
        if not self.is_running and self._last_success_at is None:
            return MonitorStatus.IDLE
        return MonitorStatus.from_phase(self._state.phase)

    def snapshot(self) -> MonitorSnapshot:
        return MonitorSnapshot(
            vehicle_id=self.vehicle_id,
            state=self._state,
            status=self._status(),
            nearby=list(self._nearby),
            stale=self._stale,
            last_success_at=self._last_success_at,
            consecutive_failures=self._consecutive_failures,
            skipped_ticks=self._skipped_ticks,
            anomaly=self._anomaly,
            last_error=self._last_error,
        )

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def tick_once(self) -> MonitorSnapshot:
        """Run one tick, or skip it if the previous one is still in flight."""
        if self._busy:
            self._skipped_ticks += 1
            _logger.debug("Skipping tick for %s: previous tick still running", self.vehicle_id)
            return self.snapshot()

        self._busy = True
        try:
            await self._tick()
        except Exception as exc:
            _logger.error("Unexpected error in tick for %s", self.vehicle_id, exc_info=True)
            self._mark_failed(str(exc) or type(exc).__name__)
        finally:
            self._busy = False
        return self.snapshot()

    async def _tick(self) -> None:
        config = self._config
        now = self._clock()
        query = AlertQuery.recent(now, window=timedelta(seconds=config.alert_window), limit=config.alert_limit)

        try:
            async with asyncio.timeout(config.fetch_timeout):
                alerts = await self._source.fetch_alerts(query)
                position = await self._provider.current_position()
            speed = await self._provider.current_speed()
        except TimeoutError as exc:
            _logger.warning("Tick for %s timed out after %.1fs; holding last state", self.vehicle_id, config.fetch_timeout)
            self._mark_failed(str(exc) or type(exc).__name__)
            return
        except (AlertSourceError, TelemetryError) as exc:
            _logger.warning("Tick for %s failed: %s; holding last state", self.vehicle_id, exc)
            self._mark_failed(str(exc) or type(exc).__name__)
            return

        nearby = filter_nearby(alerts, position, radius_km=config.proximity_radius_km)
        classification = classify(nearby, nominal_speed=self._state.nominal_speed, policy=config.policy)
        result = tick(self._state, classification, current_speed=speed, now=now, policy=config.policy)

        if not result.ok:
            # No state was computed, so the snapshot keeps showing stale data.
            _logger.warning("Ignoring tick for %s: %s", self.vehicle_id, result.anomaly)
            self._anomaly = result.anomaly
            self._mark_failed(result.anomaly or "anomaly")
            return

        self._stale = False
        self._consecutive_failures = 0
        self._last_error = None
        self._last_success_at = now

        previous = self._state
        self._state = result.state
        self._nearby = nearby
        self._anomaly = None
        _logger.debug(
            "Tick %s: %d nearby, tier=%s, speed %.1f -> %.1f (%s)",
            self.vehicle_id,
            len(nearby),
            classification.tier,
            speed,
            result.commanded_speed,
            result.state.phase,
        )

        if result.state.phase != previous.phase:
            self._emit_transition(previous, result.state, now)

        command = build_command(speed, result, now=now)
        try:
            await self._provider.apply_speed_command(command)
        except TelemetryError as exc:
            # The state is committed; the command is re-issued next tick.
            _logger.warning("Could not apply speed command for %s: %s", self.vehicle_id, exc)
            self._last_error = str(exc)

    def _mark_failed(self, reason: str) -> None:
        self._stale = True
        self._consecutive_failures += 1
        self._last_error = reason

    def _emit_transition(self, previous: SpeedControlState, current: SpeedControlState, now: datetime) -> None:
        event = TransitionEvent(
            vehicle_id=current.vehicle_id,
            previous=previous.phase,
            current=current.phase,
            tier=current.tier,
            target_speed=current.target_speed,
            message=describe_transition(previous, current),
            occurred_at=now,
        )
        _logger.info("%s: %s -> %s. %s", event.vehicle_id, event.previous, event.current, event.message)
        if self._on_transition is None:
            return
        try:
            self._on_transition(event)
        except Exception:
            _logger.debug("on_transition callback failed", exc_info=True)

    # ------------------------------------------------------------------
    # Background loop
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the periodic loop on the running event loop."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self.run(), name=f"railguard-monitor-{self.vehicle_id}")
        _logger.info("Started monitoring %s every %.1fs", self.vehicle_id, self._config.tick_interval)

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        _logger.info("Stopped monitoring %s", self.vehicle_id)

    async def run(self) -> None:
        """Tick every ``tick_interval`` seconds until cancelled."""
        loop = asyncio.get_running_loop()
        interval = self._config.tick_interval
        next_at = loop.time()
        while True:
            await self.tick_once()
            next_at += interval
            now = loop.time()
            if now > next_at:
                missed = int((now - next_at) // interval) + 1
                self._skipped_ticks += missed
                next_at += missed * interval
                _logger.debug("Tick for %s overran; skipped %d period(s)", self.vehicle_id, missed)
            await asyncio.sleep(next_at - now)


class FleetMonitor:
    """Owns one :class:`VehicleMonitor` per vehicle.

    Monitors share the alert source but no mutable state. Stopping a
    vehicle cancels its loop and discards its state.
    """

    def __init__(
        self,
        source: AlertSource,
        *,
        config: MonitorConfig | None = None,
        clock: Callable[[], datetime] = _utcnow,
        on_transition: TransitionCallback | None = None,
    ) -> None:
        self._source = source
        self._config = config or MonitorConfig()
        self._clock = clock
        self._on_transition = on_transition
        self._monitors: dict[str, VehicleMonitor] = {}

    async def __aenter__(self) -> FleetMonitor:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.stop_all()

    @property
    def vehicle_ids(self) -> list[str]:
        return list(self._monitors)

    def monitor(self, vehicle_id: str) -> VehicleMonitor:
        try:
            return self._monitors[vehicle_id]
        except KeyError:
            raise MonitorError(f"vehicle {vehicle_id!r} is not monitored") from None

    def add(self, provider: TelemetryProvider) -> VehicleMonitor:
        """Register a vehicle without starting its loop."""
        vehicle_id = provider.vehicle_id
        if vehicle_id in self._monitors:
            raise MonitorError(f"vehicle {vehicle_id!r} is already monitored")
        monitor = VehicleMonitor(
            provider,
            self._source,
            config=self._config,
            clock=self._clock,
            on_transition=self._on_transition,
        )
        self._monitors[vehicle_id] = monitor
        return monitor

    def start(self, provider: TelemetryProvider) -> VehicleMonitor:
        monitor = self.add(provider)
        monitor.start()
        return monitor

    async def stop(self, vehicle_id: str) -> None:
        monitor = self._monitors.pop(vehicle_id, None)
        if monitor is None:
            raise MonitorError(f"vehicle {vehicle_id!r} is not monitored")
        await monitor.stop()

    async def stop_all(self) -> None:
        monitors = list(self._monitors.values())
        self._monitors.clear()
        await asyncio.gather(*(monitor.stop() for monitor in monitors))

    async def tick_all(self) -> dict[str, MonitorSnapshot]:
        """Tick every vehicle once, concurrently."""
        monitors = list(self._monitors.values())
        snapshots = await asyncio.gather(*(monitor.tick_once() for monitor in monitors))
        return {snapshot.vehicle_id: snapshot for snapshot in snapshots}

    def snapshots(self) -> dict[str, MonitorSnapshot]:
        return {vehicle_id: monitor.snapshot() for vehicle_id, monitor in self._monitors.items()}
