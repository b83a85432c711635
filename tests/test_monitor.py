from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from pyrailguard.config import MonitorConfig
from pyrailguard.exceptions import MonitorError
from pyrailguard.models.alert import AlertSeverity, AlertType, HazardAlert
from pyrailguard.models.control import MonitorStatus, SpeedPhase, TransitionEvent
from pyrailguard.models.geo import GeoPoint
from pyrailguard.monitor import FleetMonitor, VehicleMonitor
from pyrailguard.proximity import AlertQuery
from pyrailguard.sources.static import StaticAlertSource
from pyrailguard.telemetry import ScriptedTelemetryProvider

NOW = datetime(2026, 10, 17, 9, 0, tzinfo=UTC)
TRACK = GeoPoint(longitude=77.0, latitude=28.0)
NEAR_TRACK = GeoPoint(longitude=77.0, latitude=28.005)


def _clock() -> datetime:
    return NOW


def _critical(alert_id: str = "critical-1", *, created_at: datetime = NOW) -> HazardAlert:
    return HazardAlert(
        id=alert_id,
        severity=AlertSeverity.CRITICAL,
        type=AlertType.EMERGENCY,
        origin=NEAR_TRACK,
        created_at=created_at,
    )


def _provider(vehicle_id: str = "train-1") -> ScriptedTelemetryProvider:
    return ScriptedTelemetryProvider(vehicle_id, [TRACK], nominal_speed=80.0)


class _BlockingSource:
    """Alert source whose fetch waits until released."""

    def __init__(self) -> None:
        self.release = asyncio.Event()
        self.calls = 0

    async def fetch_alerts(self, query: AlertQuery) -> list[HazardAlert]:
        self.calls += 1
        await self.release.wait()
        return []


class _SlowSource:
    async def fetch_alerts(self, query: AlertQuery) -> list[HazardAlert]:
        await asyncio.sleep(10)
        return []


@pytest.mark.asyncio
async def test_tick_restricts_and_commands_provider() -> None:
    provider = _provider()
    monitor = VehicleMonitor(provider, StaticAlertSource([_critical()]), clock=_clock)

    snapshot = await monitor.tick_once()

    assert snapshot.status == MonitorStatus.SLOWING
    assert snapshot.state.phase == SpeedPhase.SLOWING_DOWN
    assert snapshot.state.current_speed == 75.0
    assert [result.alert.id for result in snapshot.nearby] == ["critical-1"]
    assert not snapshot.stale
    assert snapshot.last_success_at == NOW
    assert [command.commanded_speed for command in provider.commands] == [75.0]
    assert await provider.current_speed() == 75.0


@pytest.mark.asyncio
async def test_status_is_idle_before_first_tick() -> None:
    monitor = VehicleMonitor(_provider(), StaticAlertSource(), clock=_clock)

    snapshot = monitor.snapshot()

    assert snapshot.status == MonitorStatus.IDLE
    assert snapshot.state.phase == SpeedPhase.MONITORING
    assert snapshot.state.last_transition_at == NOW


@pytest.mark.asyncio
async def test_fetch_failure_freezes_state_and_marks_stale() -> None:
    source = StaticAlertSource([_critical()])
    provider = _provider()
    monitor = VehicleMonitor(provider, source, clock=_clock)
    await monitor.tick_once()
    before = monitor.state

    source.fail_next()
    failed = await monitor.tick_once()

    assert failed.stale
    assert failed.consecutive_failures == 1
    assert failed.last_error
    assert failed.state == before
    assert len(provider.commands) == 1

    recovered = await monitor.tick_once()

    assert not recovered.stale
    assert recovered.consecutive_failures == 0
    assert recovered.last_error is None
    assert recovered.state.current_speed == 70.0


@pytest.mark.asyncio
async def test_failure_does_not_clear_restriction_after_alerts_vanish() -> None:
    source = StaticAlertSource([_critical()])
    monitor = VehicleMonitor(_provider(), source, clock=_clock)
    await monitor.tick_once()

    source.clear()
    source.fail_next()
    snapshot = await monitor.tick_once()

    assert snapshot.state.phase == SpeedPhase.SLOWING_DOWN
    assert snapshot.state.target_speed == 20.0


@pytest.mark.asyncio
async def test_telemetry_failure_freezes_state() -> None:
    provider = _provider()
    monitor = VehicleMonitor(provider, StaticAlertSource([_critical()]), clock=_clock)
    before = monitor.state

    provider.fail_next()
    snapshot = await monitor.tick_once()

    assert snapshot.stale
    assert snapshot.state == before
    assert provider.commands == []


@pytest.mark.asyncio
async def test_fetch_timeout_is_a_transient_failure() -> None:
    config = MonitorConfig(fetch_timeout=0.01)
    monitor = VehicleMonitor(_provider(), _SlowSource(), config=config, clock=_clock)
    before = monitor.state

    snapshot = await monitor.tick_once()

    assert snapshot.stale
    assert snapshot.consecutive_failures == 1
    assert snapshot.state == before


@pytest.mark.asyncio
async def test_overlapping_tick_is_skipped() -> None:
    source = _BlockingSource()
    monitor = VehicleMonitor(_provider(), source, clock=_clock)

    first = asyncio.create_task(monitor.tick_once())
    await asyncio.sleep(0)
    skipped = await monitor.tick_once()
    source.release.set()
    completed = await first

    assert source.calls == 1
    assert skipped.skipped_ticks == 1
    assert completed.skipped_ticks == 1
    assert not completed.stale


@pytest.mark.asyncio
async def test_invalid_speed_reading_is_reported_not_applied() -> None:
    provider = _provider()
    monitor = VehicleMonitor(provider, StaticAlertSource([_critical()]), clock=_clock)
    before = monitor.state

    provider.set_speed(-3.0)
    for _ in range(3):
        snapshot = await monitor.tick_once()

    assert snapshot.anomaly is not None
    assert snapshot.stale
    assert snapshot.last_success_at is None
    assert snapshot.consecutive_failures == 3
    assert snapshot.state == before
    assert provider.commands == []

    provider.set_speed(80.0)
    recovered = await monitor.tick_once()

    assert not recovered.stale
    assert recovered.anomaly is None
    assert recovered.consecutive_failures == 0
    assert recovered.last_success_at == NOW
    assert recovered.state.current_speed == 75.0


@pytest.mark.asyncio
async def test_alerts_outside_window_are_ignored() -> None:
    old = _critical("old", created_at=NOW - timedelta(minutes=10))
    monitor = VehicleMonitor(_provider(), StaticAlertSource([old]), clock=_clock)

    snapshot = await monitor.tick_once()

    assert snapshot.nearby == []
    assert snapshot.state.phase == SpeedPhase.MONITORING


@pytest.mark.asyncio
async def test_transition_events_are_emitted_once_per_phase_change() -> None:
    events: list[TransitionEvent] = []
    source = StaticAlertSource([_critical()])
    monitor = VehicleMonitor(_provider(), source, clock=_clock, on_transition=events.append)

    await monitor.tick_once()
    await monitor.tick_once()
    source.clear()
    await monitor.tick_once()

    assert [(event.previous, event.current) for event in events] == [
        (SpeedPhase.MONITORING, SpeedPhase.SLOWING_DOWN),
        (SpeedPhase.SLOWING_DOWN, SpeedPhase.MONITORING),
    ]
    assert events[0].message == "Critical hazard detected ahead. Speed reduced to 20 km/h."
    assert events[0].occurred_at == NOW


@pytest.mark.asyncio
async def test_failing_transition_callback_does_not_break_tick() -> None:
    def explode(event: TransitionEvent) -> None:
        raise RuntimeError("display offline")

    monitor = VehicleMonitor(_provider(), StaticAlertSource([_critical()]), clock=_clock, on_transition=explode)

    snapshot = await monitor.tick_once()

    assert snapshot.state.phase == SpeedPhase.SLOWING_DOWN
    assert not snapshot.stale


@pytest.mark.asyncio
async def test_background_loop_ticks_until_stopped() -> None:
    source = StaticAlertSource([_critical()])
    monitor = VehicleMonitor(_provider(), source, config=MonitorConfig(tick_interval=0.01), clock=_clock)

    monitor.start()
    assert monitor.is_running
    await asyncio.sleep(0.05)
    await monitor.stop()

    assert not monitor.is_running
    assert source.calls >= 1
    assert monitor.state.current_speed < 80.0


@pytest.mark.asyncio
async def test_monitor_stops_promptly_while_ticking() -> None:
    source = StaticAlertSource([_critical()])
    config = MonitorConfig(tick_interval=0.001)

    for _ in range(30):
        monitor = VehicleMonitor(_provider(), source, config=config, clock=_clock)
        monitor.start()
        await asyncio.sleep(0.005)
        await asyncio.wait_for(monitor.stop(), timeout=1.0)
        assert not monitor.is_running


class TestFleetMonitor:
    @pytest.mark.asyncio
    async def test_failure_in_one_vehicle_does_not_affect_another(self) -> None:
        fleet = FleetMonitor(StaticAlertSource([_critical()]), clock=_clock)
        healthy = _provider("train-1")
        broken = _provider("train-2")
        fleet.add(healthy)
        fleet.add(broken)

        broken.fail_next()
        snapshots = await fleet.tick_all()

        assert snapshots["train-1"].state.current_speed == 75.0
        assert not snapshots["train-1"].stale
        assert snapshots["train-2"].stale
        assert snapshots["train-2"].state.current_speed == 80.0

    @pytest.mark.asyncio
    async def test_duplicate_and_unknown_vehicles_raise(self) -> None:
        fleet = FleetMonitor(StaticAlertSource(), clock=_clock)
        fleet.add(_provider("train-1"))

        with pytest.raises(MonitorError):
            fleet.add(_provider("train-1"))
        with pytest.raises(MonitorError):
            fleet.monitor("train-9")
        with pytest.raises(MonitorError):
            await fleet.stop("train-9")

    @pytest.mark.asyncio
    async def test_repeated_stop_does_not_hang(self) -> None:
        config = MonitorConfig(tick_interval=0.001)
        async with FleetMonitor(StaticAlertSource([_critical()]), config=config, clock=_clock) as fleet:
            for _ in range(30):
                fleet.start(_provider("train-a"))
                fleet.start(_provider("train-b"))
                await asyncio.sleep(0.02)
                await asyncio.wait_for(fleet.stop("train-a"), timeout=1.0)
                await asyncio.wait_for(fleet.stop("train-b"), timeout=1.0)
                assert fleet.vehicle_ids == []

    @pytest.mark.asyncio
    async def test_stop_discards_vehicle_state(self) -> None:
        config = MonitorConfig(tick_interval=0.01)
        async with FleetMonitor(StaticAlertSource(), config=config, clock=_clock) as fleet:
            first = fleet.start(_provider("train-1"))
            second = fleet.start(_provider("train-2"))
            await asyncio.sleep(0.02)

            await fleet.stop("train-1")

            assert fleet.vehicle_ids == ["train-2"]
            assert not first.is_running
            assert second.is_running
            assert set(fleet.snapshots()) == {"train-2"}

        assert fleet.vehicle_ids == []
        assert not second.is_running
