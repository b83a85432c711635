#!/usr/bin/env python3
"""Run a simulated fleet against a fixed set of hazard alerts.

Each train starts near a camera alert and random-walks under the speed
controller; every tick prints phase and speed per train. With
``--alerts-url`` the alerts are queried from a live alert service instead.

Usage::

    python scripts/simulate.py --trains 3 --ticks 40 --seed 7
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyrailguard import (  # noqa: E402
    AlertSeverity,
    AlertType,
    FleetMonitor,
    GeoPoint,
    HazardAlert,
    HttpAlertSource,
    MonitorConfig,
    SimulatedTelemetryProvider,
    StaticAlertSource,
    TransitionEvent,
    rank_alerts,
    speed_reduction_label,
)


def _section(title: str) -> str:
    line = "=" * 60
    return f"\n{line}\n  {title}\n{line}"


def _demo_alerts(origin: GeoPoint) -> list[HazardAlert]:
    now = datetime.now(UTC)
    return [
        HazardAlert(
            id="demo-critical",
            severity=AlertSeverity.CRITICAL,
            type=AlertType.EMERGENCY,
            origin=GeoPoint(longitude=origin.longitude, latitude=origin.latitude + 0.012),
            created_at=now,
        ),
        HazardAlert(
            id="demo-animal",
            severity=AlertSeverity.MEDIUM,
            type=AlertType.ANIMAL_DETECTED,
            origin=GeoPoint(longitude=origin.longitude + 0.03, latitude=origin.latitude),
            created_at=now,
        ),
        HazardAlert(
            id="demo-other",
            severity=AlertSeverity.LOW,
            type=AlertType.TRAIN_APPROACHING,
            origin=None,
            created_at=now,
        ),
    ]


def _print_transition(event: TransitionEvent) -> None:
    print(f"  >> {event.vehicle_id}: {event.previous} -> {event.current}  {event.message}")


async def main() -> None:
    parser = argparse.ArgumentParser(description="pyrailguard fleet simulation")
    parser.add_argument("--trains", type=int, default=2, help="Number of simulated trains")
    parser.add_argument("--ticks", type=int, default=30, help="Number of ticks to run")
    parser.add_argument("--nominal-speed", type=float, default=80.0, help="Nominal speed (km/h)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible runs")
    parser.add_argument("--alerts-url", default=None, help="Base URL of a live alert service")
    parser.add_argument("--json", dest="json_mode", action="store_true", help="Print final snapshots as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    config = MonitorConfig.from_env()
    origin = GeoPoint(longitude=77.2090, latitude=28.6139)

    alerts_url = args.alerts_url or config.alert_source_url
    http_source: HttpAlertSource | None = None
    source: StaticAlertSource | HttpAlertSource
    if alerts_url:
        http_source = HttpAlertSource(alerts_url)
        source = http_source
    else:
        static_source = StaticAlertSource(_demo_alerts(origin))
        source = static_source
        print(_section("ALERTS (display order)"))
        for alert in rank_alerts(static_source.alerts):
            print(f"  {alert.severity:<8} {alert.status:<12} {alert.type:<18} {alert.id}")

    print(_section("SIMULATION"))
    try:
        async with FleetMonitor(source, config=config, on_transition=_print_transition) as fleet:
            for index in range(args.trains):
                start = GeoPoint(longitude=origin.longitude + 0.004 * index, latitude=origin.latitude)
                seed = None if args.seed is None else args.seed + index
                fleet.add(
                    SimulatedTelemetryProvider(
                        f"train-{index + 1}",
                        start,
                        nominal_speed=args.nominal_speed,
                        overshoot_bound=config.policy.acceleration_overshoot_bound,
                        seed=seed,
                    )
                )

            for step in range(args.ticks):
                snapshots = await fleet.tick_all()
                for vehicle_id, snap in snapshots.items():
                    nearest = snap.state.nearest_distance_km
                    distance = f"{nearest:.2f} km" if nearest is not None else "-"
                    stale = " (stale)" if snap.stale else ""
                    print(
                        f"  t={step:03d} {vehicle_id:<8} {snap.status:<10} "
                        f"{snap.state.current_speed:6.1f} km/h  nearest={distance:<9} "
                        f"{speed_reduction_label(nearest)}{stale}"
                    )

            if args.json_mode:
                payload = {vid: snap.model_dump(mode="json") for vid, snap in fleet.snapshots().items()}
                print(json.dumps(payload, indent=2, ensure_ascii=False))
    finally:
        if http_source is not None:
            await http_source.close()


if __name__ == "__main__":
    asyncio.run(main())
