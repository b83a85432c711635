"""Alert window filtering.

Selects the alerts that are close enough to a vehicle to matter for the
current tick.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from pyrailguard.geo import haversine_km
from pyrailguard.models.alert import AlertStatus, HazardAlert, ProximityResult
from pyrailguard.models.geo import GeoPoint

_logger = logging.getLogger(__name__)

#: Alerts at or within this distance of a vehicle are "nearby".
DEFAULT_PROXIMITY_RADIUS_KM: float = 2.0


@dataclass(frozen=True, slots=True)
class AlertQuery:
    """Upstream constraints on the candidate alert set.

    Alert sources translate this into their own query language; it can
    also be applied to an in-memory collection with :meth:`apply`.
    """

    since: datetime
    limit: int = 50
    status: AlertStatus = AlertStatus.ACTIVE

    @classmethod
    def recent(cls, now: datetime, *, window: timedelta = timedelta(minutes=5), limit: int = 50) -> AlertQuery:
        return cls(since=now - window, limit=limit)

    def matches(self, alert: HazardAlert) -> bool:
        return alert.status == self.status and alert.created_at >= self.since

    def apply(self, alerts: Iterable[HazardAlert]) -> list[HazardAlert]:
        """Matching alerts, newest first, capped at :attr:`limit`."""
        matching = [alert for alert in alerts if self.matches(alert)]
        matching.sort(key=lambda alert: alert.created_at, reverse=True)
        return matching[: self.limit]


def filter_nearby(
    alerts: Iterable[HazardAlert],
    position: GeoPoint,
    *,
    radius_km: float = DEFAULT_PROXIMITY_RADIUS_KM,
) -> list[ProximityResult]:
    """Return the active alerts within *radius_km* of *position*, nearest first.

    The radius is inclusive. Alerts without a usable origin, or whose
    distance is not finite, are dropped without error.
    """
    results: list[ProximityResult] = []
    for alert in alerts:
        if alert.status != AlertStatus.ACTIVE:
            continue
        if alert.origin is None:
            continue
        distance = haversine_km(position, alert.origin)
        if not math.isfinite(distance):
            _logger.debug("Dropping alert %s: non-finite distance", alert.id)
            continue
        if distance <= radius_km:
            results.append(ProximityResult(alert=alert, distance_km=distance))
    results.sort(key=lambda result: result.distance_km)
    return results


def nearest_distance(results: Sequence[ProximityResult]) -> float | None:
    if not results:
        return None
    return min(result.distance_km for result in results)
