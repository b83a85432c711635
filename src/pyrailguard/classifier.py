"""Severity classification of nearby alerts.

The most restrictive tier present wins, regardless of which alert is
physically closer:

* tier A: any ``critical`` or ``high`` severity alert
* tier B: any animal alert (``animal_detected`` / ``animal_persistent``)
* tier C: any other alert
"""

from __future__ import annotations

from collections.abc import Sequence

from pyrailguard.config import SpeedPolicy
from pyrailguard.models.alert import AlertSeverity, AlertType, HazardAlert, ProximityResult
from pyrailguard.models.control import Classification, SeverityTier

_TIER_A_SEVERITIES = frozenset({AlertSeverity.CRITICAL, AlertSeverity.HIGH})
_TIER_B_TYPES = frozenset({AlertType.ANIMAL_DETECTED, AlertType.ANIMAL_PERSISTENT})

# Lower sorts first: A is the most restrictive.
_TIER_RANK: dict[SeverityTier, int] = {SeverityTier.A: 0, SeverityTier.B: 1, SeverityTier.C: 2}


def tier_for_alert(alert: HazardAlert) -> SeverityTier:
    if alert.severity in _TIER_A_SEVERITIES:
        return SeverityTier.A
    if alert.type in _TIER_B_TYPES:
        return SeverityTier.B
    return SeverityTier.C


def classify(
    nearby: Sequence[ProximityResult],
    *,
    nominal_speed: float,
    policy: SpeedPolicy | None = None,
) -> Classification:
    """Reduce a nearby alert set to a single target speed.

    An empty set yields no tier and *nominal_speed* as target.
    """
    policy = policy or SpeedPolicy()
    if not nearby:
        return Classification(tier=None, target_speed=nominal_speed)

    tier = min((tier_for_alert(result.alert) for result in nearby), key=_TIER_RANK.__getitem__)
    return Classification(
        tier=tier,
        target_speed=policy.target_for(tier),
        nearest_distance_km=min(result.distance_km for result in nearby),
        alert_count=len(nearby),
    )
