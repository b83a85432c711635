from __future__ import annotations

import math
from datetime import UTC, datetime, timedelta

import pytest

from pyrailguard.geo import EARTH_RADIUS_KM, haversine_km
from pyrailguard.models.alert import AlertSeverity, AlertStatus, AlertType, HazardAlert
from pyrailguard.models.geo import GeoPoint
from pyrailguard.proximity import AlertQuery, filter_nearby, nearest_distance

_NOW = datetime(2026, 10, 17, 9, 0, tzinfo=UTC)
_TRAIN = GeoPoint(longitude=77.0, latitude=28.0)


def _north_of(point: GeoPoint, km: float) -> GeoPoint:
    return GeoPoint(longitude=point.longitude, latitude=point.latitude + math.degrees(km / EARTH_RADIUS_KM))


def _alert(
    alert_id: str,
    origin: GeoPoint | None,
    *,
    status: AlertStatus = AlertStatus.ACTIVE,
    created_at: datetime = _NOW,
) -> HazardAlert:
    return HazardAlert(
        id=alert_id,
        severity=AlertSeverity.MEDIUM,
        type=AlertType.ANIMAL_DETECTED,
        status=status,
        origin=origin,
        created_at=created_at,
    )


def test_retains_alerts_within_radius_nearest_first() -> None:
    far = _alert("far", _north_of(_TRAIN, 1.8))
    near = _alert("near", _north_of(_TRAIN, 0.4))
    outside = _alert("outside", _north_of(_TRAIN, 5.0))

    results = filter_nearby([far, outside, near], _TRAIN)

    assert [result.alert.id for result in results] == ["near", "far"]
    assert results[0].distance_km == pytest.approx(0.4, rel=1e-6)
    assert nearest_distance(results) == results[0].distance_km


def test_radius_boundary_is_inclusive() -> None:
    origin = _north_of(_TRAIN, 2.0)
    boundary = haversine_km(_TRAIN, origin)
    alert = _alert("edge", origin)

    assert boundary == pytest.approx(2.0, abs=1e-9)
    assert len(filter_nearby([alert], _TRAIN, radius_km=boundary)) == 1
    assert filter_nearby([alert], _TRAIN, radius_km=boundary - 1e-9) == []


def test_alert_just_inside_default_radius_retained_and_just_outside_excluded() -> None:
    inside = _alert("inside", _north_of(_TRAIN, 1.999))
    outside = _alert("outside", _north_of(_TRAIN, 2.01))

    results = filter_nearby([inside, outside], _TRAIN)

    assert [result.alert.id for result in results] == ["inside"]


def test_alerts_without_origin_are_dropped_silently() -> None:
    results = filter_nearby([_alert("no-origin", None)], _TRAIN)
    assert results == []


def test_only_active_alerts_participate() -> None:
    origin = _north_of(_TRAIN, 0.5)
    alerts = [
        _alert("resolved", origin, status=AlertStatus.RESOLVED),
        _alert("ack", origin, status=AlertStatus.ACKNOWLEDGED),
        _alert("false", origin, status=AlertStatus.FALSE_ALARM),
        _alert("active", origin),
    ]

    results = filter_nearby(alerts, _TRAIN)

    assert [result.alert.id for result in results] == ["active"]


def test_alert_at_vehicle_position_has_zero_distance() -> None:
    results = filter_nearby([_alert("here", _TRAIN)], _TRAIN)
    assert results[0].distance_km == 0.0


def test_nearest_distance_of_empty_set_is_none() -> None:
    assert nearest_distance([]) is None


class TestAlertQuery:
    def test_recent_window(self) -> None:
        query = AlertQuery.recent(_NOW)
        assert query.since == _NOW - timedelta(minutes=5)
        assert query.limit == 50
        assert query.status == AlertStatus.ACTIVE

    def test_apply_filters_status_window_and_limit(self) -> None:
        origin = _north_of(_TRAIN, 0.1)
        alerts = [
            _alert("old", origin, created_at=_NOW - timedelta(minutes=6)),
            _alert("resolved", origin, status=AlertStatus.RESOLVED),
            _alert("newest", origin, created_at=_NOW),
            _alert("edge", origin, created_at=_NOW - timedelta(minutes=5)),
            _alert("recent", origin, created_at=_NOW - timedelta(minutes=1)),
        ]

        query = AlertQuery.recent(_NOW, limit=2)

        assert [alert.id for alert in query.apply(alerts)] == ["newest", "recent"]
        assert [alert.id for alert in AlertQuery.recent(_NOW).apply(alerts)] == ["newest", "recent", "edge"]
