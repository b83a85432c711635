from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from pyrailguard.exceptions import AlertSourceError
from pyrailguard.models.alert import AlertSeverity, AlertStatus, HazardAlert
from pyrailguard.proximity import AlertQuery
from pyrailguard.sources.static import StaticAlertSource

NOW = datetime(2026, 10, 17, 9, 0, tzinfo=UTC)


def _alert(alert_id: str, *, status: AlertStatus = AlertStatus.ACTIVE, age: timedelta = timedelta()) -> HazardAlert:
    return HazardAlert(id=alert_id, severity=AlertSeverity.LOW, status=status, created_at=NOW - age)


@pytest.mark.asyncio
async def test_static_source_applies_query() -> None:
    source = StaticAlertSource(
        [
            _alert("fresh"),
            _alert("stale", age=timedelta(hours=1)),
            _alert("resolved", status=AlertStatus.RESOLVED),
        ]
    )

    alerts = await source.fetch_alerts(AlertQuery.recent(NOW))

    assert [alert.id for alert in alerts] == ["fresh"]
    assert source.calls == 1


@pytest.mark.asyncio
async def test_static_source_failure_injection() -> None:
    source = StaticAlertSource([_alert("fresh")])
    source.fail_next(2)

    for _ in range(2):
        with pytest.raises(AlertSourceError):
            await source.fetch_alerts(AlertQuery.recent(NOW))
    assert len(await source.fetch_alerts(AlertQuery.recent(NOW))) == 1


@pytest.mark.asyncio
async def test_static_source_mutation() -> None:
    source = StaticAlertSource()
    source.add(_alert("a"))
    source.replace([_alert("b"), _alert("c")])

    assert [alert.id for alert in source.alerts] == ["b", "c"]
    source.clear()
    assert source.alerts == []
