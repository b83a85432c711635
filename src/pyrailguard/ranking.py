"""Display ordering for alert collections."""

from __future__ import annotations

from collections.abc import Iterable

from pyrailguard.models.alert import AlertSeverity, AlertStatus, HazardAlert

_SEVERITY_ORDER: dict[AlertSeverity, int] = {
    AlertSeverity.CRITICAL: 0,
    AlertSeverity.HIGH: 1,
    AlertSeverity.MEDIUM: 2,
    AlertSeverity.LOW: 3,
}

_STATUS_ORDER: dict[AlertStatus, int] = {
    AlertStatus.ACTIVE: 0,
    AlertStatus.ACKNOWLEDGED: 1,
    AlertStatus.RESOLVED: 2,
    AlertStatus.FALSE_ALARM: 3,
}


def rank_alerts(alerts: Iterable[HazardAlert], *, status_first: bool = False) -> list[HazardAlert]:
    """Return *alerts* ordered for display.

    Most severe first, then active before handled, then newest first.
    With *status_first* the status order takes precedence over severity,
    so every active alert is listed before any handled one.
    The input is not modified.
    """
    # Two stable passes: newest first, then the display key.
    ordered = sorted(alerts, key=lambda alert: alert.created_at, reverse=True)
    if status_first:
        ordered.sort(key=lambda alert: (_STATUS_ORDER[alert.status], _SEVERITY_ORDER[alert.severity]))
    else:
        ordered.sort(key=lambda alert: (_SEVERITY_ORDER[alert.severity], _STATUS_ORDER[alert.status]))
    return ordered
