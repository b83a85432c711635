"""In-memory alert source."""

from __future__ import annotations

from collections.abc import Iterable

from pyrailguard.exceptions import AlertSourceError
from pyrailguard.models.alert import HazardAlert
from pyrailguard.proximity import AlertQuery


class StaticAlertSource:
    """Serves alerts from memory, applying the query like the alert service would.

    :meth:`fail_next` makes the next *count* fetches raise
    :class:`AlertSourceError`, for exercising the frozen-tick path.
    """

    def __init__(self, alerts: Iterable[HazardAlert] = ()) -> None:
        self._alerts: list[HazardAlert] = list(alerts)
        self._failures_pending = 0
        self.calls = 0

    @property
    def alerts(self) -> list[HazardAlert]:
        return list(self._alerts)

    def replace(self, alerts: Iterable[HazardAlert]) -> None:
        self._alerts = list(alerts)

    def add(self, alert: HazardAlert) -> None:
        self._alerts.append(alert)

    def clear(self) -> None:
        self._alerts = []

    def fail_next(self, count: int = 1) -> None:
        self._failures_pending += count

    async def fetch_alerts(self, query: AlertQuery) -> list[HazardAlert]:
        self.calls += 1
        if self._failures_pending > 0:
            self._failures_pending -= 1
            raise AlertSourceError("simulated alert source failure", endpoint="static")
        return query.apply(self._alerts)
