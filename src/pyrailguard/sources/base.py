"""Alert source interface and payload parsing."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from pydantic import ValidationError

from pyrailguard.exceptions import AlertParseError
from pyrailguard.models.alert import HazardAlert
from pyrailguard.proximity import AlertQuery

_logger = logging.getLogger(__name__)


class AlertSource(Protocol):
    """Structural interface for anything that can answer an :class:`AlertQuery`.

    Implementations raise :class:`~pyrailguard.exceptions.AlertSourceError`
    for transient failures; the monitor treats those as a frozen tick.
    """

    async def fetch_alerts(self, query: AlertQuery) -> list[HazardAlert]:
        ...


def parse_alert(payload: Mapping[str, Any]) -> HazardAlert:
    """Parse one alert-service record.

    Raises
    ------
    AlertParseError
        If required fields (id, severity, createdAt) are missing or invalid.
    """
    try:
        return HazardAlert.model_validate(dict(payload))
    except ValidationError as exc:
        raise AlertParseError(f"invalid alert payload: {exc.error_count()} error(s)") from exc


def parse_alerts(records: Iterable[Any]) -> list[HazardAlert]:
    """Parse a list of records, skipping the ones that cannot be parsed."""
    alerts: list[HazardAlert] = []
    for record in records:
        if isinstance(record, HazardAlert):
            alerts.append(record)
            continue
        if not isinstance(record, Mapping):
            _logger.debug("Skipping non-object alert record %r", type(record).__name__)
            continue
        try:
            alerts.append(parse_alert(record))
        except AlertParseError:
            _logger.debug("Skipping malformed alert %s", record.get("_id") or record.get("id"), exc_info=True)
    return alerts
