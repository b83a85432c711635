"""Alert sources.

A source answers an :class:`~pyrailguard.proximity.AlertQuery` with the
candidate alert set for one tick.
"""

from pyrailguard.sources.base import AlertSource, parse_alert, parse_alerts
from pyrailguard.sources.http import HttpAlertSource
from pyrailguard.sources.static import StaticAlertSource

__all__ = ["AlertSource", "HttpAlertSource", "StaticAlertSource", "parse_alert", "parse_alerts"]
