"""HTTP alert source for the alert service's ``/api/alerts`` endpoint."""

from __future__ import annotations

import json
import logging
from typing import Any

import aiohttp

from pyrailguard._redact import redact_for_log
from pyrailguard.exceptions import AlertSourceError
from pyrailguard.models.alert import HazardAlert
from pyrailguard.proximity import AlertQuery
from pyrailguard.sources.base import parse_alerts

_logger = logging.getLogger(__name__)

_ALERTS_ENDPOINT = "/api/alerts"


def build_query_params(query: AlertQuery) -> dict[str, str]:
    return {
        "status": str(query.status),
        "startDate": query.since.isoformat(),
        "limit": str(query.limit),
    }


class HttpAlertSource:
    """Queries hazard alerts over HTTP.

    Usage::

        async with HttpAlertSource("http://alerts.local") as source:
            alerts = await source.fetch_alerts(query)

    The response is expected to be ``{"data": [alert, ...], ...}``.
    Timeouts are enforced by the caller (the monitor wraps each fetch in an
    :func:`asyncio.timeout` block).
    """

    def __init__(
        self,
        base_url: str,
        *,
        session: aiohttp.ClientSession | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._external_session = session is not None
        self._http_session = session
        self._headers = dict(headers or {})

    async def __aenter__(self) -> HttpAlertSource:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
        self._http_session = None

    async def fetch_alerts(self, query: AlertQuery) -> list[HazardAlert]:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()

        url = f"{self._base_url}{_ALERTS_ENDPOINT}"
        params = build_query_params(query)
        _logger.debug("GET %s %s", url, params)

        try:
            async with self._http_session.get(url, params=params, headers=self._headers) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise AlertSourceError(
                        f"HTTP {resp.status} from {_ALERTS_ENDPOINT}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=_ALERTS_ENDPOINT,
                    )
        except AlertSourceError:
            raise
        except UnicodeDecodeError as exc:
            raise AlertSourceError(
                f"Undecodable response from {_ALERTS_ENDPOINT}: {exc.reason}",
                endpoint=_ALERTS_ENDPOINT,
            ) from exc
        except aiohttp.ClientError as exc:
            raise AlertSourceError(
                f"Request to {_ALERTS_ENDPOINT} failed: {exc}",
                endpoint=_ALERTS_ENDPOINT,
            ) from exc

        try:
            body = json.loads(text)
        except json.JSONDecodeError as exc:
            raise AlertSourceError(
                f"Invalid JSON from {_ALERTS_ENDPOINT}: {text[:200]}",
                endpoint=_ALERTS_ENDPOINT,
            ) from exc

        if not isinstance(body, dict) or not isinstance(body.get("data"), list):
            raise AlertSourceError(
                f"Missing 'data' list from {_ALERTS_ENDPOINT}",
                endpoint=_ALERTS_ENDPOINT,
            )

        _logger.debug("Alert response: %s", redact_for_log(body))
        return parse_alerts(body["data"])[: query.limit]
