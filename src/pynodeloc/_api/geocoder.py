"""Reverse geocoding client.

Endpoint::

    GET <base>/api/reverse-geocode?lat=<lat>&lon=<lon>&method=<method>

Response: ``{"location": "Berlin, Germany", "method": ..., "coordinates": ...}``
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol

import aiohttp

from pynodeloc._constants import GEOCODER_METHOD, GEOCODER_PATH, USER_AGENT
from pynodeloc.exceptions import EnrichmentUnavailable

_logger = logging.getLogger(__name__)


class ReverseGeocoder(Protocol):
    async def reverse_geocode(self, latitude: float, longitude: float) -> str:
        ...


class HttpReverseGeocoder:
    """Query the in-cluster reverse geocoder service."""

    def __init__(
        self,
        http_session: aiohttp.ClientSession,
        base_url: str,
        *,
        method: str = GEOCODER_METHOD,
        connect_timeout: float = 10.0,
        request_timeout: float = 15.0,
    ) -> None:
        self._http = http_session
        self._base_url = base_url.rstrip("/")
        self._method = method
        self._timeout = aiohttp.ClientTimeout(total=request_timeout, connect=connect_timeout)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def reverse_geocode(self, latitude: float, longitude: float) -> str:
        """Return the place name for a coordinate.

        Raises
        ------
        EnrichmentUnavailable
            Network failure, non-200, invalid JSON or no ``location`` field.
        """
        endpoint = GEOCODER_PATH
        url = f"{self._base_url}{endpoint}"
        params = {"lat": f"{latitude:.6f}", "lon": f"{longitude:.6f}", "method": self._method}
        headers = {"accept": "application/json", "user-agent": USER_AGENT}

        _logger.debug("GET %s lat=%s lon=%s", url, params["lat"], params["lon"])

        try:
            async with self._http.get(url, params=params, headers=headers, timeout=self._timeout) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise EnrichmentUnavailable(
                        f"HTTP {resp.status} from {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except EnrichmentUnavailable:
            raise
        except asyncio.TimeoutError as exc:
            raise EnrichmentUnavailable(f"Request to {endpoint} timed out", endpoint=endpoint) from exc
        except (aiohttp.ClientError, UnicodeDecodeError) as exc:
            raise EnrichmentUnavailable(f"Request to {endpoint} failed: {exc}", endpoint=endpoint) from exc

        try:
            body: Any = json.loads(text)
        except ValueError as exc:
            raise EnrichmentUnavailable(f"Invalid JSON from {endpoint}: {text[:200]}", endpoint=endpoint) from exc

        location = body.get("location") if isinstance(body, dict) else None
        if not isinstance(location, str) or not location.strip():
            raise EnrichmentUnavailable(f"Missing 'location' field from {endpoint}", endpoint=endpoint)

        return location.strip()
