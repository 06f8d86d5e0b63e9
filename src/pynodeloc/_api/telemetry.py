"""Device telemetry client.

Queries ``GET /location`` on a phone node and decodes the payload into a
:class:`~pynodeloc.models.sample.GeoSample`. Every failure is classified as
unreachable, malformed or invalid; none of them is fatal for a pass.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol

import aiohttp
from pydantic import ValidationError

from pynodeloc._constants import TELEMETRY_PATH, USER_AGENT
from pynodeloc.exceptions import DeviceInvalidCoordinates, DeviceMalformedPayload, DeviceUnreachable
from pynodeloc.models.device import DeviceIdentity
from pynodeloc.models.sample import GeoSample

_logger = logging.getLogger(__name__)


class TelemetryClient(Protocol):
    """Structural interface the engine uses to fetch a device's position."""

    async def fetch(self, device: DeviceIdentity) -> GeoSample:
        ...


def build_location_url(address: str, port: int) -> str:
    host = f"[{address}]" if ":" in address and not address.startswith("[") else address
    return f"http://{host}:{port}{TELEMETRY_PATH}"


def describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        loc = ".".join(str(item) for item in error.get("loc", ())) or "payload"
        parts.append(f"{loc}: {error.get('msg', 'invalid')}")
    return "; ".join(parts)


def parse_location_payload(device: str, body: bytes | str) -> GeoSample:
    """Strictly decode a ``/location`` response body.

    Raises
    ------
    DeviceMalformedPayload
        Body is not JSON or not a JSON object.
    DeviceInvalidCoordinates
        Coordinates are missing, non-numeric or out of range.
    """
    try:
        data: Any = json.loads(body)
    except ValueError as exc:
        # Includes integers past the interpreter's str-to-int digit limit.
        preview = body[:120] if isinstance(body, str) else body[:120].decode("utf-8", "replace")
        raise DeviceMalformedPayload(
            f"{device}: location payload is not JSON: {preview!r}",
            device=device,
        ) from exc

    if not isinstance(data, dict):
        raise DeviceMalformedPayload(
            f"{device}: location payload is a JSON {type(data).__name__}, expected an object",
            device=device,
        )

    try:
        return GeoSample.model_validate(data)
    except ValidationError as exc:
        raise DeviceInvalidCoordinates(
            f"{device}: invalid location payload ({describe_validation_error(exc)})",
            device=device,
        ) from exc


class HttpTelemetryClient:
    """Fetch telemetry from the phone app over plain HTTP.

    The connect and total timeouts keep one slow device from stalling the
    fleet-wide pass.
    """

    def __init__(
        self,
        http_session: aiohttp.ClientSession,
        *,
        port: int,
        connect_timeout: float = 3.0,
        request_timeout: float = 5.0,
    ) -> None:
        self._http = http_session
        self._port = port
        self._timeout = aiohttp.ClientTimeout(total=request_timeout, connect=connect_timeout)

    async def fetch(self, device: DeviceIdentity) -> GeoSample:
        if device.address is None:
            raise DeviceUnreachable(f"{device.name}: node reports no address", device=device.name)

        url = build_location_url(device.address, self._port)
        headers = {"accept": "application/json", "user-agent": USER_AGENT}

        _logger.debug("GET %s (%s)", url, device.name)

        try:
            async with self._http.get(url, headers=headers, timeout=self._timeout) as resp:
                body = await resp.read()
                if resp.status != 200:
                    raise DeviceUnreachable(
                        f"{device.name}: HTTP {resp.status} from {url}: {body[:120]!r}",
                        device=device.name,
                        status_code=resp.status,
                    )
        except DeviceUnreachable:
            raise
        except asyncio.TimeoutError as exc:
            raise DeviceUnreachable(f"{device.name}: request to {url} timed out", device=device.name) from exc
        except aiohttp.ClientError as exc:
            raise DeviceUnreachable(f"{device.name}: request to {url} failed: {exc}", device=device.name) from exc

        return parse_location_payload(device.name, body)
