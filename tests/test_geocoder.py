from __future__ import annotations

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from pynodeloc._api.geocoder import HttpReverseGeocoder
from pynodeloc.exceptions import EnrichmentUnavailable


def _server(payload: object, *, status: int = 200, seen: list[dict[str, str]] | None = None) -> TestServer:
    async def handler(request: web.Request) -> web.Response:
        if seen is not None:
            seen.append(dict(request.query))
        if isinstance(payload, str):
            return web.Response(status=status, text=payload)
        return web.json_response(payload, status=status)

    app = web.Application()
    app.router.add_get("/api/reverse-geocode", handler)
    return TestServer(app, host="127.0.0.1")


@pytest.mark.asyncio
async def test_reverse_geocode_returns_location() -> None:
    seen: list[dict[str, str]] = []
    payload = {"location": " Berlin, Germany ", "method": "geonames", "coordinates": {"lat": 52.52, "lon": 13.4}}

    async with _server(payload, seen=seen) as server, aiohttp.ClientSession() as session:
        geocoder = HttpReverseGeocoder(session, f"http://127.0.0.1:{server.port}/")
        place = await geocoder.reverse_geocode(52.52, 13.40)

    assert place == "Berlin, Germany"
    assert seen == [{"lat": "52.520000", "lon": "13.400000", "method": "geonames"}]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("payload", "status"),
    [
        ({"error": "no match"}, 200),
        ({"location": "  "}, 200),
        ("not json", 200),
        ({"location": "Berlin"}, 500),
    ],
)
async def test_reverse_geocode_failures(payload: object, status: int) -> None:
    async with _server(payload, status=status) as server, aiohttp.ClientSession() as session:
        geocoder = HttpReverseGeocoder(session, f"http://127.0.0.1:{server.port}")
        with pytest.raises(EnrichmentUnavailable) as exc_info:
            await geocoder.reverse_geocode(52.52, 13.40)

    assert exc_info.value.endpoint == "/api/reverse-geocode"
    if status != 200:
        assert exc_info.value.status_code == status


def test_base_url_strips_trailing_slash() -> None:
    geocoder = HttpReverseGeocoder(None, "http://geo:8090/")  # type: ignore[arg-type]
    assert geocoder.base_url == "http://geo:8090"
