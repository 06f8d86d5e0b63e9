from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from pynodeloc.exceptions import EnrichmentUnavailable
from pynodeloc.models import GeoSample, LocationRecord
from pynodeloc.resolver import PlaceNameResolver

DAY = 24 * 3600


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 10, 17, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class _Geocoder:
    def __init__(self, answer: str = "Berlin, Germany", *, fail: bool = False, delay: float = 0.0) -> None:
        self.answer = answer
        self.fail = fail
        self.delay = delay
        self.calls: list[tuple[float, float]] = []

    async def reverse_geocode(self, latitude: float, longitude: float) -> str:
        self.calls.append((latitude, longitude))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise EnrichmentUnavailable("geocoder down", status_code=503)
        return self.answer


BERLIN = GeoSample(latitude=52.52, longitude=13.40)
POTSDAM = GeoSample(latitude=52.39, longitude=13.06)


@pytest.mark.asyncio
async def test_lookup_is_cached_within_ttl() -> None:
    clock = _Clock()
    geocoder = _Geocoder()
    resolver = PlaceNameResolver(geocoder, ttl=DAY, clock=clock)

    first = await resolver.resolve("phone-a", BERLIN)
    clock.advance(DAY - 1)
    second = await resolver.resolve("phone-a", BERLIN)

    assert len(geocoder.calls) == 1
    assert first.place_name == second.place_name == "Berlin, Germany"
    assert not first.from_cache
    assert second.from_cache
    assert second.resolved_at == first.resolved_at


@pytest.mark.asyncio
async def test_lookup_repeated_after_ttl() -> None:
    clock = _Clock()
    geocoder = _Geocoder()
    resolver = PlaceNameResolver(geocoder, ttl=DAY, clock=clock)

    await resolver.resolve("phone-a", BERLIN)
    clock.advance(DAY + 1)
    place = await resolver.resolve("phone-a", BERLIN)

    assert len(geocoder.calls) == 2
    assert place.resolved_at == clock.now


@pytest.mark.asyncio
async def test_movement_within_ttl_keeps_cached_name() -> None:
    clock = _Clock()
    geocoder = _Geocoder()
    resolver = PlaceNameResolver(geocoder, ttl=DAY, clock=clock)

    await resolver.resolve("phone-a", BERLIN)
    place = await resolver.resolve("phone-a", POTSDAM)

    assert place.place_name == "Berlin, Germany"
    assert geocoder.calls == [(52.52, 13.40)]


@pytest.mark.asyncio
async def test_failure_yields_unknown_and_is_cached() -> None:
    clock = _Clock()
    geocoder = _Geocoder(fail=True)
    resolver = PlaceNameResolver(geocoder, ttl=DAY, clock=clock)

    first = await resolver.resolve("phone-a", BERLIN)
    second = await resolver.resolve("phone-a", BERLIN)

    assert first.is_unknown
    assert second.is_unknown
    assert len(geocoder.calls) == 1


@pytest.mark.asyncio
async def test_cache_is_per_device() -> None:
    geocoder = _Geocoder()
    resolver = PlaceNameResolver(geocoder, clock=_Clock())

    await resolver.resolve("phone-a", BERLIN)
    await resolver.resolve("phone-b", BERLIN)

    assert len(geocoder.calls) == 2


@pytest.mark.asyncio
async def test_concurrent_resolves_share_one_lookup() -> None:
    geocoder = _Geocoder(delay=0.05)
    resolver = PlaceNameResolver(geocoder, clock=_Clock())

    places = await asyncio.gather(*(resolver.resolve("phone-a", BERLIN) for _ in range(3)))

    assert len(geocoder.calls) == 1
    assert {place.place_name for place in places} == {"Berlin, Germany"}


@pytest.mark.asyncio
async def test_seeds_from_stored_record() -> None:
    clock = _Clock()
    geocoder = _Geocoder()
    resolver = PlaceNameResolver(geocoder, ttl=DAY, clock=clock)
    stored = LocationRecord(
        sample=BERLIN,
        place_name="Berlin_Germany",
        place_name_resolved_at=clock.now - timedelta(hours=1),
        updated_at=clock.now - timedelta(hours=1),
    )

    place = await resolver.resolve("phone-a", BERLIN, stored=stored)

    assert geocoder.calls == []
    assert place.place_name == "Berlin_Germany"
    assert place.from_cache


@pytest.mark.asyncio
async def test_stale_stored_record_is_refreshed() -> None:
    clock = _Clock()
    geocoder = _Geocoder()
    resolver = PlaceNameResolver(geocoder, ttl=DAY, clock=clock)
    stored = LocationRecord(
        sample=BERLIN,
        place_name="Berlin_Germany",
        place_name_resolved_at=clock.now - timedelta(hours=25),
        updated_at=clock.now - timedelta(hours=25),
    )

    place = await resolver.resolve("phone-a", BERLIN, stored=stored)

    assert len(geocoder.calls) == 1
    assert place.place_name == "Berlin, Germany"


@pytest.mark.asyncio
async def test_invalidate_forces_lookup() -> None:
    geocoder = _Geocoder()
    resolver = PlaceNameResolver(geocoder, clock=_Clock())

    await resolver.resolve("phone-a", BERLIN)
    assert resolver.cached("phone-a") is not None
    resolver.invalidate("phone-a")
    assert resolver.cached("phone-a") is None
    await resolver.resolve("phone-a", BERLIN)

    assert len(geocoder.calls) == 2


@pytest.mark.asyncio
async def test_lookup_cut_off_by_caller_counts_as_failure() -> None:
    clock = _Clock()
    geocoder = _Geocoder(delay=10)
    resolver = PlaceNameResolver(geocoder, ttl=DAY, clock=clock)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(resolver.resolve("phone-a", BERLIN), timeout=0.05)

    entry = resolver.cached("phone-a")
    assert entry is not None
    assert entry.place_name == "Unknown"
    place = await resolver.resolve("phone-a", BERLIN)
    assert place.is_unknown
    assert len(geocoder.calls) == 1
