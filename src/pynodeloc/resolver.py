"""Place name resolver with a per-device TTL cache.

Enrichment freshness is independent of coordinate freshness: within the TTL
a device keeps its cached place name even if it moved. A failed lookup is
cached as well, so an unavailable geocoder is asked at most once per device
per TTL window.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from pynodeloc._api.geocoder import ReverseGeocoder
from pynodeloc._constants import PLACE_NAME_TTL_S, UNKNOWN_PLACE
from pynodeloc.exceptions import EnrichmentUnavailable
from pynodeloc.models._base import utcnow
from pynodeloc.models.record import LocationRecord
from pynodeloc.models.sample import GeoSample

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedPlace:
    place_name: str
    resolved_at: datetime
    from_cache: bool = False

    @property
    def is_unknown(self) -> bool:
        return self.place_name == UNKNOWN_PLACE


@dataclass(frozen=True)
class ResolverCacheEntry:
    place_name: str
    resolved_at: datetime

    def is_fresh(self, now: datetime, ttl: timedelta) -> bool:
        return now - self.resolved_at < ttl


class PlaceNameResolver:
    """Cache-first reverse geocoding keyed by device name."""

    def __init__(
        self,
        geocoder: ReverseGeocoder,
        *,
        ttl: float = PLACE_NAME_TTL_S,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._geocoder = geocoder
        self._ttl = timedelta(seconds=ttl)
        self._clock = clock
        self._entries: dict[str, ResolverCacheEntry] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, device: str) -> asyncio.Lock:
        lock = self._locks.get(device)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[device] = lock
        return lock

    def cached(self, device: str) -> ResolverCacheEntry | None:
        """Return the fresh cache entry for *device*, if any."""
        entry = self._entries.get(device)
        if entry is None or not entry.is_fresh(self._clock(), self._ttl):
            return None
        return entry

    def invalidate(self, device: str) -> None:
        self._entries.pop(device, None)

    def _seed_from_record(self, device: str, stored: LocationRecord | None) -> None:
        """Adopt a stored place name so a restart does not re-resolve everything."""
        if device in self._entries or stored is None:
            return
        if stored.place_name is None or stored.place_name_resolved_at is None:
            return
        self._entries[device] = ResolverCacheEntry(
            place_name=stored.place_name,
            resolved_at=stored.place_name_resolved_at,
        )

    async def resolve(
        self,
        device: str,
        sample: GeoSample,
        *,
        stored: LocationRecord | None = None,
    ) -> ResolvedPlace:
        """Return the place name for *device* at *sample*.

        Never raises for geocoder failures; returns ``Unknown`` instead.
        """
        async with self._lock(device):
            self._seed_from_record(device, stored)
            entry = self.cached(device)
            if entry is not None:
                return ResolvedPlace(entry.place_name, entry.resolved_at, from_cache=True)

            attempted_at = self._clock()
            try:
                place_name = await self._geocoder.reverse_geocode(sample.latitude, sample.longitude)
            except EnrichmentUnavailable as exc:
                _logger.debug("%s: reverse geocoding failed: %s", device, exc)
                place_name = UNKNOWN_PLACE
            except asyncio.CancelledError:
                # Device budget ran out mid-lookup: count it as a failed attempt.
                self._entries[device] = ResolverCacheEntry(place_name=UNKNOWN_PLACE, resolved_at=attempted_at)
                raise

            self._entries[device] = ResolverCacheEntry(place_name=place_name, resolved_at=attempted_at)
            return ResolvedPlace(place_name, attempted_at)
