from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from pynodeloc.config import ReconcilerConfig
from pynodeloc.exceptions import NodeLocError
from pynodeloc.models import DeviceIdentity, GeoSample, LocationRecord
from pynodeloc.reconciler import NodeLocationReconciler


@dataclass
class _Registry:
    service_url: str | None = None
    records: dict[str, LocationRecord] = field(default_factory=dict)
    service_lookups: list[tuple[str, str, int]] = field(default_factory=list)

    async def list_candidates(self, selector: str) -> list[DeviceIdentity]:
        return [DeviceIdentity(name="phone-a", address="10.0.0.7")]

    async def get_record(self, device: DeviceIdentity) -> LocationRecord | None:
        return self.records.get(device.name)

    async def write_record(self, device: DeviceIdentity, record: LocationRecord) -> None:
        self.records[device.name] = record

    async def find_service_url(self, name: str, namespace: str, default_port: int) -> str | None:
        self.service_lookups.append((name, namespace, default_port))
        return self.service_url


class _Telemetry:
    async def fetch(self, device: DeviceIdentity) -> GeoSample:
        return GeoSample(latitude=52.52, longitude=13.40)


class _Geocoder:
    async def reverse_geocode(self, latitude: float, longitude: float) -> str:
        return "Berlin, Germany"


@pytest.mark.asyncio
async def test_run_once_with_injected_collaborators() -> None:
    registry = _Registry()
    reconciler = NodeLocationReconciler(
        ReconcilerConfig(), registry=registry, telemetry=_Telemetry(), geocoder=_Geocoder()
    )

    async with reconciler:
        result = await reconciler.run_once()

    assert result.updated == 1
    assert registry.records["phone-a"].place_name == "Berlin, Germany"


@pytest.mark.asyncio
async def test_requires_context_manager() -> None:
    reconciler = NodeLocationReconciler(ReconcilerConfig(), registry=_Registry(), telemetry=_Telemetry())
    with pytest.raises(NodeLocError, match="async with"):
        await reconciler.run_once()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("configured", "discovered", "expected"),
    [
        ("http://geo.example:8090", "http://10.96.0.20:8090", "http://geo.example:8090"),
        (None, "http://10.96.0.20:8090", "http://10.96.0.20:8090"),
        (None, None, "http://localhost:8090"),
    ],
)
async def test_geocoder_url_discovery(configured: str | None, discovered: str | None, expected: str) -> None:
    registry = _Registry(service_url=discovered)
    config = ReconcilerConfig(geocoder_url=configured)

    async with NodeLocationReconciler(config, registry=registry, telemetry=_Telemetry()) as reconciler:
        assert reconciler._geocoder.base_url == expected  # type: ignore[union-attr]

    if configured is None:
        assert registry.service_lookups == [("reverse-geocoder", "default", 8090)]
    else:
        assert registry.service_lookups == []
