"""Registry interface used by the reconciliation engine."""

from __future__ import annotations

from typing import Protocol

from pynodeloc.models.device import DeviceIdentity
from pynodeloc.models.record import LocationRecord


class NodeRegistry(Protocol):
    """Cluster state store holding per-device location records.

    This is the only component allowed to mutate cluster state.
    """

    async def list_candidates(self, selector: str) -> list[DeviceIdentity]:
        """Return devices matching *selector*; raises ``CandidateListUnavailable``."""
        ...

    async def get_record(self, device: DeviceIdentity) -> LocationRecord | None:
        """Return the stored record; raises ``RegistryReadFailed``."""
        ...

    async def write_record(self, device: DeviceIdentity, record: LocationRecord) -> None:
        """Replace all location fields at once; raises ``RegistryWriteFailed``."""
        ...
