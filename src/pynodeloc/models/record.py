"""Stored location record model."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from pynodeloc.models._base import LocationStatus
from pynodeloc.models.sample import GeoSample


class LocationRecord(BaseModel):
    """The cluster's current belief about one device's location.

    Always written as a whole; there are no partial updates.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    sample: GeoSample
    place_name: str | None = None
    place_name_resolved_at: datetime | None = None
    status: LocationStatus = LocationStatus.ACTIVE
    updated_at: datetime

    def deactivated(self, now: datetime) -> LocationRecord:
        """Return a copy marked inactive, keeping the last known position."""
        return self.model_copy(update={"status": LocationStatus.INACTIVE, "updated_at": now})
