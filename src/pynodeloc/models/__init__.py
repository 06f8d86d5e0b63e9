"""Pydantic models for devices, samples, records and pass results."""

from pynodeloc.models._base import LocationStatus
from pynodeloc.models.device import DeviceIdentity
from pynodeloc.models.outcome import DeviceOutcome, OutcomeKind, PassResult
from pynodeloc.models.record import LocationRecord
from pynodeloc.models.sample import GeoSample

__all__ = [
    "DeviceIdentity",
    "DeviceOutcome",
    "GeoSample",
    "LocationRecord",
    "LocationStatus",
    "OutcomeKind",
    "PassResult",
]
