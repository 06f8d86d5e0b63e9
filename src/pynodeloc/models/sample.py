"""Geolocation sample model."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from pynodeloc.models._base import UtcTimestamp, coerce_number, utcnow


class GeoSample(BaseModel):
    """One position report from a device.

    Construction fails with :class:`pydantic.ValidationError` when latitude or
    longitude is missing, non-numeric or out of range, or when an optional
    numeric field is present but not numeric.

    Parameters
    ----------
    latitude : float
        Degrees, -90..90.
    longitude : float
        Degrees, -180..180.
    altitude : float
        Metres; ``0`` when the device did not report one.
    observed_at : datetime
        Capture time (UTC). Taken from the payload ``timestamp`` when present.
    accuracy : float or None
        Reported horizontal accuracy in metres.
    provider : str or None
        Location provider name reported by the device (``gps``, ``network``).
    city : str or None
        Place name reported by the device itself, if any.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    latitude: float = Field(ge=-90.0, le=90.0, validation_alias=AliasChoices("latitude", "lat"))
    longitude: float = Field(ge=-180.0, le=180.0, validation_alias=AliasChoices("longitude", "lon", "lng"))
    altitude: float = 0.0
    observed_at: UtcTimestamp = Field(
        default_factory=utcnow,
        validation_alias=AliasChoices("observed_at", "timestamp", "time"),
    )
    accuracy: float | None = None
    provider: str | None = None
    city: str | None = None

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _coerce_coordinate(cls, value: Any) -> float:
        return coerce_number(value)

    @field_validator("altitude", mode="before")
    @classmethod
    def _coerce_altitude(cls, value: Any) -> float:
        if value is None:
            return 0.0
        return coerce_number(value)

    @field_validator("accuracy", mode="before")
    @classmethod
    def _coerce_accuracy(cls, value: Any) -> float | None:
        if value is None:
            return None
        return coerce_number(value)

    @field_validator("provider", "city", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        if not text or text.lower() == "null":
            return None
        return text
