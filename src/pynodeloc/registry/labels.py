"""Label value codec for location records.

Kubernetes label values are at most 63 characters, must start and end with an
alphanumeric character and may only contain ``[-A-Za-z0-9_.]`` in between. A
leading minus sign or a colon is therefore not allowed, so:

* coordinates carry a hemisphere suffix: ``52.520000N``, ``33.868800S``
* altitude below sea level carries a ``b`` prefix: ``b12.5``
* timestamps use the ISO-8601 basic format: ``20261017T101500Z``

Plain signed decimals and extended ISO timestamps written by older tooling
are still accepted when decoding.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from collections.abc import Mapping
from datetime import UTC, datetime

from pynodeloc._constants import LABEL_VALUE_MAX_LEN, UNKNOWN_PLACE
from pynodeloc.models._base import LocationStatus
from pynodeloc.models.record import LocationRecord
from pynodeloc.models.sample import GeoSample

_logger = logging.getLogger(__name__)

LATITUDE = "latitude"
LONGITUDE = "longitude"
ALTITUDE = "altitude"
CITY = "city"
CITY_UPDATED = "city-updated"
UPDATED = "updated"
STATUS = "status"

LOCATION_FIELDS: tuple[str, ...] = (LATITUDE, LONGITUDE, ALTITUDE, CITY, CITY_UPDATED, UPDATED, STATUS)

_VALID_VALUE = re.compile(r"^(([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9])?$")
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_UNDERSCORE_RUNS = re.compile(r"_{2,}")
_EDGE_CHARS = "._-"

_TS_BASIC = "%Y%m%dT%H%M%SZ"
_TS_EXTENDED = "%Y-%m-%dT%H:%M:%SZ"
_EPOCH = datetime.fromtimestamp(0, tz=UTC)


def is_valid_label_value(value: str) -> bool:
    return len(value) <= LABEL_VALUE_MAX_LEN and _VALID_VALUE.match(value) is not None


def sanitize_place_name(value: str | None) -> str:
    """Make a place name safe for use as a label value.

    Folds to ASCII, replaces anything outside ``[A-Za-z0-9._-]`` with ``_``,
    collapses ``_`` runs and strips separators from both ends. Applying it
    twice gives the same result. Distinct names may collide.
    """
    if value is None:
        return UNKNOWN_PLACE
    folded = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    cleaned = _UNDERSCORE_RUNS.sub("_", _UNSAFE_CHARS.sub("_", folded))
    cleaned = cleaned.strip(_EDGE_CHARS)[:LABEL_VALUE_MAX_LEN].strip(_EDGE_CHARS)
    return cleaned or UNKNOWN_PLACE


def _encode_signed(value: float, positive: str, negative: str, decimals: int) -> str:
    suffix = negative if value < 0 else positive
    return f"{abs(value):.{decimals}f}{suffix}"


def encode_latitude(value: float) -> str:
    return _encode_signed(value, "N", "S", 6)


def encode_longitude(value: float) -> str:
    return _encode_signed(value, "E", "W", 6)


def _decode_signed(text: str, positive: str, negative: str) -> float:
    text = text.strip()
    if text and text[-1].upper() in (positive, negative):
        magnitude = float(text[:-1])
        return -magnitude if text[-1].upper() == negative else magnitude
    return float(text)


def decode_latitude(text: str) -> float:
    return _decode_signed(text, "N", "S")


def decode_longitude(text: str) -> float:
    return _decode_signed(text, "E", "W")


def encode_altitude(value: float) -> str:
    text = f"{abs(value):.1f}"
    return f"b{text}" if value < 0 else text


def decode_altitude(text: str) -> float:
    text = text.strip()
    if text.startswith("b"):
        return -float(text[1:])
    return float(text)


def encode_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime(_TS_BASIC)


def decode_timestamp(text: str) -> datetime:
    text = text.strip()
    for fmt in (_TS_BASIC, _TS_EXTENDED):
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=UTC)
        except ValueError:
            continue
    parsed = datetime.fromisoformat(text)
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


def label_key(prefix: str, name: str) -> str:
    return f"{prefix}/{name}"


def record_to_labels(record: LocationRecord, prefix: str) -> dict[str, str | None]:
    """Render every location field of *record* as labels.

    A ``None`` value removes the label in a merge patch, so the result always
    describes the complete record.
    """
    sample = record.sample
    resolved_at = record.place_name_resolved_at
    values: dict[str, str | None] = {
        LATITUDE: encode_latitude(sample.latitude),
        LONGITUDE: encode_longitude(sample.longitude),
        ALTITUDE: encode_altitude(sample.altitude),
        CITY: sanitize_place_name(record.place_name),
        CITY_UPDATED: encode_timestamp(resolved_at) if resolved_at is not None else None,
        UPDATED: encode_timestamp(record.updated_at),
        STATUS: str(record.status),
    }
    for name, value in values.items():
        if value is not None and not is_valid_label_value(value):
            raise ValueError(f"label {name}={value!r} is not a valid label value")
    return {label_key(prefix, name): value for name, value in values.items()}


def labels_to_record(labels: Mapping[str, str], prefix: str) -> LocationRecord | None:
    """Rebuild a record from node labels.

    Returns ``None`` when latitude or longitude is missing or unparsable,
    i.e. the device has never been reconciled.
    """

    def get(name: str) -> str | None:
        value = labels.get(label_key(prefix, name))
        return value if value else None

    lat_text, lon_text = get(LATITUDE), get(LONGITUDE)
    if lat_text is None or lon_text is None:
        return None

    try:
        latitude = decode_latitude(lat_text)
        longitude = decode_longitude(lon_text)
    except ValueError:
        _logger.debug("Unparsable stored coordinates %r, %r", lat_text, lon_text)
        return None

    altitude = 0.0
    alt_text = get(ALTITUDE)
    if alt_text is not None:
        try:
            altitude = decode_altitude(alt_text)
        except ValueError:
            _logger.debug("Unparsable stored altitude %r", alt_text)

    updated_at = _decode_optional_timestamp(get(UPDATED)) or _EPOCH
    resolved_at = _decode_optional_timestamp(get(CITY_UPDATED))

    try:
        status = LocationStatus(get(STATUS) or LocationStatus.ACTIVE)
    except ValueError:
        status = LocationStatus.ACTIVE

    try:
        sample = GeoSample(latitude=latitude, longitude=longitude, altitude=altitude, observed_at=updated_at)
    except ValueError:
        _logger.debug("Stored coordinates out of range: %s, %s", latitude, longitude)
        return None

    return LocationRecord(
        sample=sample,
        place_name=get(CITY),
        place_name_resolved_at=resolved_at,
        status=status,
        updated_at=updated_at,
    )


def _decode_optional_timestamp(text: str | None) -> datetime | None:
    if text is None:
        return None
    try:
        return decode_timestamp(text)
    except ValueError:
        _logger.debug("Unparsable stored timestamp %r", text)
        return None
