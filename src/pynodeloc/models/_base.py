"""Shared model helpers.

Telemetry arrives from phone apps that are not under our control, so every
numeric field goes through :func:`coerce_number`, which accepts JSON numbers
and numeric strings but rejects booleans, NaN and infinities.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Any

from pydantic import BeforeValidator

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def utcnow() -> datetime:
    return datetime.now(UTC)


def coerce_number(value: Any) -> float:
    """Return *value* as a finite float or raise :class:`ValueError`."""
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, (int, float)):
        try:
            result = float(value)
        except OverflowError:
            raise ValueError("number too large") from None
    elif isinstance(value, str):
        try:
            result = float(value.strip())
        except ValueError:
            raise ValueError(f"{value!r} is not numeric") from None
    else:
        raise ValueError(f"{type(value).__name__} is not numeric")
    if not math.isfinite(result):
        raise ValueError(f"{value!r} is not finite")
    return result


def parse_timestamp(value: Any) -> datetime:
    """Convert an epoch timestamp (seconds **or** milliseconds) to a UTC datetime.

    ``None`` means "now"; naive datetimes are assumed to be UTC.
    """
    if value is None:
        return utcnow()
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    ts = coerce_number(value)
    if ts >= _MS_THRESHOLD:
        ts /= 1000.0
    try:
        return datetime.fromtimestamp(ts, tz=UTC)
    except (OverflowError, OSError, ValueError) as exc:
        raise ValueError(f"timestamp {value!r} out of range") from exc


UtcTimestamp = Annotated[datetime, BeforeValidator(parse_timestamp)]
"""Annotated type that coerces epoch seconds/ms or datetimes to aware UTC datetimes."""


class LocationStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
