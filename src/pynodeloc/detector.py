"""Change detection policy.

Decides whether a newly observed sample differs enough from the stored one
to warrant a registry write. Latitude and longitude are compared as plain
degree deltas without correcting for latitude, and altitude is carried but
never compared.
"""

from __future__ import annotations

from pynodeloc._constants import CHANGE_EPSILON_DEG
from pynodeloc.models.sample import GeoSample

# Stored coordinates have 6 decimals; differences below this are float noise.
_FLOAT_SLACK = 1e-9


def exceeds(delta: float, epsilon: float) -> bool:
    """Return True when ``|delta|`` is strictly greater than *epsilon*."""
    return abs(delta) - epsilon > _FLOAT_SLACK


def has_changed(
    previous: GeoSample | None,
    current: GeoSample,
    *,
    epsilon: float = CHANGE_EPSILON_DEG,
) -> bool:
    if previous is None:
        return True
    return exceeds(current.latitude - previous.latitude, epsilon) or exceeds(
        current.longitude - previous.longitude, epsilon
    )
