"""Internal constants shared across the library."""

USER_AGENT = "pynodeloc/1.0"

DEFAULT_INTERVAL_S: float = 30.0
DEFAULT_TELEMETRY_PORT = 8005
TELEMETRY_PATH = "/location"

DEFAULT_SELECTOR = "device-type=phone"
LABEL_PREFIX = "phone.location"
DEFAULT_ROLE_LABELS: dict[str, str] = {
    "device-type": "phone",
    "node-role.kubernetes.io/phone": "true",
}

GEOCODER_SERVICE_NAME = "reverse-geocoder"
GEOCODER_SERVICE_PORT = 8090
GEOCODER_FALLBACK_URL = "http://localhost:8090"
GEOCODER_PATH = "/api/reverse-geocode"
GEOCODER_METHOD = "geonames"

#: Minimum per-axis coordinate delta (degrees) treated as movement.
#: 0.0001 degrees is roughly 11 metres at the equator.
CHANGE_EPSILON_DEG: float = 0.0001

#: Place names are re-resolved at most once per device per day.
PLACE_NAME_TTL_S: float = 24 * 3600

#: Written when reverse geocoding fails, so the field is never empty.
UNKNOWN_PLACE = "Unknown"

# Kubernetes label value grammar.
LABEL_VALUE_MAX_LEN = 63
