"""Reconciler configuration for pynodeloc."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pynodeloc._constants import (
    CHANGE_EPSILON_DEG,
    DEFAULT_INTERVAL_S,
    DEFAULT_ROLE_LABELS,
    DEFAULT_SELECTOR,
    DEFAULT_TELEMETRY_PORT,
    GEOCODER_METHOD,
    GEOCODER_SERVICE_NAME,
    GEOCODER_SERVICE_PORT,
    LABEL_PREFIX,
    PLACE_NAME_TTL_S,
)
from pynodeloc.exceptions import NodeLocConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _parse_labels(value: str) -> dict[str, str]:
    """Parse ``key=value,key2=value2`` into a dict."""
    labels: dict[str, str] = {}
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        key, sep, val = item.partition("=")
        if not sep or not key.strip():
            raise NodeLocConfigError(f"invalid label {item!r}, expected key=value")
        labels[key.strip()] = val.strip()
    return labels


@dataclasses.dataclass(frozen=True)
class ReconcilerConfig:
    """Reconciler configuration.

    Parameters
    ----------
    interval : float
        Seconds to sleep between passes in continuous mode.
    telemetry_port : int
        Port of the phone app serving ``GET /location``.
    connect_timeout : float
        Connect timeout (seconds) for telemetry requests.
    request_timeout : float
        Overall timeout (seconds) for one telemetry request.
    selector : str
        Label selector for candidate nodes.
    label_prefix : str
        Namespace of the location labels.
    role_labels : dict
        Labels re-applied on every write so phone nodes stay selectable.
    geocoder_url : str or None
        Base URL of the reverse geocoder. ``None`` discovers the
        ``geocoder_service`` Service in the cluster.
    geocoder_service : str
        Name of the reverse geocoder Service.
    geocoder_namespace : str
        Namespace of the reverse geocoder Service.
    geocoder_port : int
        Fallback port of the reverse geocoder Service.
    geocoder_method : str
        ``method`` query parameter sent to the geocoder.
    geocoder_connect_timeout : float
        Connect timeout (seconds) for geocoder requests.
    geocoder_timeout : float
        Overall timeout (seconds) for one geocoder request.
    place_name_ttl : float
        Seconds a resolved (or failed) place name stays cached.
    change_epsilon : float
        Minimum per-axis coordinate delta in degrees that triggers a write.
    concurrency : int
        Number of devices reconciled in parallel. ``1`` is sequential.
    device_timeout : float
        Budget (seconds) for one device's fetch/detect/enrich/write chain.
        Defaults above the sum of the step timeouts it wraps.
    registry_timeout : float
        Timeout (seconds) for each Kubernetes API request.
    inactive_after : int
        Consecutive failed fetches after which an active record is marked
        ``inactive``. ``0`` disables marking.
    kubeconfig : str or None
        Path to a kubeconfig file. ``None`` tries in-cluster config first.
    kube_context : str or None
        kubeconfig context to use.
    """

    interval: float = DEFAULT_INTERVAL_S
    telemetry_port: int = DEFAULT_TELEMETRY_PORT
    connect_timeout: float = 3.0
    request_timeout: float = 5.0
    selector: str = DEFAULT_SELECTOR
    label_prefix: str = LABEL_PREFIX
    role_labels: dict[str, str] = dataclasses.field(default_factory=lambda: dict(DEFAULT_ROLE_LABELS))
    geocoder_url: str | None = None
    geocoder_service: str = GEOCODER_SERVICE_NAME
    geocoder_namespace: str = "default"
    geocoder_port: int = GEOCODER_SERVICE_PORT
    geocoder_method: str = GEOCODER_METHOD
    geocoder_connect_timeout: float = 10.0
    geocoder_timeout: float = 15.0
    place_name_ttl: float = PLACE_NAME_TTL_S
    change_epsilon: float = CHANGE_EPSILON_DEG
    concurrency: int = 4
    device_timeout: float = 45.0
    registry_timeout: float = 10.0
    inactive_after: int = 0
    kubeconfig: str | None = None
    kube_context: str | None = None

    def __post_init__(self) -> None:
        if self.interval <= 0:
            raise NodeLocConfigError(f"interval must be positive, got {self.interval}")
        if not 0 < self.telemetry_port < 65536:
            raise NodeLocConfigError(f"telemetry_port out of range: {self.telemetry_port}")
        if self.concurrency < 1:
            raise NodeLocConfigError(f"concurrency must be at least 1, got {self.concurrency}")
        if self.change_epsilon < 0:
            raise NodeLocConfigError(f"change_epsilon must not be negative, got {self.change_epsilon}")
        if self.inactive_after < 0:
            raise NodeLocConfigError(f"inactive_after must not be negative, got {self.inactive_after}")
        for name in (
            "connect_timeout",
            "request_timeout",
            "geocoder_connect_timeout",
            "geocoder_timeout",
            "device_timeout",
            "registry_timeout",
        ):
            if getattr(self, name) <= 0:
                raise NodeLocConfigError(f"{name} must be positive")
        if not self.selector.strip():
            raise NodeLocConfigError("selector must be non-empty")

    @classmethod
    def from_env(cls, **overrides: Any) -> ReconcilerConfig:
        """Create configuration from environment variables.

        Reads optional ``NODELOC_*`` variables. Explicit keyword arguments
        override environment values; ``None`` overrides are ignored so CLI
        flags that were not given fall through to the environment.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        ReconcilerConfig
            Populated configuration.
        """
        env = os.environ
        overrides = {key: value for key, value in overrides.items() if value is not None}

        _ENV_STR_MAP = {
            "NODELOC_SELECTOR": "selector",
            "NODELOC_LABEL_PREFIX": "label_prefix",
            "NODELOC_GEOCODER_URL": "geocoder_url",
            "NODELOC_GEOCODER_SERVICE": "geocoder_service",
            "NODELOC_GEOCODER_NAMESPACE": "geocoder_namespace",
            "NODELOC_GEOCODER_METHOD": "geocoder_method",
            "NODELOC_KUBECONFIG": "kubeconfig",
            "NODELOC_KUBE_CONTEXT": "kube_context",
        }
        _ENV_FLOAT_MAP = {
            "NODELOC_INTERVAL": "interval",
            "NODELOC_CONNECT_TIMEOUT": "connect_timeout",
            "NODELOC_REQUEST_TIMEOUT": "request_timeout",
            "NODELOC_GEOCODER_CONNECT_TIMEOUT": "geocoder_connect_timeout",
            "NODELOC_GEOCODER_TIMEOUT": "geocoder_timeout",
            "NODELOC_PLACE_NAME_TTL": "place_name_ttl",
            "NODELOC_CHANGE_EPSILON": "change_epsilon",
            "NODELOC_DEVICE_TIMEOUT": "device_timeout",
            "NODELOC_REGISTRY_TIMEOUT": "registry_timeout",
        }
        _ENV_INT_MAP = {
            "NODELOC_PORT": "telemetry_port",
            "NODELOC_GEOCODER_PORT": "geocoder_port",
            "NODELOC_CONCURRENCY": "concurrency",
            "NODELOC_INACTIVE_AFTER": "inactive_after",
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = val

        for converter, mapping in ((float, _ENV_FLOAT_MAP), (int, _ENV_INT_MAP)):
            for env_key, field_name in mapping.items():
                val = env.get(env_key)
                if val is None or field_name in overrides:
                    continue
                try:
                    config_kwargs[field_name] = converter(val)
                except ValueError as exc:
                    raise NodeLocConfigError(f"{env_key}={val!r} is not a valid number") from exc

        labels_env = env.get("NODELOC_ROLE_LABELS")
        if labels_env is not None and "role_labels" not in overrides:
            config_kwargs["role_labels"] = _parse_labels(labels_env)

        if _env_bool(env.get("NODELOC_NO_ROLE_LABELS"), False) and "role_labels" not in overrides:
            config_kwargs["role_labels"] = {}

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
