"""Custom exception hierarchy for pynodeloc."""

from __future__ import annotations


class NodeLocError(Exception):
    """Base exception for all pynodeloc errors."""


class NodeLocConfigError(NodeLocError):
    """Invalid or missing configuration."""


class DeviceError(NodeLocError):
    """Per-device telemetry failure. Never aborts a pass."""

    def __init__(self, message: str, *, device: str = "") -> None:
        self.device = device
        super().__init__(message)


class DeviceUnreachable(DeviceError):
    """Connection failure, timeout, missing address or non-200 response."""

    def __init__(
        self,
        message: str,
        *,
        device: str = "",
        status_code: int | None = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(message, device=device)


class DeviceMalformedPayload(DeviceError):
    """Telemetry body is not a JSON object."""


class DeviceInvalidCoordinates(DeviceError):
    """Telemetry fields are missing, non-numeric or out of range."""


class EnrichmentUnavailable(NodeLocError):
    """Reverse geocoding failed (network, non-200, invalid JSON, no location).

    The resolver catches this and falls back to the sentinel place name.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class RegistryError(NodeLocError):
    """Cluster state store failure."""


class CandidateListUnavailable(RegistryError):
    """Candidate devices could not be listed.

    This is the only error that aborts a whole pass.
    """


class RegistryReadFailed(RegistryError):
    """A device's stored location record could not be read."""

    def __init__(self, message: str, *, device: str = "") -> None:
        self.device = device
        super().__init__(message)


class RegistryWriteFailed(RegistryError):
    """A device's location record could not be written.

    The stored record stays stale until the next successful pass.
    """

    def __init__(self, message: str, *, device: str = "") -> None:
        self.device = device
        super().__init__(message)
