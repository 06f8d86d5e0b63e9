"""pynodeloc - Async reconciler for phone node locations in a Kubernetes cluster."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pynodeloc")
except PackageNotFoundError:
    __version__ = "0+local"
from pynodeloc.config import ReconcilerConfig
from pynodeloc.detector import has_changed
from pynodeloc.engine import PassContext, ReconciliationEngine
from pynodeloc.exceptions import (
    CandidateListUnavailable,
    DeviceError,
    DeviceInvalidCoordinates,
    DeviceMalformedPayload,
    DeviceUnreachable,
    EnrichmentUnavailable,
    NodeLocConfigError,
    NodeLocError,
    RegistryError,
    RegistryReadFailed,
    RegistryWriteFailed,
)
from pynodeloc.models import (
    DeviceIdentity,
    DeviceOutcome,
    GeoSample,
    LocationRecord,
    LocationStatus,
    OutcomeKind,
    PassResult,
)
from pynodeloc.reconciler import NodeLocationReconciler
from pynodeloc.registry import KubernetesNodeRegistry, NodeRegistry, sanitize_place_name
from pynodeloc.resolver import PlaceNameResolver, ResolvedPlace

__all__ = [
    "__version__",
    "CandidateListUnavailable",
    "DeviceError",
    "DeviceIdentity",
    "DeviceInvalidCoordinates",
    "DeviceMalformedPayload",
    "DeviceOutcome",
    "DeviceUnreachable",
    "EnrichmentUnavailable",
    "GeoSample",
    "KubernetesNodeRegistry",
    "LocationRecord",
    "LocationStatus",
    "NodeLocConfigError",
    "NodeLocError",
    "NodeLocationReconciler",
    "NodeRegistry",
    "OutcomeKind",
    "PassContext",
    "PassResult",
    "PlaceNameResolver",
    "ReconcilerConfig",
    "ReconciliationEngine",
    "RegistryError",
    "RegistryReadFailed",
    "RegistryWriteFailed",
    "ResolvedPlace",
    "has_changed",
    "sanitize_place_name",
]
