"""Node registry: where location records are stored."""

from pynodeloc.registry.base import NodeRegistry
from pynodeloc.registry.k8s import KubernetesNodeRegistry
from pynodeloc.registry.labels import sanitize_place_name

__all__ = ["KubernetesNodeRegistry", "NodeRegistry", "sanitize_place_name"]
