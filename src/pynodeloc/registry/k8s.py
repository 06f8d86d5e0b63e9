"""Kubernetes node-label registry.

Location records live in node labels under ``<prefix>/*``. The official
client is synchronous, so every call runs in a worker thread and carries its
own ``_request_timeout``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from pynodeloc.config import ReconcilerConfig
from pynodeloc.exceptions import (
    CandidateListUnavailable,
    NodeLocConfigError,
    RegistryReadFailed,
    RegistryWriteFailed,
)
from pynodeloc.models.device import DeviceIdentity
from pynodeloc.models.record import LocationRecord
from pynodeloc.registry.labels import labels_to_record, record_to_labels

_logger = logging.getLogger(__name__)

_ADDRESS_PREFERENCE: tuple[str, ...] = ("InternalIP", "ExternalIP", "Hostname")
_TRANSPORT_ERRORS = (ApiException, HTTPError, OSError)


def node_address(node: Any) -> str | None:
    """Pick the address the telemetry app is reachable on."""
    status = getattr(node, "status", None)
    addresses = getattr(status, "addresses", None) or []
    by_type = {getattr(item, "type", None): getattr(item, "address", None) for item in addresses}
    for address_type in _ADDRESS_PREFERENCE:
        address = by_type.get(address_type)
        if address:
            return str(address)
    return None


def load_core_api(config: ReconcilerConfig) -> k8s_client.CoreV1Api:
    """Build a CoreV1Api from in-cluster config or a kubeconfig file."""
    try:
        if config.kubeconfig is None and config.kube_context is None:
            try:
                k8s_config.load_incluster_config()
            except k8s_config.ConfigException:
                k8s_config.load_kube_config()
        else:
            k8s_config.load_kube_config(config_file=config.kubeconfig, context=config.kube_context)
    except (k8s_config.ConfigException, OSError) as exc:
        raise NodeLocConfigError(f"Cannot load Kubernetes configuration: {exc}") from exc
    return k8s_client.CoreV1Api()


class KubernetesNodeRegistry:
    """Read and write location records as Kubernetes node labels."""

    def __init__(
        self,
        core_api: Any,
        *,
        label_prefix: str,
        role_labels: dict[str, str] | None = None,
        request_timeout: float = 10.0,
    ) -> None:
        self._api = core_api
        self._prefix = label_prefix
        self._role_labels = dict(role_labels or {})
        self._timeout = request_timeout

    @classmethod
    def from_config(cls, config: ReconcilerConfig) -> KubernetesNodeRegistry:
        return cls(
            load_core_api(config),
            label_prefix=config.label_prefix,
            role_labels=config.role_labels,
            request_timeout=config.registry_timeout,
        )

    async def list_candidates(self, selector: str) -> list[DeviceIdentity]:
        try:
            nodes = await asyncio.to_thread(
                self._api.list_node,
                label_selector=selector,
                _request_timeout=self._timeout,
            )
        except _TRANSPORT_ERRORS as exc:
            raise CandidateListUnavailable(f"Cannot list nodes matching {selector!r}: {exc}") from exc

        devices: list[DeviceIdentity] = []
        for node in nodes.items or []:
            name = getattr(node.metadata, "name", None)
            if not name:
                continue
            devices.append(DeviceIdentity(name=name, address=node_address(node)))
        _logger.debug("Selector %r matched %d nodes", selector, len(devices))
        return devices

    async def get_record(self, device: DeviceIdentity) -> LocationRecord | None:
        try:
            node = await asyncio.to_thread(
                self._api.read_node,
                device.name,
                _request_timeout=self._timeout,
            )
        except ApiException as exc:
            if exc.status == 404:
                return None
            raise RegistryReadFailed(
                f"{device.name}: cannot read node (HTTP {exc.status}: {exc.reason})",
                device=device.name,
            ) from exc
        except (HTTPError, OSError) as exc:
            raise RegistryReadFailed(f"{device.name}: cannot read node: {exc}", device=device.name) from exc

        labels = getattr(node.metadata, "labels", None) or {}
        return labels_to_record(labels, self._prefix)

    async def write_record(self, device: DeviceIdentity, record: LocationRecord) -> None:
        try:
            labels: dict[str, str | None] = {**self._role_labels, **record_to_labels(record, self._prefix)}
        except ValueError as exc:
            raise RegistryWriteFailed(f"{device.name}: {exc}", device=device.name) from exc

        body = {"metadata": {"labels": labels}}
        try:
            await asyncio.to_thread(
                self._api.patch_node,
                device.name,
                body,
                _request_timeout=self._timeout,
            )
        except ApiException as exc:
            raise RegistryWriteFailed(
                f"{device.name}: label patch rejected (HTTP {exc.status}: {exc.reason})",
                device=device.name,
            ) from exc
        except (HTTPError, OSError) as exc:
            raise RegistryWriteFailed(f"{device.name}: label patch failed: {exc}", device=device.name) from exc

    async def find_service_url(self, name: str, namespace: str, default_port: int) -> str | None:
        """Return ``http://<clusterIP>:<port>`` for a Service, or ``None``."""
        try:
            service = await asyncio.to_thread(
                self._api.read_namespaced_service,
                name,
                namespace,
                _request_timeout=self._timeout,
            )
        except _TRANSPORT_ERRORS:
            _logger.debug("Service %s/%s not found", namespace, name, exc_info=True)
            return None

        spec = getattr(service, "spec", None)
        cluster_ip = getattr(spec, "cluster_ip", None)
        if not cluster_ip or cluster_ip == "None":
            return None
        ports = getattr(spec, "ports", None) or []
        port = getattr(ports[0], "port", None) if ports else None
        return f"http://{cluster_ip}:{port or default_port}"
