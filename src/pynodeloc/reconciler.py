"""High-level async entry point wiring the reconciler together."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

import aiohttp

from pynodeloc._api.geocoder import HttpReverseGeocoder, ReverseGeocoder
from pynodeloc._api.telemetry import HttpTelemetryClient, TelemetryClient
from pynodeloc._constants import GEOCODER_FALLBACK_URL
from pynodeloc.config import ReconcilerConfig
from pynodeloc.engine import ReconciliationEngine
from pynodeloc.exceptions import NodeLocError
from pynodeloc.models._base import utcnow
from pynodeloc.models.outcome import PassResult
from pynodeloc.registry.base import NodeRegistry
from pynodeloc.registry.k8s import KubernetesNodeRegistry
from pynodeloc.resolver import PlaceNameResolver

_logger = logging.getLogger(__name__)


class NodeLocationReconciler:
    """Reconcile phone node locations into the cluster.

    Usage::

        async with NodeLocationReconciler(config) as reconciler:
            result = await reconciler.run_once()

    Collaborators not passed in are built from *config*: an aiohttp session,
    the Kubernetes node registry, and HTTP clients for the phones and the
    reverse geocoder.
    """

    def __init__(
        self,
        config: ReconcilerConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        registry: NodeRegistry | None = None,
        telemetry: TelemetryClient | None = None,
        geocoder: ReverseGeocoder | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._registry = registry
        self._telemetry = telemetry
        self._geocoder = geocoder
        self._clock = clock
        self._engine: ReconciliationEngine | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> NodeLocationReconciler:
        if self._registry is None:
            self._registry = KubernetesNodeRegistry.from_config(self._config)
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        if self._telemetry is None:
            self._telemetry = HttpTelemetryClient(
                self._http_session,
                port=self._config.telemetry_port,
                connect_timeout=self._config.connect_timeout,
                request_timeout=self._config.request_timeout,
            )
        if self._geocoder is None:
            base_url = await self._discover_geocoder_url()
            _logger.info("Using reverse geocoder at %s", base_url)
            self._geocoder = HttpReverseGeocoder(
                self._http_session,
                base_url,
                method=self._config.geocoder_method,
                connect_timeout=self._config.geocoder_connect_timeout,
                request_timeout=self._config.geocoder_timeout,
            )

        resolver = PlaceNameResolver(self._geocoder, ttl=self._config.place_name_ttl, clock=self._clock)
        self._engine = ReconciliationEngine(
            self._registry,
            self._telemetry,
            resolver,
            selector=self._config.selector,
            epsilon=self._config.change_epsilon,
            concurrency=self._config.concurrency,
            device_timeout=self._config.device_timeout,
            inactive_after=self._config.inactive_after,
            clock=self._clock,
        )
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._engine = None

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def run_once(self) -> PassResult:
        """Run exactly one pass."""
        return await self._require_engine().run_pass()

    async def run_forever(self, stop: asyncio.Event) -> int:
        """Run passes every ``config.interval`` seconds until *stop* is set."""
        return await self._require_engine().run_forever(stop, interval=self._config.interval)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_engine(self) -> ReconciliationEngine:
        if self._engine is None:
            raise NodeLocError("Reconciler not initialized. Use 'async with NodeLocationReconciler(...) as r:'")
        return self._engine

    async def _discover_geocoder_url(self) -> str:
        """Configured URL, else the in-cluster Service, else localhost."""
        if self._config.geocoder_url:
            return self._config.geocoder_url
        finder = getattr(self._registry, "find_service_url", None)
        if finder is not None:
            url = await finder(
                self._config.geocoder_service,
                self._config.geocoder_namespace,
                self._config.geocoder_port,
            )
            if url:
                return str(url)
        return GEOCODER_FALLBACK_URL
