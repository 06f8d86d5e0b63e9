"""Reconciliation engine.

One pass lists the candidate devices and runs an independent
fetch → detect → enrich → write chain for each of them. Chains are consumed
from a queue by a bounded pool of workers; a failing device only produces a
failed :class:`~pynodeloc.models.outcome.DeviceOutcome`. The only error that
escapes a pass is :class:`~pynodeloc.exceptions.CandidateListUnavailable`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from pynodeloc._api.telemetry import TelemetryClient
from pynodeloc._constants import CHANGE_EPSILON_DEG, DEFAULT_INTERVAL_S, DEFAULT_SELECTOR
from pynodeloc.detector import has_changed
from pynodeloc.exceptions import (
    CandidateListUnavailable,
    DeviceError,
    DeviceInvalidCoordinates,
    DeviceMalformedPayload,
    RegistryReadFailed,
    RegistryWriteFailed,
)
from pynodeloc.models._base import LocationStatus, utcnow
from pynodeloc.models.device import DeviceIdentity
from pynodeloc.models.outcome import DeviceOutcome, OutcomeKind, PassResult
from pynodeloc.models.record import LocationRecord
from pynodeloc.registry.base import NodeRegistry
from pynodeloc.resolver import PlaceNameResolver

_logger = logging.getLogger(__name__)


def _fetch_failure_kind(exc: DeviceError) -> OutcomeKind:
    if isinstance(exc, DeviceMalformedPayload):
        return OutcomeKind.MALFORMED
    if isinstance(exc, DeviceInvalidCoordinates):
        return OutcomeKind.INVALID
    return OutcomeKind.UNREACHABLE


@dataclass
class PassContext:
    """State of one pass, handed explicitly through every device chain."""

    pass_number: int
    started_at: datetime
    outcomes: list[DeviceOutcome] = field(default_factory=list)

    def record(self, outcome: DeviceOutcome) -> None:
        self.outcomes.append(outcome)

    def finish(self, now: datetime) -> PassResult:
        return PassResult(
            pass_number=self.pass_number,
            started_at=self.started_at,
            finished_at=now,
            outcomes=tuple(self.outcomes),
        )


class ReconciliationEngine:
    """Drive single passes or a fixed-interval loop over the device fleet."""

    def __init__(
        self,
        registry: NodeRegistry,
        telemetry: TelemetryClient,
        resolver: PlaceNameResolver,
        *,
        selector: str = DEFAULT_SELECTOR,
        epsilon: float = CHANGE_EPSILON_DEG,
        concurrency: int = 4,
        device_timeout: float = 45.0,
        inactive_after: int = 0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._registry = registry
        self._telemetry = telemetry
        self._resolver = resolver
        self._selector = selector
        self._epsilon = epsilon
        self._concurrency = max(1, concurrency)
        self._device_timeout = device_timeout
        self._inactive_after = inactive_after
        self._clock = clock
        self._pass_count = 0
        # Consecutive failed fetches per device, across passes.
        self._failure_streaks: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    async def run_pass(self) -> PassResult:
        """Run one fleet-wide pass and return its aggregate result.

        Raises
        ------
        CandidateListUnavailable
            The registry could not list candidate devices.
        """
        self._pass_count += 1
        ctx = PassContext(pass_number=self._pass_count, started_at=self._clock())

        devices = await self._registry.list_candidates(self._selector)
        if not devices:
            _logger.warning(
                "No nodes match selector %r; phone nodes must carry that label to be reconciled",
                self._selector,
            )

        queue: asyncio.Queue[DeviceIdentity] = asyncio.Queue()
        for device in devices:
            queue.put_nowait(device)

        workers = min(self._concurrency, len(devices))
        await asyncio.gather(*(self._worker(ctx, queue) for _ in range(workers)))

        # Streaks of nodes that left the selector start over if they return.
        current = {device.name for device in devices}
        for name in [name for name in self._failure_streaks if name not in current]:
            del self._failure_streaks[name]

        result = ctx.finish(self._clock())
        _logger.info(
            "Pass %d: processed %d devices, %d updated, %d unchanged, %d failed",
            result.pass_number,
            result.processed,
            result.updated,
            result.unchanged,
            result.failed,
        )
        if result.processed and result.soft_failure:
            _logger.warning(
                "No device could be reconciled; check that the telemetry app is running and reachable"
            )
        return result

    async def run_forever(self, stop: asyncio.Event, *, interval: float = DEFAULT_INTERVAL_S) -> int:
        """Run passes separated by *interval* seconds until *stop* is set.

        A pass already in flight finishes; the sleep between passes ends as
        soon as *stop* is set. Returns the number of passes started.
        """
        passes = 0
        while not stop.is_set():
            passes += 1
            try:
                await self.run_pass()
            except CandidateListUnavailable as exc:
                _logger.error("Update cycle failed, continuing: %s", exc)

            if stop.is_set():
                break
            _logger.debug("Waiting %ss until next pass", interval)
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue  # interval elapsed
        return passes

    # ------------------------------------------------------------------
    # Per-device chain
    # ------------------------------------------------------------------

    async def _worker(self, ctx: PassContext, queue: asyncio.Queue[DeviceIdentity]) -> None:
        while True:
            try:
                device = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            ctx.record(await self._reconcile_with_budget(ctx, device))

    async def _reconcile_with_budget(self, ctx: PassContext, device: DeviceIdentity) -> DeviceOutcome:
        try:
            return await asyncio.wait_for(self.reconcile_device(ctx, device), timeout=self._device_timeout)
        except asyncio.TimeoutError:
            _logger.debug("%s: exceeded %ss device budget", device.name, self._device_timeout)
            return DeviceOutcome(
                device=device.name,
                kind=OutcomeKind.TIMEOUT,
                detail=f"exceeded {self._device_timeout}s budget",
            )

    async def reconcile_device(self, ctx: PassContext, device: DeviceIdentity) -> DeviceOutcome:
        """Fetch, detect, enrich and write for a single device."""
        _logger.debug("Pass %d: processing %s (%s)", ctx.pass_number, device.name, device.address)

        try:
            sample = await self._telemetry.fetch(device)
        except DeviceError as exc:
            return await self._on_fetch_failure(device, exc)
        self._failure_streaks.pop(device.name, None)

        try:
            stored = await self._registry.get_record(device)
        except RegistryReadFailed as exc:
            _logger.debug("%s: %s", device.name, exc)
            return DeviceOutcome(device=device.name, kind=OutcomeKind.READ_FAILED, detail=str(exc))

        reactivating = stored is not None and stored.status == LocationStatus.INACTIVE
        previous = stored.sample if stored is not None else None
        if not reactivating and not has_changed(previous, sample, epsilon=self._epsilon):
            _logger.debug("%s: location unchanged, no update needed", device.name)
            return DeviceOutcome(device=device.name, kind=OutcomeKind.UNCHANGED)

        place = await self._resolver.resolve(device.name, sample, stored=stored)
        place_name = place.place_name
        if place.is_unknown and sample.city:
            place_name = sample.city

        record = LocationRecord(
            sample=sample,
            place_name=place_name,
            place_name_resolved_at=place.resolved_at,
            status=LocationStatus.ACTIVE,
            updated_at=self._clock(),
        )
        try:
            await self._registry.write_record(device, record)
        except RegistryWriteFailed as exc:
            _logger.debug("%s: %s", device.name, exc)
            return DeviceOutcome(device=device.name, kind=OutcomeKind.WRITE_FAILED, detail=str(exc))

        _logger.debug(
            "Updated location for %s: lat=%.6f, lng=%.6f, place=%s",
            device.name,
            sample.latitude,
            sample.longitude,
            place_name,
        )
        return DeviceOutcome(device=device.name, kind=OutcomeKind.UPDATED, wrote=True)

    async def _on_fetch_failure(self, device: DeviceIdentity, exc: DeviceError) -> DeviceOutcome:
        kind = _fetch_failure_kind(exc)
        streak = self._failure_streaks.get(device.name, 0) + 1
        self._failure_streaks[device.name] = streak
        _logger.debug("%s: no update this pass (%s, %d in a row): %s", device.name, kind, streak, exc)

        wrote = False
        if self._inactive_after and streak >= self._inactive_after:
            wrote = await self._mark_inactive(device)
        return DeviceOutcome(device=device.name, kind=kind, detail=str(exc), wrote=wrote)

    async def _mark_inactive(self, device: DeviceIdentity) -> bool:
        try:
            stored = await self._registry.get_record(device)
            if stored is None or stored.status == LocationStatus.INACTIVE:
                return False
            await self._registry.write_record(device, stored.deactivated(self._clock()))
        except (RegistryReadFailed, RegistryWriteFailed) as exc:
            _logger.debug("%s: could not mark inactive: %s", device.name, exc)
            return False
        _logger.debug("%s: marked inactive", device.name)
        return True
