#!/usr/bin/env python3
"""Probe one phone's telemetry endpoint and the reverse geocoder.

Useful when a node never gets its location labels: this script performs the
same fetch and lookup the reconciler does, without touching the cluster, and
reports each step.

Default behavior:
1) GET http://<address>:<port>/location and validate the payload,
2) reverse geocode the coordinate,
3) print the labels a reconcile pass would write.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

import aiohttp  # noqa: E402

from pynodeloc import DeviceError, DeviceIdentity, EnrichmentUnavailable, LocationRecord  # noqa: E402
from pynodeloc._api.geocoder import HttpReverseGeocoder  # noqa: E402
from pynodeloc._api.telemetry import HttpTelemetryClient, build_location_url  # noqa: E402
from pynodeloc._constants import DEFAULT_TELEMETRY_PORT, GEOCODER_FALLBACK_URL, LABEL_PREFIX  # noqa: E402
from pynodeloc.registry.labels import record_to_labels  # noqa: E402


@dataclass(frozen=True)
class CheckResult:
    name: str
    ok: bool
    detail: str


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Probe a phone's /location endpoint and the reverse geocoder.")
    parser.add_argument("address", help="Node IP or hostname")
    parser.add_argument("--name", default="probe", help="Node name used in messages")
    parser.add_argument("--port", type=int, default=DEFAULT_TELEMETRY_PORT)
    parser.add_argument("--geocoder-url", default=GEOCODER_FALLBACK_URL)
    parser.add_argument("--timeout", type=float, default=5.0, help="Total telemetry timeout in seconds")
    parser.add_argument("--json", action="store_true", help="Print the would-be labels as JSON")
    return parser.parse_args()


def _print_results(results: list[CheckResult]) -> None:
    print("\nProbe results")
    for result in results:
        marker = "PASS" if result.ok else "FAIL"
        print(f"[{marker}] {result.name}: {result.detail}")


async def _run(args: argparse.Namespace) -> int:
    device = DeviceIdentity(name=args.name, address=args.address)
    results: list[CheckResult] = []

    async with aiohttp.ClientSession() as session:
        telemetry = HttpTelemetryClient(session, port=args.port, request_timeout=args.timeout)
        try:
            sample = await telemetry.fetch(device)
        except DeviceError as exc:
            results.append(CheckResult("telemetry", False, f"{type(exc).__name__}: {exc}"))
            _print_results(results)
            return 1
        results.append(
            CheckResult(
                "telemetry",
                True,
                f"{build_location_url(args.address, args.port)} -> "
                f"lat={sample.latitude:.6f} lon={sample.longitude:.6f} alt={sample.altitude:.1f}",
            )
        )

        geocoder = HttpReverseGeocoder(session, args.geocoder_url)
        place_name: str | None = None
        try:
            place_name = await geocoder.reverse_geocode(sample.latitude, sample.longitude)
            results.append(CheckResult("geocoder", True, place_name))
        except EnrichmentUnavailable as exc:
            results.append(CheckResult("geocoder", False, str(exc)))

    now = datetime.now(UTC)
    record = LocationRecord(
        sample=sample,
        place_name=place_name or sample.city,
        place_name_resolved_at=now,
        updated_at=now,
    )
    labels = record_to_labels(record, LABEL_PREFIX)
    if args.json:
        print(json.dumps(labels, indent=2, sort_keys=True))
    else:
        print("\nLabels a reconcile pass would write")
        for key, value in sorted(labels.items()):
            print(f"  {key}={value}")

    _print_results(results)
    return 0 if all(result.ok for result in results) else 1


def main() -> int:
    args = _parse_args()
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
