"""Command line entry point: ``update-node-locations``.

Queries geolocation from phone nodes and keeps their ``phone.location/*``
node labels current, either once (``--once``) or every ``--interval``
seconds until SIGINT/SIGTERM.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
from collections.abc import Sequence

from pynodeloc import __version__
from pynodeloc.config import ReconcilerConfig
from pynodeloc.exceptions import CandidateListUnavailable, NodeLocConfigError
from pynodeloc.reconciler import NodeLocationReconciler

_logger = logging.getLogger("pynodeloc.cli")

EXIT_OK = 0
EXIT_SOFT_FAILURE = 1
EXIT_FATAL = 2

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="update-node-locations",
        description=(
            "Query geolocation from phone nodes over HTTP and update their Kubernetes node labels."
        ),
    )
    parser.add_argument("--interval", type=float, help="Seconds between passes (default: 30)")
    parser.add_argument("--once", action="store_true", help="Run a single pass and exit")
    parser.add_argument("--port", type=int, help="Port of the phone telemetry app (default: 8005)")
    parser.add_argument("--verbose", action="store_true", help="Log every device outcome")
    parser.add_argument("--selector", help="Label selector for phone nodes (default: device-type=phone)")
    parser.add_argument("--concurrency", type=int, help="Devices reconciled in parallel (default: 4)")
    parser.add_argument("--geocoder-url", help="Reverse geocoder base URL (default: discover in cluster)")
    parser.add_argument("--kubeconfig", help="Path to kubeconfig (default: in-cluster, then ~/.kube/config)")
    parser.add_argument("--context", help="kubeconfig context to use")
    parser.add_argument(
        "--inactive-after",
        type=int,
        help="Mark a node inactive after this many consecutive failed fetches (default: 0, disabled)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=_LOG_FORMAT)
    # Library chatter stays out of verbose device logs.
    for noisy in ("kubernetes", "urllib3", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def config_from_args(args: argparse.Namespace) -> ReconcilerConfig:
    return ReconcilerConfig.from_env(
        interval=args.interval,
        telemetry_port=args.port,
        selector=args.selector,
        concurrency=args.concurrency,
        geocoder_url=args.geocoder_url,
        kubeconfig=args.kubeconfig,
        kube_context=args.context,
        inactive_after=args.inactive_after,
    )


def _install_signal_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on every platform (e.g. Windows event loops).
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)


async def _run(args: argparse.Namespace) -> int:
    try:
        config = config_from_args(args)
    except NodeLocConfigError as exc:
        _logger.error("Invalid configuration: %s", exc)
        return EXIT_FATAL

    _logger.info("Node location updater %s starting", __version__)
    _logger.info(
        "Update interval: %ss, port: %d, selector: %s, run once: %s",
        config.interval,
        config.telemetry_port,
        config.selector,
        args.once,
    )

    try:
        async with NodeLocationReconciler(config) as reconciler:
            if args.once:
                try:
                    result = await reconciler.run_once()
                except CandidateListUnavailable as exc:
                    _logger.error("%s", exc)
                    return EXIT_FATAL
                return EXIT_SOFT_FAILURE if result.soft_failure else EXIT_OK

            stop = asyncio.Event()
            _install_signal_handlers(stop)
            _logger.info("Starting continuous location monitoring (press Ctrl+C to stop)")
            await reconciler.run_forever(stop)
            _logger.info("Shutting down location updater")
            return EXIT_OK
    except NodeLocConfigError as exc:
        _logger.error("%s", exc)
        return EXIT_FATAL


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
