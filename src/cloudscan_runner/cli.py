"""Command-line entry point of the scan job.

The job is configured through environment variables (see
``cloudscan_runner.config``), runs once and exits with a code describing
the outcome.
"""

from __future__ import annotations

import argparse
import signal
import sys
from pathlib import Path
from typing import Callable, Iterable, Optional

from importlib.metadata import version, PackageNotFoundError

from cloudscan_runner.config import RunnerConfig, load_config
from cloudscan_runner.core.deadline import Deadline
from cloudscan_runner.core.errors import ConfigError, ReportingError
from cloudscan_runner.core.logging import configure_logging, get_logger
from cloudscan_runner.pipeline import run_job
from cloudscan_runner.reporting import GrpcStatusClient, StatusReporter

LOGGER = get_logger(__name__)

EXIT_SUCCESS = 0
EXIT_SCAN_FAILED = 1
EXIT_INVALID_CONFIG = 2
EXIT_ORCHESTRATOR_UNAVAILABLE = 3

ReporterFactory = Callable[[RunnerConfig], StatusReporter]


def get_version() -> str:
    try:
        return version("cloudscan-runner")
    except PackageNotFoundError:
        # Fallback for editable installs that have not yet built metadata.
        from cloudscan_runner import __version__

        return __version__


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cloudscan-runner",
        description="Run one security scan job and report results to the orchestrator.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Optional YAML file with job settings; environment variables take precedence.",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warn", "warning", "error"],
        help="Override LOG_LEVEL.",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit one JSON object per log line.",
    )
    parser.add_argument(
        "--sequential",
        action="store_true",
        help="Run scanners one after another instead of in parallel.",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Show cloudscan-runner version and exit.",
    )
    return parser


def connect_reporter(config: RunnerConfig) -> StatusReporter:
    return GrpcStatusClient.connect(config.orchestrator_endpoint, timeout=config.connect_timeout)


def install_signal_handlers(deadline: Deadline) -> None:
    """Cancel the job deadline on SIGTERM and SIGINT."""

    def handle(signum: int, _frame) -> None:
        name = signal.Signals(signum).name
        LOGGER.warning(f"Received {name}, cancelling scan")
        deadline.cancel(f"received {name}")

    signal.signal(signal.SIGTERM, handle)
    signal.signal(signal.SIGINT, handle)


def main(
    argv: Optional[Iterable[str]] = None,
    reporter_factory: ReporterFactory = connect_reporter,
    environ=None,
) -> int:
    """CLI entrypoint.

    Returns an exit code suitable for use as a console script.
    """
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.version:
        print(get_version())
        return EXIT_SUCCESS

    configure_logging(args.log_level or "info", json_format=args.json_logs)

    try:
        config = load_config(environ=environ, config_path=args.config)
    except ConfigError as e:
        LOGGER.error(f"Invalid configuration: {e}")
        return EXIT_INVALID_CONFIG

    if not args.log_level:
        configure_logging(config.log_level, json_format=args.json_logs)

    LOGGER.info(f"Starting cloudscan-runner {get_version()} for scan {config.scan_id}")

    deadline = Deadline(config.scan_timeout)
    install_signal_handlers(deadline)

    try:
        reporter = reporter_factory(config)
    except ReportingError as e:
        LOGGER.error(f"Orchestrator unavailable: {e}")
        return EXIT_ORCHESTRATOR_UNAVAILABLE

    with reporter:
        outcome = run_job(config, reporter, deadline=deadline, sequential=args.sequential)

    if outcome.succeeded:
        LOGGER.info("Scan completed successfully")
        return EXIT_SUCCESS

    LOGGER.error(f"Scan failed: {outcome.message}")
    return EXIT_SCAN_FAILED


if __name__ == "__main__":
    sys.exit(main())
