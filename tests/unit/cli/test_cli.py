"""Tests for the command-line entry point."""

from __future__ import annotations

import signal
from typing import Dict
from unittest.mock import MagicMock, patch

import pytest

from cloudscan_runner import cli
from cloudscan_runner.core.deadline import Deadline
from cloudscan_runner.core.errors import ReportingError
from cloudscan_runner.core.models import ScanStatus
from cloudscan_runner.pipeline.executor import JobOutcome

# Captured before the autouse fixture patches it out
install_signal_handlers = cli.install_signal_handlers

SCAN_ID = "6f1c2d3e-4b5a-4c6d-8e7f-901234567890"


def job_env(**overrides: str) -> Dict[str, str]:
    env = {
        "SCAN_ID": SCAN_ID,
        "ORCHESTRATOR_ENDPOINT": "orchestrator:9090",
        "SCAN_TYPES": "SCA",
        "SOURCE_DOWNLOAD_URL": "https://artifacts.example.com/source.zip",
    }
    env.update(overrides)
    return env


@pytest.fixture(autouse=True)
def no_signal_handlers():
    """Keep the test process's own SIGINT handling intact."""
    with patch("cloudscan_runner.cli.install_signal_handlers") as mock_install:
        yield mock_install


class TestParser:
    def test_defaults(self) -> None:
        args = cli.build_parser().parse_args([])
        assert args.config is None
        assert args.log_level is None
        assert not args.json_logs
        assert not args.sequential

    def test_rejects_unknown_log_level(self) -> None:
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["--log-level", "chatty"])


class TestMain:
    """Tests for main exit codes."""

    def test_version(self, capsys) -> None:
        assert cli.main(["--version"]) == cli.EXIT_SUCCESS
        assert capsys.readouterr().out.strip() == cli.get_version()

    def test_invalid_config(self, fake_reporter) -> None:
        factory = MagicMock(return_value=fake_reporter)
        env = job_env()
        del env["SCAN_ID"]

        assert cli.main([], reporter_factory=factory, environ=env) == cli.EXIT_INVALID_CONFIG
        factory.assert_not_called()

    def test_orchestrator_unavailable(self) -> None:
        factory = MagicMock(side_effect=ReportingError("failed to connect"))
        assert cli.main([], reporter_factory=factory, environ=job_env()) == cli.EXIT_ORCHESTRATOR_UNAVAILABLE

    def test_success(self, fake_reporter) -> None:
        outcome = JobOutcome(status=ScanStatus.COMPLETED)
        with patch("cloudscan_runner.cli.run_job", return_value=outcome) as mock_run:
            code = cli.main(["--sequential"], reporter_factory=lambda config: fake_reporter, environ=job_env())

        assert code == cli.EXIT_SUCCESS
        assert mock_run.call_args[1]["sequential"] is True
        assert isinstance(mock_run.call_args[1]["deadline"], Deadline)
        assert fake_reporter.closed

    def test_failed_scan(self, fake_reporter) -> None:
        outcome = JobOutcome(status=ScanStatus.FAILED, message="No scanners available for requested scan types")
        with patch("cloudscan_runner.cli.run_job", return_value=outcome):
            code = cli.main([], reporter_factory=lambda config: fake_reporter, environ=job_env())

        assert code == cli.EXIT_SCAN_FAILED
        assert fake_reporter.closed

    def test_signal_handlers_cancel_job_deadline(self, fake_reporter, no_signal_handlers) -> None:
        with patch("cloudscan_runner.cli.run_job", return_value=JobOutcome(status=ScanStatus.COMPLETED)) as mock_run:
            cli.main([], reporter_factory=lambda config: fake_reporter, environ=job_env())

        no_signal_handlers.assert_called_once_with(mock_run.call_args[1]["deadline"])


class TestInstallSignalHandlers:
    def test_sigterm_and_sigint_cancel_deadline(self) -> None:
        deadline = Deadline()
        handlers = {}
        with patch(
            "cloudscan_runner.cli.signal.signal",
            side_effect=lambda signum, handler: handlers.setdefault(signum, handler),
        ):
            install_signal_handlers(deadline)

        assert set(handlers) == {signal.SIGTERM, signal.SIGINT}
        handlers[signal.SIGTERM](signal.SIGTERM, None)
        assert deadline.cancelled
        assert deadline.reason == "received SIGTERM"
