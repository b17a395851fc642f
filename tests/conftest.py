"""Shared fixtures for cloudscan-runner tests."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import pytest

from cloudscan_runner.config.models import RunnerConfig
from cloudscan_runner.core.errors import ReportingError
from cloudscan_runner.core.models import Category, Finding, ScanStatus, Severity
from cloudscan_runner.reporting.base import StatusReporter

SCAN_ID = "6f1c2d3e-4b5a-4c6d-8e7f-901234567890"


class FakeReporter(StatusReporter):
    """In-memory StatusReporter recording every call in order."""

    def __init__(
        self,
        fail_status: bool = False,
        fail_findings: bool = False,
        fail_count: bool = False,
    ) -> None:
        self.calls: List[Tuple] = []
        self.statuses: List[Tuple[ScanStatus, str]] = []
        self.finding_batches: List[List[Finding]] = []
        self.counts: List[int] = []
        self.timeouts: List[Optional[float]] = []
        self.closed = False
        self._fail_status = fail_status
        self._fail_findings = fail_findings
        self._fail_count = fail_count

    def update_status(self, scan_id, status, message="", timeout=None):
        self.calls.append(("update_status", scan_id, status, message))
        self.timeouts.append(timeout)
        if self._fail_status:
            raise ReportingError("status service unavailable")
        self.statuses.append((status, message))

    def create_findings(self, scan_id, findings: Sequence[Finding], timeout=None) -> int:
        self.calls.append(("create_findings", scan_id, len(findings)))
        if self._fail_findings:
            raise ReportingError("findings rejected")
        self.finding_batches.append(list(findings))
        return len(findings)

    def update_findings_count(self, scan_id, count, timeout=None):
        self.calls.append(("update_findings_count", scan_id, count))
        if self._fail_count:
            raise ReportingError("count rejected")
        self.counts.append(count)

    def close(self) -> None:
        self.closed = True

    @property
    def terminal_statuses(self) -> List[Tuple[ScanStatus, str]]:
        return [s for s in self.statuses if s[0].is_terminal]


def make_finding(
    category: Category = Category.SCA,
    severity: Severity = Severity.MEDIUM,
    title: str = "finding",
    **kwargs,
) -> Finding:
    return Finding(
        category=category,
        severity=severity,
        title=title,
        description=kwargs.pop("description", "test finding"),
        **kwargs,
    )


@pytest.fixture
def fake_reporter() -> FakeReporter:
    return FakeReporter()


@pytest.fixture
def runner_config(tmp_path: Path) -> RunnerConfig:
    return RunnerConfig(
        scan_id=SCAN_ID,
        orchestrator_endpoint="orchestrator:9090",
        scan_types=["SCA"],
        source_download_url="https://artifacts.example.com/source.zip",
        work_dir=tmp_path / "workspace",
        scan_timeout=60,
    )


@pytest.fixture
def reporter_cls():
    """The FakeReporter class, for tests that need a failing reporter."""
    return FakeReporter


@pytest.fixture
def finding_factory():
    return make_finding
