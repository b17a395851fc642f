"""Pipeline executor for one scan job.

Stages:
1. Announce RUNNING (best effort)
2. Select the available scanners for the requested categories
3. Acquire the source tree (archive download or git clone)
4. Run all scanners in parallel
5. Deliver findings in bulk and record the findings count
6. Announce exactly one terminal status, COMPLETED or FAILED

Fatal errors in stages 2-3 skip straight to a FAILED announcement. Scanner
errors are collected and turn into FAILED only after every scanner is done,
and never stop the findings of healthy scanners from being delivered.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from cloudscan_runner.config.models import RunnerConfig
from cloudscan_runner.core.deadline import Deadline
from cloudscan_runner.core.errors import FetchError, NoScannersError, ReportingError
from cloudscan_runner.core.logging import get_logger
from cloudscan_runner.core.models import Finding, ScanResult, ScanStatus
from cloudscan_runner.pipeline.parallel import ParallelScannerExecutor
from cloudscan_runner.plugins.scanners import select_scanners
from cloudscan_runner.plugins.scanners.base import ScannerPlugin
from cloudscan_runner.reporting.base import StatusReporter
from cloudscan_runner.source import clone_repository, download_and_extract

LOGGER = get_logger(__name__)

NO_SCANNERS_MESSAGE = "No scanners available for requested scan types"

# Time granted to the terminal status call even after the job deadline passed
TERMINAL_STATUS_GRACE = 10.0

SourceAcquirer = Callable[[RunnerConfig, Deadline], None]
ScannerSelector = Callable[[RunnerConfig], List[ScannerPlugin]]


@dataclass
class JobOutcome:
    """Final state of a scan job as decided by the runner."""

    status: ScanStatus
    message: str = ""
    results: List[ScanResult] = field(default_factory=list)
    findings: List[Finding] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status is ScanStatus.COMPLETED


def acquire_source(config: RunnerConfig, deadline: Deadline) -> None:
    """Populate the working directory from the configured source."""
    if config.uses_archive:
        download_and_extract(
            config.source_download_url,
            config.work_dir,
            timeout=config.download_timeout,
            deadline=deadline,
            tmp_dir=config.results_dir,
        )
    else:
        clone_repository(
            config.git_url,
            config.work_dir,
            branch=config.git_branch,
            commit=config.git_commit,
            deadline=deadline,
        )


def default_scanner_selector(config: RunnerConfig) -> List[ScannerPlugin]:
    return select_scanners(config.scan_types, results_dir=config.results_dir)


def aggregate_errors(results: Sequence[ScanResult]) -> List[str]:
    """One "<scanner>: <error>" entry per failed scanner, in result order."""
    return [f"{r.scanner_name}: {r.error}" for r in results if r.error is not None]


def merge_findings(results: Sequence[ScanResult]) -> List[Finding]:
    """Concatenate findings of all scanners, in result order."""
    findings: List[Finding] = []
    for result in results:
        findings.extend(result.findings)
    return findings


class ScanJob:
    """Drives one scan from RUNNING to a single terminal status.

    The status reporter is owned by the caller; the job only uses it, from
    the calling thread. Scanner workers never touch it.
    """

    def __init__(
        self,
        config: RunnerConfig,
        reporter: StatusReporter,
        deadline: Optional[Deadline] = None,
        executor: Optional[ParallelScannerExecutor] = None,
        acquire: SourceAcquirer = acquire_source,
        select: ScannerSelector = default_scanner_selector,
    ) -> None:
        self._config = config
        self._reporter = reporter
        self._deadline = deadline or Deadline(config.scan_timeout)
        self._executor = executor or ParallelScannerExecutor()
        self._acquire = acquire
        self._select = select
        self._terminal_sent = False

    @property
    def deadline(self) -> Deadline:
        return self._deadline

    def run(self) -> JobOutcome:
        """Execute the job and return its outcome. Never raises runner errors."""
        scan_id = self._config.scan_id
        self._announce_running(scan_id)

        try:
            scanners = self._select_scanners()
            self._acquire_source()
        except (FetchError, NoScannersError) as e:
            message = str(e)
            LOGGER.error(f"Scan aborted: {message}")
            return self._finish(ScanStatus.FAILED, message)

        LOGGER.info(f"Starting parallel scan execution with {len(scanners)} scanners")
        results = self._executor.run_all(scanners, self._config.work_dir, self._deadline)

        findings = merge_findings(results)
        errors = aggregate_errors(results)
        for result in results:
            if result.error is None:
                LOGGER.info(f"Scanner {result.scanner_name}: {len(result.findings)} findings")
            else:
                LOGGER.error(f"Scanner {result.scanner_name} failed: {result.error}")

        self._deliver_findings(scan_id, findings)

        if self._deadline.done and not errors:
            errors.append(f"scan interrupted: {self._deadline.reason}")

        if errors:
            message = "Scan completed with errors: " + "; ".join(errors)
            return self._finish(ScanStatus.FAILED, message, results, findings)

        return self._finish(ScanStatus.COMPLETED, "", results, findings)

    def _announce_running(self, scan_id: str) -> None:
        try:
            self._reporter.update_status(
                scan_id, ScanStatus.RUNNING, timeout=self._deadline.timeout()
            )
        except ReportingError as e:
            LOGGER.warning(f"Failed to update scan status to RUNNING: {e}")

    def _acquire_source(self) -> None:
        if self._deadline.done:
            raise FetchError(f"source not acquired: {self._deadline.reason}")
        source = "artifact" if self._config.uses_archive else "git repository"
        LOGGER.info(f"Preparing source code from {source}")
        try:
            self._acquire(self._config, self._deadline)
        except (FetchError, OSError) as e:
            what = "download source" if self._config.uses_archive else "clone repository"
            raise FetchError(f"Failed to {what}: {e}") from e

    def _select_scanners(self) -> List[ScannerPlugin]:
        scanners = self._select(self._config)
        if not scanners:
            raise NoScannersError(NO_SCANNERS_MESSAGE)
        LOGGER.info(f"Initialized scanners: {', '.join(s.name for s in scanners)}")
        return scanners

    def _deliver_findings(self, scan_id: str, findings: List[Finding]) -> None:
        if findings:
            LOGGER.info(f"Uploading {len(findings)} findings to orchestrator")
            try:
                self._reporter.create_findings(
                    scan_id, findings, timeout=self._deadline.timeout(floor=TERMINAL_STATUS_GRACE)
                )
            except ReportingError as e:
                LOGGER.error(f"Failed to upload findings: {e}")
        else:
            LOGGER.info("No findings to upload")

        try:
            self._reporter.update_findings_count(
                scan_id, len(findings), timeout=self._deadline.timeout(floor=TERMINAL_STATUS_GRACE)
            )
        except ReportingError as e:
            LOGGER.warning(f"Failed to update findings count: {e}")

    def _finish(
        self,
        status: ScanStatus,
        message: str,
        results: Optional[List[ScanResult]] = None,
        findings: Optional[List[Finding]] = None,
    ) -> JobOutcome:
        if self._terminal_sent:
            raise RuntimeError("terminal status already announced")
        self._terminal_sent = True

        try:
            self._reporter.update_status(
                self._config.scan_id,
                status,
                message,
                timeout=self._deadline.timeout(floor=TERMINAL_STATUS_GRACE),
            )
        except ReportingError as e:
            LOGGER.warning(f"Failed to update scan status to {status.value}: {e}")

        return JobOutcome(
            status=status,
            message=message,
            results=list(results or []),
            findings=list(findings or []),
        )


def run_job(
    config: RunnerConfig,
    reporter: StatusReporter,
    deadline: Optional[Deadline] = None,
    sequential: bool = False,
) -> JobOutcome:
    """Run one scan job end to end with the default collaborators."""
    job = ScanJob(
        config,
        reporter,
        deadline=deadline,
        executor=ParallelScannerExecutor(sequential=sequential),
    )
    return job.run()
