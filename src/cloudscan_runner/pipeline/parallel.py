"""Parallel scanner execution using ThreadPoolExecutor."""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor, wait
from pathlib import Path
from typing import List, Optional, Sequence

from cloudscan_runner.core.deadline import Deadline
from cloudscan_runner.core.logging import get_logger
from cloudscan_runner.core.models import ScanResult
from cloudscan_runner.plugins.scanners.base import ScannerPlugin

LOGGER = get_logger(__name__)


class ParallelScannerExecutor:
    """Runs every scanner in its own worker thread.

    Results are written into a list sized up front; each worker owns exactly
    one index, so no lock is needed. ``run_all`` returns only after every
    worker finished: there is no early exit on the first failure.
    """

    def __init__(self, sequential: bool = False) -> None:
        """Initialize the executor.

        Args:
            sequential: If True, run scanners one after another (for debugging).
        """
        self._sequential = sequential

    def run_all(
        self,
        scanners: Sequence[ScannerPlugin],
        work_dir: Path,
        deadline: Optional[Deadline] = None,
    ) -> List[ScanResult]:
        """Run all scanners against ``work_dir``.

        Returns:
            One ScanResult per scanner, in the same order as ``scanners``.
        """
        deadline = deadline or Deadline.never()
        results: List[Optional[ScanResult]] = [None] * len(scanners)
        if not scanners:
            return []

        def run_slot(index: int) -> None:
            results[index] = self._run_scanner(scanners[index], work_dir, deadline)

        if self._sequential:
            for index in range(len(scanners)):
                run_slot(index)
        else:
            # One worker per scanner; the set is small and fixed
            with ThreadPoolExecutor(
                max_workers=len(scanners), thread_name_prefix="scanner"
            ) as executor:
                wait([executor.submit(run_slot, index) for index in range(len(scanners))])

        return [
            result if result is not None else ScanResult(
                scanner_name=scanner.name,
                category=scanner.category,
                error="scanner did not report a result",
            )
            for scanner, result in zip(scanners, results)
        ]

    def _run_scanner(
        self,
        scanner: ScannerPlugin,
        work_dir: Path,
        deadline: Deadline,
    ) -> ScanResult:
        """Run a single scanner and return its result.

        Never raises: any exception becomes the error of this scanner's slot.
        """
        LOGGER.info(f"Starting scanner {scanner.name}")
        started = time.monotonic()

        try:
            findings = scanner.scan(work_dir, deadline)
        except Exception as e:
            duration = time.monotonic() - started
            LOGGER.error(f"Scanner {scanner.name} failed after {duration:.1f}s: {e}")
            return ScanResult(
                scanner_name=scanner.name,
                category=scanner.category,
                error=str(e) or type(e).__name__,
            )

        foreign = [f for f in findings if f.category != scanner.category]
        if foreign:
            LOGGER.warning(
                f"Dropping {len(foreign)} findings from {scanner.name} outside category {scanner.category.value}"
            )
            findings = [f for f in findings if f.category == scanner.category]

        duration = time.monotonic() - started
        LOGGER.info(f"Scanner {scanner.name} completed in {duration:.1f}s: {len(findings)} findings")
        return ScanResult(
            scanner_name=scanner.name,
            category=scanner.category,
            findings=list(findings),
        )
