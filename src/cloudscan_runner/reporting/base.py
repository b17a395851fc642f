from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from cloudscan_runner.core.models import Finding, ScanStatus


class StatusReporter(ABC):
    """Contract of the remote authority that tracks a scan.

    One reporter is opened per job, used sequentially by the pipeline and
    closed at the end. Every method raises ReportingError on failure.
    ``timeout`` is the per-call bound in seconds (None for unbounded).
    """

    @abstractmethod
    def update_status(
        self,
        scan_id: str,
        status: ScanStatus,
        message: str = "",
        timeout: Optional[float] = None,
    ) -> None:
        """Announce a lifecycle transition, with an error message for FAILED."""

    @abstractmethod
    def create_findings(
        self,
        scan_id: str,
        findings: Sequence[Finding],
        timeout: Optional[float] = None,
    ) -> int:
        """Deliver findings in bulk. Returns the acknowledged created count."""

    @abstractmethod
    def update_findings_count(
        self,
        scan_id: str,
        count: int,
        timeout: Optional[float] = None,
    ) -> None:
        """Record the total number of findings of the scan."""

    def close(self) -> None:
        """Release the connection. Idempotent."""

    def __enter__(self) -> "StatusReporter":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
