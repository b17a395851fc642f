"""Semgrep scanner plugin for SAST (Static Application Security Testing)."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from cloudscan_runner.core.deadline import Deadline
from cloudscan_runner.core.errors import ScannerError
from cloudscan_runner.core.logging import get_logger
from cloudscan_runner.core.models import Category, Finding, Severity
from cloudscan_runner.plugins.scanners.base import ScannerPlugin
from cloudscan_runner.plugins.scanners.utils import (
    as_dict,
    as_int,
    as_list,
    relative_path,
    run_for_results_file,
)

LOGGER = get_logger(__name__)

# Semgrep reports ERROR, WARNING or INFO per match
SEMGREP_SEVERITY_MAP: Dict[str, Severity] = {
    "ERROR": Severity.HIGH,
    "WARNING": Severity.MEDIUM,
    "INFO": Severity.LOW,
}


def map_severity(severity: Any) -> Severity:
    """Map a Semgrep severity string; anything unrecognized is MEDIUM."""
    return SEMGREP_SEVERITY_MAP.get(severity, Severity.MEDIUM) if isinstance(severity, str) else Severity.MEDIUM


class SemgrepScanner(ScannerPlugin):
    """Scanner plugin for Semgrep (SAST).

    Runs ``semgrep --config=auto`` over the working tree and reads the JSON
    report it writes to a results file.
    """

    default_binary = "semgrep"

    @property
    def name(self) -> str:
        return "semgrep"

    @property
    def category(self) -> Category:
        return Category.SAST

    def build_command(self, binary: str, results_file: Path, work_dir: Path) -> List[str]:
        return [
            binary,
            "--config=auto",
            "--json",
            f"--output={results_file}",
            "--timeout=0",
            "--max-memory=0",
            str(work_dir),
        ]

    def scan(self, work_dir: Path, deadline: Optional[Deadline] = None) -> List[Finding]:
        LOGGER.info(f"Starting Semgrep scan of {work_dir}")

        binary = self.resolve_binary()
        if binary is None:
            raise ScannerError("semgrep is not installed")

        document = run_for_results_file(
            self.name,
            lambda results_file: self.build_command(binary, results_file, work_dir),
            work_dir,
            deadline,
            self._results_dir,
        )
        findings = self.parse_results(document, work_dir)

        LOGGER.info(f"Semgrep scan complete: {len(findings)} findings")
        return findings

    def parse_results(self, document: Any, work_dir: Path) -> List[Finding]:
        """Convert a Semgrep JSON report into findings.

        Raises:
            ScannerError: If the document is not a Semgrep report object.
        """
        if not isinstance(document, dict):
            raise ScannerError("failed to parse semgrep results: expected a JSON object")

        findings: List[Finding] = []
        for match in as_list(document.get("results")):
            if not isinstance(match, dict):
                continue
            findings.append(self._match_to_finding(match, work_dir))
        return findings

    def _match_to_finding(self, match: Dict[str, Any], work_dir: Path) -> Finding:
        extra = as_dict(match.get("extra"))
        metadata = as_dict(extra.get("metadata"))

        # Registry rules carry severity in metadata; local rules only at the top of "extra"
        severity = metadata.get("severity") or extra.get("severity")

        cwe = as_list(metadata.get("cwe"))
        if isinstance(metadata.get("cwe"), str):
            cwe = [metadata["cwe"]]

        return Finding(
            category=Category.SAST,
            severity=map_severity(severity),
            title=str(match.get("check_id") or ""),
            description=str(extra.get("message") or ""),
            file_path=relative_path(str(match.get("path") or ""), work_dir),
            line_number=as_int(as_dict(match.get("start")).get("line")),
            code_snippet=str(extra.get("lines") or ""),
            cwe_id=str(cwe[0]) if cwe else "",
        )
