"""Trivy scanner plugin for SCA (Software Composition Analysis)."""

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
    as_list,
    relative_path,
    run_for_results_file,
)

LOGGER = get_logger(__name__)

# Trivy severity mapping to unified severity
TRIVY_SEVERITY_MAP: Dict[str, Severity] = {
    "CRITICAL": Severity.CRITICAL,
    "HIGH": Severity.HIGH,
    "MEDIUM": Severity.MEDIUM,
    "LOW": Severity.LOW,
}


def map_severity(severity: Any) -> Severity:
    """Map a Trivy severity string; UNKNOWN and anything else is MEDIUM."""
    return TRIVY_SEVERITY_MAP.get(severity, Severity.MEDIUM) if isinstance(severity, str) else Severity.MEDIUM


class TrivyScanner(ScannerPlugin):
    """Scanner plugin for Trivy (SCA).

    Runs ``trivy fs`` in vulnerability mode over the working tree. Trivy
    groups vulnerabilities by scanned target (lockfile, manifest, ...), and
    every vulnerability becomes one finding against that target.
    """

    default_binary = "trivy"

    @property
    def name(self) -> str:
        return "trivy"

    @property
    def category(self) -> Category:
        return Category.SCA

    def build_command(self, binary: str, results_file: Path, work_dir: Path) -> List[str]:
        return [
            binary,
            "fs",
            "--format=json",
            f"--output={results_file}",
            "--scanners=vuln",
            "--severity=CRITICAL,HIGH,MEDIUM,LOW",
            str(work_dir),
        ]

    def scan(self, work_dir: Path, deadline: Optional[Deadline] = None) -> List[Finding]:
        LOGGER.info(f"Starting Trivy scan of {work_dir}")

        binary = self.resolve_binary()
        if binary is None:
            raise ScannerError("trivy is not installed")

        document = run_for_results_file(
            self.name,
            lambda results_file: self.build_command(binary, results_file, work_dir),
            work_dir,
            deadline,
            self._results_dir,
        )
        findings = self.parse_results(document, work_dir)

        LOGGER.info(f"Trivy scan complete: {len(findings)} findings")
        return findings

    def parse_results(self, document: Any, work_dir: Path) -> List[Finding]:
        """Convert a Trivy JSON report into findings.

        Raises:
            ScannerError: If the document is not a Trivy report object.
        """
        if not isinstance(document, dict):
            raise ScannerError("failed to parse trivy results: expected a JSON object")

        findings: List[Finding] = []
        for result in as_list(document.get("Results")):
            result = as_dict(result)
            target = relative_path(str(result.get("Target") or ""), work_dir)
            # Trivy writes "Vulnerabilities": null for clean targets
            for vuln in as_list(result.get("Vulnerabilities")):
                if isinstance(vuln, dict):
                    findings.append(self._vuln_to_finding(vuln, target))
        return findings

    def _vuln_to_finding(self, vuln: Dict[str, Any], target: str) -> Finding:
        vuln_id = str(vuln.get("VulnerabilityID") or "")
        pkg_name = vuln.get("PkgName") or ""
        installed_version = vuln.get("InstalledVersion") or ""
        fixed_version = vuln.get("FixedVersion") or ""

        description = str(vuln.get("Description") or "")
        if fixed_version:
            description += f"\n\nFixed in version: {fixed_version}"

        cwe_ids = as_list(vuln.get("CweIDs"))

        return Finding(
            category=Category.SCA,
            severity=map_severity(vuln.get("Severity")),
            title=f"{vuln_id} in {pkg_name}@{installed_version}",
            description=description,
            file_path=target,
            cve_id=vuln_id,
            cwe_id=str(cwe_ids[0]) if cwe_ids else "",
        )
