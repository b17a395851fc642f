"""ScanCode scanner plugin for license compliance."""

from __future__ import annotations

import os
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

# License category (as reported by ScanCode) to severity
LICENSE_SEVERITY_MAP: Dict[str, Severity] = {
    "Copyleft": Severity.HIGH,
    "Strong Copyleft": Severity.HIGH,
    "Copyleft Limited": Severity.MEDIUM,
    "Permissive": Severity.LOW,
    "Proprietary Free": Severity.LOW,
}

SCANCODE_PROCESSES = "4"


def map_severity(category: Any) -> Severity:
    """Map a license category; unknown categories are MEDIUM."""
    return LICENSE_SEVERITY_MAP.get(category, Severity.MEDIUM) if isinstance(category, str) else Severity.MEDIUM


def tree_path(path: str, work_dir: Path) -> str:
    """Path of a ScanCode file entry relative to the scanned tree.

    Without --strip-root or --full-root, ScanCode prefixes every path with
    the name of the scanned directory itself ("workspace/src/app.py").
    """
    if os.path.isabs(path):
        return relative_path(path, work_dir)
    prefix = f"{work_dir.name}/"
    if work_dir.name and path.startswith(prefix):
        return path[len(prefix):]
    return path


class ScanCodeScanner(ScannerPlugin):
    """Scanner plugin for ScanCode Toolkit (licenses and copyrights).

    Every detected license in every file becomes one finding. Copyleft
    licenses rank highest since they constrain how the code may ship.
    """

    default_binary = "scancode"

    @property
    def name(self) -> str:
        return "scancode"

    @property
    def category(self) -> Category:
        return Category.LICENSE

    def build_command(self, binary: str, results_file: Path, work_dir: Path) -> List[str]:
        return [
            binary,
            "--license",
            "--copyright",
            "--json-pp", str(results_file),
            "--processes", SCANCODE_PROCESSES,
            str(work_dir),
        ]

    def scan(self, work_dir: Path, deadline: Optional[Deadline] = None) -> List[Finding]:
        LOGGER.info(f"Starting ScanCode scan of {work_dir}")

        binary = self.resolve_binary()
        if binary is None:
            raise ScannerError("scancode is not installed")

        document = run_for_results_file(
            self.name,
            lambda results_file: self.build_command(binary, results_file, work_dir),
            work_dir,
            deadline,
            self._results_dir,
        )
        findings = self.parse_results(document, work_dir)

        LOGGER.info(f"ScanCode scan complete: {len(findings)} findings")
        return findings

    def parse_results(self, document: Any, work_dir: Path) -> List[Finding]:
        """Convert a ScanCode JSON report into findings.

        Raises:
            ScannerError: If the document is not a ScanCode report object.
        """
        if not isinstance(document, dict):
            raise ScannerError("failed to parse scancode results: expected a JSON object")

        findings: List[Finding] = []
        for entry in as_list(document.get("files")):
            entry = as_dict(entry)
            if entry.get("type") == "directory":
                continue

            path = tree_path(str(entry.get("path") or ""), work_dir)
            copyrights = [
                str(c.get("value") or c.get("copyright"))
                for c in as_list(entry.get("copyrights"))
                if isinstance(c, dict) and (c.get("value") or c.get("copyright"))
            ]

            for license_info in as_list(entry.get("licenses")):
                if isinstance(license_info, dict):
                    findings.append(self._license_to_finding(license_info, path, copyrights))
        return findings

    def _license_to_finding(
        self,
        license_info: Dict[str, Any],
        path: str,
        copyrights: List[str],
    ) -> Finding:
        category = license_info.get("category") or ""
        short_name = license_info.get("short_name") or license_info.get("key") or "unknown"
        full_name = license_info.get("name") or short_name

        description = f"License '{full_name}' detected in file"
        if category:
            description += f" (Category: {category})"
        if copyrights:
            description += "\n\nCopyright: " + "; ".join(copyrights)

        return Finding(
            category=Category.LICENSE,
            severity=map_severity(category),
            title=f"License: {short_name}",
            description=description,
            file_path=path,
            line_number=as_int(license_info.get("start_line")),
        )
