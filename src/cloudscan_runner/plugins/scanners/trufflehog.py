"""TruffleHog scanner plugin for secrets detection."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, List, Optional

from cloudscan_runner.core.deadline import Deadline
from cloudscan_runner.core.errors import ScannerError
from cloudscan_runner.core.logging import get_logger
from cloudscan_runner.core.models import Category, Finding, Severity
from cloudscan_runner.core.subprocess_runner import run_tool
from cloudscan_runner.plugins.scanners.base import ScannerPlugin
from cloudscan_runner.plugins.scanners.utils import as_dict, as_int, relative_path

LOGGER = get_logger(__name__)

SECRET_DESCRIPTION = "Potential secret found in source code"
VERIFIED_SUFFIX = " (VERIFIED - this secret is active!)"


class TruffleHogScanner(ScannerPlugin):
    """Scanner plugin for TruffleHog (secrets).

    TruffleHog prints one JSON object per detection on stdout. Lines are
    parsed as they arrive; a malformed line is skipped with a warning and
    never fails the scan. Secrets are always reported as HIGH, and the raw
    secret value is never copied into a finding.
    """

    default_binary = "trufflehog"

    @property
    def name(self) -> str:
        return "trufflehog"

    @property
    def category(self) -> Category:
        return Category.SECRETS

    def build_command(self, binary: str, work_dir: Path) -> List[str]:
        return [
            binary,
            "filesystem",
            "--json",
            "--no-verification",
            # Auto-update exits non-zero inside read-only containers
            "--no-update",
            str(work_dir),
        ]

    def scan(self, work_dir: Path, deadline: Optional[Deadline] = None) -> List[Finding]:
        LOGGER.info(f"Starting TruffleHog scan of {work_dir}")

        binary = self.resolve_binary()
        if binary is None:
            raise ScannerError("trufflehog is not installed")

        findings: List[Finding] = []
        skipped = 0

        def on_line(line: str) -> None:
            nonlocal skipped
            if not line.strip():
                return
            finding = self.parse_line(line, work_dir)
            if finding is None:
                skipped += 1
            else:
                findings.append(finding)

        result = run_tool(
            self.build_command(binary, work_dir),
            cwd=work_dir,
            tool_name=self.name,
            deadline=deadline,
            on_stdout_line=on_line,
        )

        if result.returncode != 0:
            LOGGER.warning(f"TruffleHog exited with code {result.returncode} (may have findings)")
            # Nothing parsed and an error on stderr means the tool crashed, not a clean tree
            if not findings and not skipped and result.stderr.strip():
                detail = result.stderr.strip().splitlines()[-1]
                raise ScannerError(f"trufflehog failed with exit code {result.returncode}: {detail}")

        if skipped:
            LOGGER.warning(f"Skipped {skipped} unparseable TruffleHog output lines")

        LOGGER.info(f"TruffleHog scan complete: {len(findings)} findings")
        return findings

    def parse_line(self, line: str, work_dir: Path) -> Optional[Finding]:
        """Parse one detection line, returning None when it is not usable."""
        try:
            detection: Any = json.loads(line)
        except (ValueError, RecursionError) as e:
            # JSONDecodeError, oversized integers and pathological nesting
            LOGGER.warning(f"Failed to parse trufflehog output line: {e}")
            return None

        if not isinstance(detection, dict):
            LOGGER.warning("Ignoring trufflehog output line that is not a JSON object")
            return None

        filesystem = as_dict(as_dict(as_dict(detection.get("SourceMetadata")).get("Data")).get("Filesystem"))

        description = SECRET_DESCRIPTION
        if detection.get("Verified") is True:
            description += VERIFIED_SUFFIX

        return Finding(
            category=Category.SECRETS,
            severity=Severity.HIGH,
            title=f"Secret detected: {detection.get('DetectorName') or 'unknown'}",
            description=description,
            file_path=relative_path(str(filesystem.get("file") or ""), work_dir),
            line_number=as_int(filesystem.get("line")),
        )
