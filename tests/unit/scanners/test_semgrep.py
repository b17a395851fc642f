"""Tests for SemgrepScanner plugin."""

from __future__ import annotations

import json
import subprocess
from pathlib import Path
from typing import Any, Dict, List
from unittest.mock import patch

import pytest

from cloudscan_runner.core.errors import ScannerError
from cloudscan_runner.core.models import Category, Severity
from cloudscan_runner.plugins.scanners.base import ScannerPlugin
from cloudscan_runner.plugins.scanners.semgrep import SemgrepScanner, map_severity

SAMPLE_REPORT: Dict[str, Any] = {
    "results": [
        {
            "check_id": "python.lang.security.audit.exec-detected",
            "path": "app/views.py",
            "start": {"line": 42, "col": 5},
            "extra": {
                "message": "Detected use of exec().",
                "severity": "WARNING",
                "lines": "    exec(user_input)",
                "metadata": {
                    "severity": "ERROR",
                    "cwe": ["CWE-95: Eval Injection", "CWE-94"],
                },
            },
        },
        {
            "check_id": "generic.secrets.gitleaks",
            "path": "config.py",
            "start": {"line": 3},
            "extra": {"message": "Hardcoded token", "severity": "INFO", "metadata": {}},
        },
    ],
    "errors": [],
}


def results_writer(document: Any, returncode: int = 1):
    """Fake run_tool that writes ``document`` to the --output path of the command."""

    def fake_run_tool(cmd: List[str], cwd, tool_name, deadline=None, on_stdout_line=None):
        output = next(arg for arg in cmd if arg.startswith("--output="))
        Path(output.split("=", 1)[1]).write_text(json.dumps(document))
        return subprocess.CompletedProcess(args=cmd, returncode=returncode, stdout="", stderr="")

    return fake_run_tool


class TestSemgrepScannerInterface:
    """Tests for SemgrepScanner implementing ScannerPlugin interface."""

    def test_inherits_from_scanner_plugin(self) -> None:
        assert issubclass(SemgrepScanner, ScannerPlugin)

    def test_name_and_category(self) -> None:
        scanner = SemgrepScanner()
        assert scanner.name == "semgrep"
        assert scanner.category is Category.SAST

    def test_is_available_checks_path(self) -> None:
        scanner = SemgrepScanner()
        with patch("cloudscan_runner.plugins.scanners.base.shutil.which", return_value=None):
            assert not scanner.is_available()
        with patch(
            "cloudscan_runner.plugins.scanners.base.shutil.which",
            return_value="/usr/local/bin/semgrep",
        ):
            assert scanner.is_available()

    def test_build_command(self, tmp_path: Path) -> None:
        scanner = SemgrepScanner()
        cmd = scanner.build_command("semgrep", Path("/tmp/r/semgrep-results.json"), Path("/workspace"))
        assert cmd == [
            "semgrep",
            "--config=auto",
            "--json",
            "--output=/tmp/r/semgrep-results.json",
            "--timeout=0",
            "--max-memory=0",
            "/workspace",
        ]


class TestSemgrepSeverityMapping:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("ERROR", Severity.HIGH),
            ("WARNING", Severity.MEDIUM),
            ("INFO", Severity.LOW),
            ("error", Severity.MEDIUM),
            ("", Severity.MEDIUM),
            (None, Severity.MEDIUM),
            (3, Severity.MEDIUM),
        ],
    )
    def test_mapping_is_total(self, raw: Any, expected: Severity) -> None:
        assert map_severity(raw) is expected


class TestSemgrepParsing:
    """Tests for parse_results."""

    def test_parses_matches(self) -> None:
        findings = SemgrepScanner().parse_results(SAMPLE_REPORT, Path("/workspace"))

        assert len(findings) == 2
        first = findings[0]
        assert first.category is Category.SAST
        assert first.title == "python.lang.security.audit.exec-detected"
        assert first.description == "Detected use of exec()."
        assert first.file_path == "app/views.py"
        assert first.line_number == 42
        assert first.code_snippet == "    exec(user_input)"
        assert first.cwe_id == "CWE-95: Eval Injection"
        assert first.cve_id == ""

    def test_metadata_severity_wins_over_extra(self) -> None:
        findings = SemgrepScanner().parse_results(SAMPLE_REPORT, Path("/workspace"))
        assert findings[0].severity is Severity.HIGH

    def test_falls_back_to_extra_severity(self) -> None:
        findings = SemgrepScanner().parse_results(SAMPLE_REPORT, Path("/workspace"))
        assert findings[1].severity is Severity.LOW
        assert findings[1].cwe_id == ""

    def test_absolute_paths_made_relative(self) -> None:
        report = {"results": [{"check_id": "x", "path": "/workspace/src/a.py", "extra": {}}]}
        findings = SemgrepScanner().parse_results(report, Path("/workspace"))
        assert findings[0].file_path == "src/a.py"

    def test_empty_report(self) -> None:
        assert SemgrepScanner().parse_results({"results": []}, Path("/workspace")) == []

    def test_non_object_document_fails(self) -> None:
        with pytest.raises(ScannerError, match="failed to parse semgrep results"):
            SemgrepScanner().parse_results(["not", "a", "report"], Path("/workspace"))


class TestSemgrepScan:
    """Tests for scan() with a faked tool process."""

    def test_scan_reads_results_file(self, tmp_path: Path) -> None:
        scanner = SemgrepScanner(results_dir=tmp_path)
        with patch.object(scanner, "resolve_binary", return_value="/usr/bin/semgrep"), \
             patch(
                 "cloudscan_runner.plugins.scanners.utils.run_tool",
                 side_effect=results_writer(SAMPLE_REPORT),
             ):
            findings = scanner.scan(tmp_path)

        assert len(findings) == 2
        # Results files are cleaned up after the scan
        assert list(tmp_path.iterdir()) == []

    def test_missing_binary(self, tmp_path: Path) -> None:
        scanner = SemgrepScanner()
        with patch.object(scanner, "resolve_binary", return_value=None):
            with pytest.raises(ScannerError, match="semgrep is not installed"):
                scanner.scan(tmp_path)

    def test_missing_results_file_fails(self, tmp_path: Path) -> None:
        crashed = subprocess.CompletedProcess(
            args=[], returncode=2, stdout="", stderr="Traceback...\nMemoryError"
        )
        scanner = SemgrepScanner()
        with patch.object(scanner, "resolve_binary", return_value="/usr/bin/semgrep"), \
             patch("cloudscan_runner.plugins.scanners.utils.run_tool", return_value=crashed):
            with pytest.raises(ScannerError) as exc_info:
                scanner.scan(tmp_path)

        assert "no results file" in str(exc_info.value)
        assert "MemoryError" in str(exc_info.value)

    def test_invalid_json_fails(self, tmp_path: Path) -> None:
        def write_garbage(cmd, cwd, tool_name, deadline=None, on_stdout_line=None):
            output = next(arg for arg in cmd if arg.startswith("--output="))
            Path(output.split("=", 1)[1]).write_text("{not json")
            return subprocess.CompletedProcess(args=cmd, returncode=0, stdout="", stderr="")

        scanner = SemgrepScanner()
        with patch.object(scanner, "resolve_binary", return_value="/usr/bin/semgrep"), \
             patch("cloudscan_runner.plugins.scanners.utils.run_tool", side_effect=write_garbage):
            with pytest.raises(ScannerError, match="failed to parse semgrep results"):
                scanner.scan(tmp_path)
