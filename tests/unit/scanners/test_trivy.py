"""Tests for TrivyScanner plugin."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import pytest

from cloudscan_runner.core.errors import ScannerError
from cloudscan_runner.core.models import Category, Severity
from cloudscan_runner.plugins.scanners.trivy import TrivyScanner, map_severity

SAMPLE_REPORT: Dict[str, Any] = {
    "SchemaVersion": 2,
    "Results": [
        {
            "Target": "package-lock.json",
            "Class": "lang-pkgs",
            "Vulnerabilities": [
                {
                    "VulnerabilityID": "CVE-1",
                    "PkgName": "lodash",
                    "InstalledVersion": "4.17.15",
                    "FixedVersion": "4.17.21",
                    "Severity": "HIGH",
                    "Description": "Prototype pollution",
                    "CweIDs": ["CWE-1321"],
                },
                {
                    "VulnerabilityID": "CVE-2",
                    "PkgName": "minimist",
                    "InstalledVersion": "1.2.0",
                    "Severity": "LOW",
                    "Description": "Minor issue",
                },
            ],
        },
        {"Target": "go.sum", "Class": "lang-pkgs", "Vulnerabilities": None},
    ],
}


class TestTrivyScannerInterface:
    def test_name_and_category(self) -> None:
        scanner = TrivyScanner()
        assert scanner.name == "trivy"
        assert scanner.category is Category.SCA

    def test_build_command(self) -> None:
        cmd = TrivyScanner().build_command("trivy", Path("/tmp/r/trivy-results.json"), Path("/workspace"))
        assert cmd == [
            "trivy",
            "fs",
            "--format=json",
            "--output=/tmp/r/trivy-results.json",
            "--scanners=vuln",
            "--severity=CRITICAL,HIGH,MEDIUM,LOW",
            "/workspace",
        ]


class TestTrivySeverityMapping:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("CRITICAL", Severity.CRITICAL),
            ("HIGH", Severity.HIGH),
            ("MEDIUM", Severity.MEDIUM),
            ("LOW", Severity.LOW),
            ("UNKNOWN", Severity.MEDIUM),
            ("", Severity.MEDIUM),
            (None, Severity.MEDIUM),
        ],
    )
    def test_mapping_is_total(self, raw: Any, expected: Severity) -> None:
        assert map_severity(raw) is expected


class TestTrivyParsing:
    """Tests for parse_results."""

    def test_parses_vulnerabilities(self) -> None:
        findings = TrivyScanner().parse_results(SAMPLE_REPORT, Path("/workspace"))

        assert [f.cve_id for f in findings] == ["CVE-1", "CVE-2"]
        assert [f.severity for f in findings] == [Severity.HIGH, Severity.LOW]
        assert all(f.category is Category.SCA for f in findings)
        assert all(f.file_path == "package-lock.json" for f in findings)

    def test_title_and_fix_version(self) -> None:
        first, second = TrivyScanner().parse_results(SAMPLE_REPORT, Path("/workspace"))

        assert first.title == "CVE-1 in lodash@4.17.15"
        assert first.description == "Prototype pollution\n\nFixed in version: 4.17.21"
        assert first.cwe_id == "CWE-1321"
        assert second.description == "Minor issue"
        assert second.cwe_id == ""

    def test_null_vulnerabilities_are_skipped(self) -> None:
        report = {"Results": [{"Target": "go.sum", "Vulnerabilities": None}]}
        assert TrivyScanner().parse_results(report, Path("/workspace")) == []

    def test_report_without_results(self) -> None:
        assert TrivyScanner().parse_results({"SchemaVersion": 2}, Path("/workspace")) == []

    def test_non_object_document_fails(self) -> None:
        with pytest.raises(ScannerError):
            TrivyScanner().parse_results("garbage", Path("/workspace"))
