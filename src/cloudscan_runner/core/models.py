from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class Category(str, Enum):
    """Scan categories a runner job can request."""

    SAST = "SAST"
    SCA = "SCA"
    SECRETS = "SECRETS"
    LICENSE = "LICENSE"

    @classmethod
    def parse(cls, value: str) -> Optional["Category"]:
        """Parse a category name case-insensitively, returning None if unknown."""
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


_SEVERITY_RANK = {"LOW": 0, "MEDIUM": 1, "HIGH": 2, "CRITICAL": 3}


class Severity(str, Enum):
    """Unified severity levels, ordered LOW < MEDIUM < HIGH < CRITICAL."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self.value]

    # str brings its own lexical ordering, so every comparison is overridden
    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


class ScanStatus(str, Enum):
    """Lifecycle states reported for a scan job."""

    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not ScanStatus.RUNNING


@dataclass
class Finding:
    """One normalized detection, the common output of every scanner."""

    category: Category
    severity: Severity
    title: str
    description: str
    file_path: str = ""
    line_number: int = 0
    code_snippet: str = ""
    cwe_id: str = ""
    cve_id: str = ""


@dataclass
class ScanResult:
    """Outcome of one scanner run.

    ``error`` is set only when the scanner failed outright; a result without an
    error may still carry zero findings.
    """

    scanner_name: str
    category: Category
    findings: List[Finding] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None
