from __future__ import annotations

import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from cloudscan_runner.core.deadline import Deadline
from cloudscan_runner.core.models import Category, Finding


class ScannerPlugin(ABC):
    """Base class for all scanner plugins.

    Each plugin wraps one external security tool, invoked as an opaque
    program, and turns its output into normalized findings. Plugins never
    talk to the orchestrator.
    """

    #: Executable looked up on PATH unless overridden per instance.
    default_binary: str = ""

    def __init__(
        self,
        binary: Optional[str] = None,
        results_dir: Optional[Path] = None,
    ) -> None:
        self._binary = binary or self.default_binary
        self._results_dir = results_dir

    @property
    @abstractmethod
    def name(self) -> str:
        """Plugin identifier (e.g., 'trivy', 'semgrep')."""

    @property
    @abstractmethod
    def category(self) -> Category:
        """Category every finding of this plugin carries."""

    def resolve_binary(self) -> Optional[str]:
        """Full path of the tool executable, or None if it is not installed."""
        return shutil.which(self._binary)

    def is_available(self) -> bool:
        """True iff the tool executable is resolvable on PATH."""
        return self.resolve_binary() is not None

    @abstractmethod
    def scan(self, work_dir: Path, deadline: Optional[Deadline] = None) -> List[Finding]:
        """Run the tool against ``work_dir`` and return normalized findings.

        Raises:
            ScannerError: If the tool is missing, cannot be started, or its
                output cannot be parsed.
        """
