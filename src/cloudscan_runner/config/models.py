from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional


@dataclass
class RunnerConfig:
    """Runtime configuration of one scan job."""

    scan_id: str
    orchestrator_endpoint: str
    scan_types: List[str]

    # Source: an archive URL, or a git repository when no URL is given
    source_download_url: str = ""
    git_url: str = ""
    git_branch: str = ""
    git_commit: str = ""

    # Job metadata, only logged
    source_artifact_id: str = ""
    organization_id: str = ""
    project_id: str = ""

    work_dir: Path = Path("/workspace")
    results_dir: Optional[Path] = None

    # Timeouts in seconds
    scan_timeout: int = 1800
    download_timeout: int = 300
    connect_timeout: int = 10

    log_level: str = "info"

    @property
    def uses_archive(self) -> bool:
        return bool(self.source_download_url)
