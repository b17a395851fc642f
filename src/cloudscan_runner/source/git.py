"""Git repository checkout for jobs that carry a repository URL instead of an archive."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import List, Optional, Union

from cloudscan_runner.core.deadline import Deadline
from cloudscan_runner.core.errors import FetchError, ScannerError
from cloudscan_runner.core.logging import get_logger
from cloudscan_runner.core.subprocess_runner import run_tool

LOGGER = get_logger(__name__)


def clone_repository(
    url: str,
    dest_dir: Union[str, Path],
    branch: str = "",
    commit: str = "",
    deadline: Optional[Deadline] = None,
) -> None:
    """Shallow-clone ``url`` into ``dest_dir``.

    When ``commit`` is given it is fetched and checked out after the clone,
    so the tree matches exactly what the scan was requested for.

    Raises:
        FetchError: If git is missing or any git command fails.
    """
    git = shutil.which("git")
    if git is None:
        raise FetchError("git is not installed")

    dest = Path(dest_dir)
    dest.parent.mkdir(parents=True, exist_ok=True)

    cmd = [git, "clone", "--depth", "1"]
    if branch:
        cmd.extend(["--branch", branch])
    cmd.extend([url, str(dest)])

    LOGGER.info(f"Cloning repository (branch={branch or 'default'}, commit={commit or 'HEAD'})")
    _git(cmd, dest.parent, deadline)

    if commit:
        _git([git, "fetch", "--depth", "1", "origin", commit], dest, deadline)
        _git([git, "checkout", "--detach", "FETCH_HEAD"], dest, deadline)

    LOGGER.info("Repository cloned successfully")


def _git(cmd: List[str], cwd: Path, deadline: Optional[Deadline]) -> None:
    try:
        result = run_tool(cmd, cwd=cwd, tool_name="git", deadline=deadline)
    except ScannerError as e:
        raise FetchError(str(e)) from e

    if result.returncode != 0:
        # git prints the remote URL in some messages; keep only the last stderr line
        detail = result.stderr.strip().splitlines()[-1] if result.stderr.strip() else ""
        raise FetchError(f"git {cmd[1]} failed with exit code {result.returncode}: {detail}")
