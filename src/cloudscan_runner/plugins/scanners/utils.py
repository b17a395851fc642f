"""Helpers shared by scanner plugins."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, List, Optional

from cloudscan_runner.core.deadline import Deadline
from cloudscan_runner.core.errors import ScannerError
from cloudscan_runner.core.logging import get_logger
from cloudscan_runner.core.subprocess_runner import run_tool

LOGGER = get_logger(__name__)


def run_for_results_file(
    tool_name: str,
    build_cmd: Callable[[Path], List[str]],
    work_dir: Path,
    deadline: Optional[Deadline],
    results_dir: Optional[Path] = None,
) -> Any:
    """Run a tool that writes one JSON document to a file, and load it.

    ``build_cmd`` receives the results file path and returns the command.
    The file lives in a private temporary directory that is removed
    afterwards, so concurrent scans never share it.

    Raises:
        ScannerError: If the tool produced no results file or the file is
            not valid JSON.
    """
    with tempfile.TemporaryDirectory(prefix=f"{tool_name}-", dir=results_dir) as tmp:
        results_file = Path(tmp) / f"{tool_name}-results.json"
        result = run_tool(build_cmd(results_file), cwd=work_dir, tool_name=tool_name, deadline=deadline)

        if result.returncode != 0:
            LOGGER.warning(
                f"{tool_name} exited with code {result.returncode} (may have findings)"
            )
        LOGGER.debug(f"{tool_name} output: {len(result.stdout)} bytes stdout, {len(result.stderr)} bytes stderr")

        if not results_file.exists():
            detail = _last_line(result.stderr)
            raise ScannerError(
                f"{tool_name} produced no results file (exit code {result.returncode})"
                + (f": {detail}" if detail else "")
            )
        return load_json_file(results_file, tool_name)


def load_json_file(path: Path, tool_name: str) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except OSError as e:
        raise ScannerError(f"failed to read {tool_name} results: {e}") from e
    except json.JSONDecodeError as e:
        raise ScannerError(f"failed to parse {tool_name} results: {e}") from e


def relative_path(path: str, work_dir: Path) -> str:
    """Express a tool-reported path relative to the scanned tree.

    Paths outside the tree, and relative paths, are returned unchanged.
    """
    if not path or not os.path.isabs(path):
        return path
    root = os.path.abspath(str(work_dir))
    candidate = os.path.normpath(path)
    if candidate == root or not candidate.startswith(root + os.sep):
        return path
    return os.path.relpath(candidate, root)


def as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _last_line(text: str) -> str:
    lines = [line for line in text.strip().splitlines() if line.strip()]
    return lines[-1].strip() if lines else ""
