"""Subprocess runner with line streaming and deadline support.

Runs external scanner tools, optionally handing every stdout line to a
callback while the process is still running, and kills the process as soon
as the job deadline expires or is cancelled.
"""

from __future__ import annotations

import queue
import subprocess
import threading
from pathlib import Path
from typing import Callable, List, Optional, Union
from urllib.parse import urlsplit, urlunsplit

from cloudscan_runner.core.deadline import Deadline
from cloudscan_runner.core.errors import ScanCancelledError, ScannerError
from cloudscan_runner.core.logging import get_logger

LOGGER = get_logger(__name__)

# How often the output loop wakes up to check the deadline
POLL_INTERVAL = 0.2

STDOUT = "stdout"
STDERR = "stderr"

LineCallback = Callable[[str], None]


def run_tool(
    cmd: List[str],
    cwd: Union[str, Path],
    tool_name: str,
    deadline: Optional[Deadline] = None,
    on_stdout_line: Optional[LineCallback] = None,
) -> subprocess.CompletedProcess:
    """Run a tool to completion, bounded by ``deadline``.

    Both streams are drained on reader threads. When ``on_stdout_line`` is
    given, each stdout line is passed to it in order as soon as it arrives.
    Output is captured either way and returned in the CompletedProcess.

    A non-zero exit code is returned to the caller, not raised: scanners
    exit non-zero when they report findings.

    Raises:
        ScannerError: If the process cannot be started.
        ScanCancelledError: If the deadline expires or the job is cancelled
            while the tool runs. The process is killed first.
    """
    deadline = deadline or Deadline.never()
    if deadline.done:
        raise ScanCancelledError(f"{tool_name} not started: {deadline.reason}")

    LOGGER.debug(f"Running: {' '.join(redact_command(cmd))}")

    stdout_lines: List[str] = []
    stderr_lines: List[str] = []

    try:
        proc = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            cwd=str(cwd),
        )
    except OSError as e:
        raise ScannerError(f"failed to start {tool_name}: {e}") from e

    with proc:
        output_queue: queue.Queue = queue.Queue()

        def read_stream(stream, stream_type: str) -> None:
            try:
                for line in stream:
                    output_queue.put((stream_type, line.rstrip("\n\r")))
            except (OSError, ValueError) as e:
                LOGGER.debug(f"{tool_name} {stream_type} closed early: {e}")
            finally:
                output_queue.put((stream_type, None))

        readers = [
            threading.Thread(target=read_stream, args=(proc.stdout, STDOUT), daemon=True),
            threading.Thread(target=read_stream, args=(proc.stderr, STDERR), daemon=True),
        ]
        for reader in readers:
            reader.start()

        streams_closed = 0
        while streams_closed < 2:
            if deadline.done:
                _kill(proc, tool_name)
                raise ScanCancelledError(f"{tool_name} stopped: {deadline.reason}")
            try:
                stream_type, line = output_queue.get(timeout=POLL_INTERVAL)
            except queue.Empty:
                continue

            if line is None:
                streams_closed += 1
            elif stream_type == STDOUT:
                stdout_lines.append(line)
                if on_stdout_line is not None:
                    on_stdout_line(line)
            else:
                stderr_lines.append(line)

        for reader in readers:
            reader.join(timeout=1)

        while True:
            try:
                proc.wait(timeout=POLL_INTERVAL)
                break
            except subprocess.TimeoutExpired:
                if deadline.done:
                    _kill(proc, tool_name)
                    raise ScanCancelledError(f"{tool_name} stopped: {deadline.reason}")

    return subprocess.CompletedProcess(
        args=cmd,
        returncode=proc.returncode,
        stdout="\n".join(stdout_lines),
        stderr="\n".join(stderr_lines),
    )


def _kill(proc: subprocess.Popen, tool_name: str) -> None:
    LOGGER.warning(f"Killing {tool_name} (pid {proc.pid})")
    proc.kill()
    proc.wait()


def redact_command(cmd: List[str]) -> List[str]:
    """Copy of ``cmd`` with credentials removed from URL arguments."""
    return [_redact_url(arg) for arg in cmd]


def _redact_url(arg: str) -> str:
    if "://" not in arg:
        return arg
    try:
        parts = urlsplit(arg)
    except ValueError:
        return arg
    if "@" not in parts.netloc:
        return arg
    host = parts.netloc.rsplit("@", 1)[1]
    return urlunsplit((parts.scheme, f"***@{host}", parts.path, parts.query, parts.fragment))
