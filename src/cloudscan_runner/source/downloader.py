"""Source archive download and safe extraction.

The orchestrator hands the runner a presigned URL for a zip of the source
tree. The archive is streamed to a temporary file, then extracted entry by
entry into the working directory. Every entry is checked against path
traversal ("zip slip") before anything is written for it.
"""

from __future__ import annotations

import os
import shutil
import ssl
import stat
import tempfile
import time
import zipfile
from pathlib import Path
from typing import Optional, Union
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

import certifi

from cloudscan_runner.core.deadline import Deadline
from cloudscan_runner.core.errors import FetchError
from cloudscan_runner.core.logging import get_logger

LOGGER = get_logger(__name__)

CHUNK_SIZE = 64 * 1024
DEFAULT_DIR_MODE = 0o755
DEFAULT_FILE_MODE = 0o644


def get_ssl_context() -> ssl.SSLContext:
    """SSL context backed by certifi's CA bundle."""
    return ssl.create_default_context(cafile=certifi.where())


def download_and_extract(
    url: str,
    dest_dir: Union[str, Path],
    timeout: float,
    deadline: Optional[Deadline] = None,
    tmp_dir: Optional[Union[str, Path]] = None,
) -> None:
    """Download a zip archive from ``url`` and extract it into ``dest_dir``.

    Args:
        url: Presigned HTTP(S) URL of the archive.
        dest_dir: Directory to populate. Created if missing.
        timeout: Seconds allowed for the whole download.
        deadline: Job deadline; the download stops early when it is done.
        tmp_dir: Where to keep the downloaded archive while extracting.

    Raises:
        FetchError: On transport errors, non-2xx responses, timeouts,
            cancellation, corrupt archives or path-escaping entries. The
            destination may be partially populated; it is not rolled back.
    """
    deadline = deadline or Deadline.never()
    dest = Path(dest_dir)

    LOGGER.info(f"Downloading source archive into {dest}")

    try:
        dest.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FetchError(f"failed to create destination directory: {e}") from e

    fd, tmp_name = tempfile.mkstemp(suffix=".zip", prefix="source-", dir=tmp_dir)
    os.close(fd)
    archive = Path(tmp_name)
    try:
        size = download_file(url, archive, timeout, deadline)
        LOGGER.info(f"Download complete ({size} bytes), extracting archive")
        extract_zip(archive, dest)
    finally:
        archive.unlink(missing_ok=True)

    LOGGER.info("Source extracted successfully")


def download_file(url: str, dest_path: Path, timeout: float, deadline: Deadline) -> int:
    """Stream ``url`` to ``dest_path`` and return the number of bytes written.

    ``timeout`` bounds the whole transfer, not just each socket read.
    """
    if not url.startswith(("https://", "http://")):
        raise FetchError("only http and https source URLs are supported")

    started = time.monotonic()
    socket_timeout = deadline.timeout(cap=timeout)
    if socket_timeout is not None and socket_timeout <= 0:
        raise FetchError(f"download not started: {deadline.reason or 'timed out'}")

    context = get_ssl_context() if url.startswith("https://") else None
    request = Request(url, method="GET")

    written = 0
    try:
        with urlopen(request, timeout=socket_timeout, context=context) as response:  # nosec B310
            status = getattr(response, "status", 200)
            if not 200 <= status < 300:
                raise FetchError(f"download failed with status: {status}")

            with open(dest_path, "wb") as out:
                while True:
                    if deadline.done:
                        raise FetchError(f"download aborted: {deadline.reason}")
                    if time.monotonic() - started > timeout:
                        raise FetchError(f"download timed out after {timeout:g}s")
                    chunk = response.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    out.write(chunk)
                    written += len(chunk)
    except HTTPError as e:
        raise FetchError(f"download failed with status: {e.code} {e.reason}") from e
    except URLError as e:
        raise FetchError(f"failed to download: {e.reason}") from e
    except (TimeoutError, OSError) as e:
        raise FetchError(f"failed to download: {e}") from e

    LOGGER.debug(f"File downloaded: {written} bytes")
    return written


def extract_zip(archive: Union[str, Path], dest_dir: Union[str, Path]) -> None:
    """Extract every entry of ``archive`` into ``dest_dir``.

    Raises:
        FetchError: If the archive is corrupt or any entry escapes the root.
    """
    try:
        with zipfile.ZipFile(archive) as zf:
            for info in zf.infolist():
                try:
                    extract_entry(zf, info, dest_dir)
                except FetchError:
                    raise
                except (OSError, zipfile.BadZipFile, RuntimeError) as e:
                    raise FetchError(f"failed to extract {info.filename}: {e}") from e
    except zipfile.BadZipFile as e:
        raise FetchError(f"failed to open zip: {e}") from e


def resolve_entry_path(dest_dir: Union[str, Path], name: str) -> str:
    """Resolve an archive entry name to its destination path.

    The check is lexical: the joined path is normalized and must remain
    strictly inside ``dest_dir``. Absolute names and ``..`` segments that
    climb out of the root are rejected.
    """
    root = os.path.normpath(os.path.abspath(str(dest_dir)))
    target = os.path.normpath(os.path.join(root, name))
    if not target.startswith(root + os.sep):
        raise FetchError(f"invalid file path: {name}")
    return target


def extract_entry(zf: zipfile.ZipFile, info: zipfile.ZipInfo, dest_dir: Union[str, Path]) -> None:
    """Extract one entry, preserving its permission bits."""
    target = resolve_entry_path(dest_dir, info.filename)
    mode = entry_mode(info)

    if info.is_dir():
        os.makedirs(target, mode=mode or DEFAULT_DIR_MODE, exist_ok=True)
        return

    os.makedirs(os.path.dirname(target), mode=DEFAULT_DIR_MODE, exist_ok=True)

    file_mode = mode or DEFAULT_FILE_MODE
    with zf.open(info) as src:
        fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, file_mode)
        with os.fdopen(fd, "wb") as dst:
            shutil.copyfileobj(src, dst)
    # The umask applies on creation, and O_CREAT keeps the mode of files that already exist
    os.chmod(target, file_mode)


def entry_mode(info: zipfile.ZipInfo) -> int:
    """Permission bits recorded for an entry, or 0 when the archive has none."""
    return stat.S_IMODE(info.external_attr >> 16)
