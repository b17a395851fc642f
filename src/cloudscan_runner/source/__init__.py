"""Acquisition of the source tree a scan runs against."""

from cloudscan_runner.source.downloader import download_and_extract, extract_zip
from cloudscan_runner.source.git import clone_repository

__all__ = [
    "download_and_extract",
    "extract_zip",
    "clone_repository",
]
