"""Scanner plugins for integrating external security tools.

Each scan category maps to exactly one plugin class. The table is fixed at
import time; selection filters it by the requested categories and by which
tools are installed.
"""

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Type

from cloudscan_runner.core.logging import get_logger
from cloudscan_runner.core.models import Category
from cloudscan_runner.plugins.scanners.base import ScannerPlugin
from cloudscan_runner.plugins.scanners.scancode import ScanCodeScanner
from cloudscan_runner.plugins.scanners.semgrep import SemgrepScanner
from cloudscan_runner.plugins.scanners.trivy import TrivyScanner
from cloudscan_runner.plugins.scanners.trufflehog import TruffleHogScanner

LOGGER = get_logger(__name__)

SCANNERS_BY_CATEGORY: Dict[Category, Type[ScannerPlugin]] = {
    Category.SAST: SemgrepScanner,
    Category.SCA: TrivyScanner,
    Category.SECRETS: TruffleHogScanner,
    Category.LICENSE: ScanCodeScanner,
}


def parse_categories(values: Iterable[str]) -> List[Category]:
    """Parse requested category names, dropping unknown ones and duplicates."""
    categories: List[Category] = []
    for value in values:
        if not value.strip():
            continue
        category = Category.parse(value)
        if category is None:
            LOGGER.warning(f"Unknown scan type: {value.strip()}")
            continue
        if category not in categories:
            categories.append(category)
    return categories


def select_scanners(
    requested: Iterable[str],
    results_dir: Optional[Path] = None,
    registry: Optional[Dict[Category, Type[ScannerPlugin]]] = None,
) -> List[ScannerPlugin]:
    """Instantiate the available scanners for the requested categories.

    Scanners whose tool is not installed are left out with a warning; they
    are never run and recorded as failures.
    """
    table = registry if registry is not None else SCANNERS_BY_CATEGORY
    scanners: List[ScannerPlugin] = []

    for category in parse_categories(requested):
        plugin_class = table.get(category)
        if plugin_class is None:
            LOGGER.warning(f"No scanner registered for scan type {category.value}")
            continue
        scanner = plugin_class(results_dir=results_dir)
        if scanner.is_available():
            scanners.append(scanner)
        else:
            LOGGER.warning(f"{scanner.name} scanner not available")

    return scanners


__all__ = [
    "ScannerPlugin",
    "SemgrepScanner",
    "TrivyScanner",
    "TruffleHogScanner",
    "ScanCodeScanner",
    "SCANNERS_BY_CATEGORY",
    "parse_categories",
    "select_scanners",
]
