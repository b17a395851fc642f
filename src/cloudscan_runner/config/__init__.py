"""Job configuration."""

from cloudscan_runner.config.loader import load_config
from cloudscan_runner.config.models import RunnerConfig

__all__ = ["load_config", "RunnerConfig"]
