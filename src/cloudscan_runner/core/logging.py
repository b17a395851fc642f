from __future__ import annotations

import json
import logging
from typing import Optional

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JsonFormatter(logging.Formatter):
    """Render each record as a single JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["error"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def resolve_level(name: Optional[str]) -> int:
    """Map a LOG_LEVEL string to a logging level, defaulting to INFO."""

    if not name:
        return logging.INFO
    return _LEVELS.get(name.strip().lower(), logging.INFO)


def configure_logging(level: Optional[str] = "info", *, json_format: bool = False) -> None:
    """Configure root logging once for the job process.

    Unknown level names fall back to INFO.
    """

    handler = logging.StreamHandler()
    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))

    logging.basicConfig(level=resolve_level(level), handlers=[handler], force=True)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a module-level logger."""

    return logging.getLogger(name if name is not None else __name__)
