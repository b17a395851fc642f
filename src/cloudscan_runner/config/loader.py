"""Configuration loading for a scan job.

The job receives its configuration through environment variables set by
the orchestrator. A YAML file may provide the same keys (lower-case) for
local runs; environment variables always win over the file. String values
in the file support ${VAR} and ${VAR:-default} expansion.
"""

from __future__ import annotations

import os
import re
import uuid
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from cloudscan_runner.config.models import RunnerConfig
from cloudscan_runner.core.errors import ConfigError
from cloudscan_runner.core.logging import get_logger

LOGGER = get_logger(__name__)

# Environment variable pattern: ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")

# Environment variable -> config key
ENV_KEYS: Dict[str, str] = {
    "SCAN_ID": "scan_id",
    "ORCHESTRATOR_ENDPOINT": "orchestrator_endpoint",
    "SCAN_TYPES": "scan_types",
    "SOURCE_DOWNLOAD_URL": "source_download_url",
    "GIT_URL": "git_url",
    "GIT_BRANCH": "git_branch",
    "GIT_COMMIT": "git_commit",
    "SOURCE_ARTIFACT_ID": "source_artifact_id",
    "ORGANIZATION_ID": "organization_id",
    "PROJECT_ID": "project_id",
    "WORK_DIR": "work_dir",
    "RESULTS_DIR": "results_dir",
    "SCAN_TIMEOUT": "scan_timeout",
    "DOWNLOAD_TIMEOUT": "download_timeout",
    "CONNECT_TIMEOUT": "connect_timeout",
    "LOG_LEVEL": "log_level",
}

TIMEOUT_DEFAULTS: Dict[str, int] = {
    "scan_timeout": 1800,
    "download_timeout": 300,
    "connect_timeout": 10,
}


def load_config(
    environ: Optional[Mapping[str, str]] = None,
    config_path: Optional[Path] = None,
) -> RunnerConfig:
    """Load and validate the job configuration.

    Args:
        environ: Environment to read (defaults to os.environ).
        config_path: Optional YAML file layered under the environment.

    Returns:
        Validated RunnerConfig.

    Raises:
        ConfigError: If a required value is missing or invalid, or the
            config file cannot be read.
    """
    env = os.environ if environ is None else environ
    sources: List[str] = []
    values: Dict[str, Any] = {}

    if config_path is not None:
        values.update(load_yaml_file(config_path))
        sources.append(f"file:{config_path}")

    env_values = {key: env[name] for name, key in ENV_KEYS.items() if env.get(name)}
    if env_values:
        values.update(env_values)
        sources.append("env")

    config = _build_config(values)

    LOGGER.info(
        f"Configuration loaded (scan_id={config.scan_id}, artifact_id={config.source_artifact_id or '-'}, "
        f"scan_types={','.join(config.scan_types)}, orchestrator={config.orchestrator_endpoint}, "
        f"work_dir={config.work_dir}, scan_timeout={config.scan_timeout}s)"
    )
    LOGGER.debug(f"Config loaded from sources: {sources}")
    return config


def load_yaml_file(path: Path) -> Dict[str, Any]:
    """Load a YAML mapping of config keys, expanding environment variables."""
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a YAML mapping, got {type(data).__name__}")

    known = set(ENV_KEYS.values())
    result: Dict[str, Any] = {}
    for key, value in data.items():
        normalized = str(key).strip().lower()
        if normalized not in known:
            LOGGER.warning(f"Ignoring unknown config key '{key}' in {path}")
            continue
        result[normalized] = expand_env_vars(value)
    return result


def expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR} and ${VAR:-default} in string values."""
    if isinstance(data, dict):
        return {k: expand_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        return ENV_VAR_PATTERN.sub(_env_var_replacer, data)
    else:
        return data


def _env_var_replacer(match: re.Match) -> str:
    var_name = match.group(1)
    default_value = match.group(2)

    value = os.environ.get(var_name)
    if value is not None:
        return value
    if default_value is not None:
        return default_value

    LOGGER.warning(f"Environment variable ${var_name} is not set and has no default")
    return ""


def parse_scan_types(value: Any) -> List[str]:
    """Split a comma-separated list (or take a YAML list) of scan types."""
    if isinstance(value, (list, tuple)):
        items = [str(item) for item in value]
    else:
        items = str(value or "").split(",")
    return [item.strip() for item in items if item.strip()]


def _build_config(values: Dict[str, Any]) -> RunnerConfig:
    scan_id = _require(values, "scan_id", "SCAN_ID")
    try:
        scan_id = str(uuid.UUID(scan_id))
    except ValueError as e:
        raise ConfigError(f"invalid SCAN_ID: {scan_id}") from e

    for key, env_name in (("organization_id", "ORGANIZATION_ID"), ("project_id", "PROJECT_ID")):
        if values.get(key):
            try:
                values[key] = str(uuid.UUID(str(values[key])))
            except ValueError as e:
                raise ConfigError(f"invalid {env_name}: {values[key]}") from e

    orchestrator_endpoint = _require(values, "orchestrator_endpoint", "ORCHESTRATOR_ENDPOINT")

    scan_types = parse_scan_types(values.get("scan_types"))
    if not scan_types:
        raise ConfigError("SCAN_TYPES environment variable is required")

    source_download_url = str(values.get("source_download_url") or "")
    git_url = str(values.get("git_url") or "")
    if not source_download_url and not git_url:
        raise ConfigError(
            "No source specified: neither SOURCE_DOWNLOAD_URL nor GIT_URL provided"
        )

    results_dir = values.get("results_dir")

    return RunnerConfig(
        scan_id=scan_id,
        orchestrator_endpoint=orchestrator_endpoint,
        scan_types=scan_types,
        source_download_url=source_download_url,
        git_url=git_url,
        git_branch=str(values.get("git_branch") or ""),
        git_commit=str(values.get("git_commit") or ""),
        source_artifact_id=str(values.get("source_artifact_id") or ""),
        organization_id=str(values.get("organization_id") or ""),
        project_id=str(values.get("project_id") or ""),
        work_dir=Path(str(values.get("work_dir") or "/workspace")),
        results_dir=Path(str(results_dir)) if results_dir else None,
        scan_timeout=_parse_timeout(values, "scan_timeout"),
        download_timeout=_parse_timeout(values, "download_timeout"),
        connect_timeout=_parse_timeout(values, "connect_timeout"),
        log_level=str(values.get("log_level") or "info"),
    )


def _require(values: Dict[str, Any], key: str, env_name: str) -> str:
    value = str(values.get(key) or "").strip()
    if not value:
        raise ConfigError(f"{env_name} environment variable is required")
    return value


def _parse_timeout(values: Dict[str, Any], key: str) -> int:
    default = TIMEOUT_DEFAULTS[key]
    raw = values.get(key)
    if raw is None or raw == "":
        return default
    try:
        seconds = int(raw)
    except (TypeError, ValueError):
        LOGGER.warning(f"Invalid {key.upper()} '{raw}', using default: {default}")
        return default
    if seconds <= 0:
        LOGGER.warning(f"Invalid {key.upper()} '{raw}', using default: {default}")
        return default
    return seconds
