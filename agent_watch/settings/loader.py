"""YAML settings loader.

Settings live in a single YAML file. Unknown keys are ignored and missing
keys take their defaults, so an empty or partial file is always valid.

Schema:
  version: 1
  scan_interval_sec: number > 0        (default 10)
  network_interval_sec: number > 0     (default 30)
  project_dir: path | null             (default null)
  data_dir: path                       (default ~/.agent_watch)
  custom_sensitive_patterns: [regex]   (default [])
  agent_trust: {display name: 0..100}  (default {})
  log_level: DEBUG | INFO | WARNING | ERROR  (default WARNING)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from agent_watch.storage.json_store import DEFAULT_DATA_DIR

logger = logging.getLogger(__name__)

SETTINGS_VERSION = 1
SETTINGS_PATH = DEFAULT_DATA_DIR / "settings.yml"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


class SettingsError(ValueError):
    """An existing settings file could not be read or parsed."""


@dataclass
class Settings:
    version: int = SETTINGS_VERSION
    scan_interval_sec: float = 10.0
    network_interval_sec: float = 30.0
    project_dir: str | None = None
    """Fallback directory excluded from risk when an agent's cwd is unknown."""

    data_dir: Path = DEFAULT_DATA_DIR
    """Directory holding ``baselines.json``."""

    custom_sensitive_patterns: list[str] = field(default_factory=list)
    agent_trust: dict[str, int] = field(default_factory=dict)
    """Per-agent default trust overrides, keyed by display name."""

    log_level: str = "WARNING"


def load_settings(path: Path = SETTINGS_PATH) -> Settings:
    """Load settings, falling back to defaults.

    A missing file yields defaults silently; an unreadable or invalid file
    yields defaults with a logged warning.
    """
    try:
        return read_settings(path)
    except SettingsError as err:
        logger.warning("%s; using defaults", err)
        return Settings()


def read_settings(path: Path = SETTINGS_PATH) -> Settings:
    """Load settings strictly. A missing file still yields defaults.

    Raises:
        SettingsError: if the file exists but is unreadable or invalid.
    """
    if not path.exists():
        return Settings()
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return parse_settings(data, source=str(path))
    except (OSError, yaml.YAMLError, ValueError) as err:
        raise SettingsError(f"Invalid settings file {path}: {err}") from err


def parse_settings(data: Any, source: str = "") -> Settings:
    """Build Settings from a parsed YAML mapping.

    Raises:
        ValueError: if a known key has the wrong type or range.
    """
    if not isinstance(data, dict):
        raise ValueError(f"Settings must be a mapping (source: {source})")

    defaults = Settings()
    project_dir = data.get("project_dir")
    data_dir = data.get("data_dir")
    return Settings(
        version=int(data.get("version", SETTINGS_VERSION)),
        scan_interval_sec=_positive(data, "scan_interval_sec", defaults.scan_interval_sec),
        network_interval_sec=_positive(
            data, "network_interval_sec", defaults.network_interval_sec
        ),
        project_dir=str(Path(project_dir).expanduser()) if project_dir else None,
        data_dir=Path(data_dir).expanduser() if data_dir else defaults.data_dir,
        custom_sensitive_patterns=_patterns(data.get("custom_sensitive_patterns")),
        agent_trust=_trust(data.get("agent_trust")),
        log_level=_log_level(data.get("log_level", defaults.log_level)),
    )


def _positive(data: dict[str, Any], key: str, default: float) -> float:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int | float) or value <= 0:
        raise ValueError(f"'{key}' must be a positive number, got {value!r}")
    return float(value)


def _patterns(raw: Any) -> list[str]:
    if raw is None:
        return []
    if not isinstance(raw, list) or not all(isinstance(p, str) for p in raw):
        raise ValueError("'custom_sensitive_patterns' must be a list of strings")
    return list(raw)


def _trust(raw: Any) -> dict[str, int]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError("'agent_trust' must be a mapping of agent name to trust")
    trust: dict[str, int] = {}
    for name, value in raw.items():
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 100:
            raise ValueError(f"Invalid trust {value!r} for agent '{name}' (expected 0-100)")
        trust[str(name)] = value
    return trust


def _log_level(raw: Any) -> str:
    level = str(raw).upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"Invalid log_level '{raw}' (expected one of {', '.join(LOG_LEVELS)})")
    return level
