"""Settings writer — persist settings and manage custom sensitive patterns.

The file is written with owner-only permissions since custom patterns can
reveal where secrets live.
"""

from __future__ import annotations

import os
import re
from contextlib import suppress
from dataclasses import replace
from pathlib import Path
from typing import Any

import yaml

from agent_watch.settings.loader import SETTINGS_PATH, Settings, read_settings


def save_settings(settings: Settings, path: Path = SETTINGS_PATH) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(
            _to_dict(settings), f, default_flow_style=False, allow_unicode=True, sort_keys=False
        )
    with suppress(OSError):
        os.chmod(path, 0o600)
    return path


def add_custom_pattern(pattern: str, path: Path = SETTINGS_PATH) -> bool:
    """Append a pattern. Returns False if it was already present.

    Raises:
        ValueError: if the pattern is not a valid regular expression.
        SettingsError: if the existing file is invalid; it is left untouched.
    """
    try:
        re.compile(pattern, re.IGNORECASE)
    except re.error as err:
        raise ValueError(f"Invalid pattern '{pattern}': {err}") from err

    settings = read_settings(path)
    if pattern in settings.custom_sensitive_patterns:
        return False
    patterns = [*settings.custom_sensitive_patterns, pattern]
    save_settings(replace(settings, custom_sensitive_patterns=patterns), path)
    return True


def remove_custom_pattern(pattern: str, path: Path = SETTINGS_PATH) -> bool:
    """Remove a pattern. Returns True if found and removed.

    Raises:
        SettingsError: if the existing file is invalid; it is left untouched.
    """
    settings = read_settings(path)
    if pattern not in settings.custom_sensitive_patterns:
        return False
    patterns = [p for p in settings.custom_sensitive_patterns if p != pattern]
    save_settings(replace(settings, custom_sensitive_patterns=patterns), path)
    return True


def _to_dict(settings: Settings) -> dict[str, Any]:
    return {
        "version": settings.version,
        "scan_interval_sec": settings.scan_interval_sec,
        "network_interval_sec": settings.network_interval_sec,
        "project_dir": settings.project_dir,
        "data_dir": str(settings.data_dir),
        "custom_sensitive_patterns": list(settings.custom_sensitive_patterns),
        "agent_trust": dict(settings.agent_trust),
        "log_level": settings.log_level,
    }
