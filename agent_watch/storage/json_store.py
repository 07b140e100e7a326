"""JSON-file key-value store.

Each key maps to ``<base_dir>/<key>.json``. Documents are written with
sorted keys and a fixed indent, so re-saving an unchanged document is
byte-identical. Writes go through a temp file + ``os.replace`` and the
file is made owner-only, since baselines reveal which secrets an agent
touches.
"""

from __future__ import annotations

import json
import os
import re
import tempfile
from contextlib import suppress
from pathlib import Path
from typing import Any

DEFAULT_DATA_DIR = Path.home() / ".agent_watch"

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


def dumps(value: Any) -> str:
    """Canonical serialisation shared by every document this store writes."""
    return json.dumps(value, indent=2, sort_keys=True, ensure_ascii=False) + "\n"


class JsonFileStore:
    """KeyValueStore implementation backed by one JSON file per key."""

    def __init__(self, base_dir: Path | None = None) -> None:
        self._base_dir = base_dir or DEFAULT_DATA_DIR

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def path_for(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid store key: {key!r}")
        return self._base_dir / f"{key}.json"

    def load_json(self, key: str) -> Any | None:
        """Return the parsed document, or None if the file doesn't exist.

        Raises:
            OSError: if the file exists but can't be read.
            ValueError: if the file isn't valid JSON.
        """
        path = self.path_for(key)
        if not path.exists():
            return None
        with open(path, encoding="utf-8") as f:
            return json.load(f)

    def save_json(self, key: str, value: Any) -> None:
        path = self.path_for(key)
        text = dumps(value)
        path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_name, path)
        except BaseException:
            with suppress(OSError):
                os.unlink(tmp_name)
            raise
        with suppress(OSError):
            os.chmod(path, 0o600)
