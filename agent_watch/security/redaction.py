"""Redaction utilities for safely displaying file activity.

Sensitive paths keep their directory and lose their filename, so the feed
still shows *where* an agent looked without printing key or token names.
"""

from __future__ import annotations

import re

from agent_watch.domain.models import FileEvent

_HOME_PATTERN = re.compile(r"^(?:/home/[^/]+|/Users/[^/]+|[A-Za-z]:\\Users\\[^\\]+)(?=[/\\]|$)")
_LAST_SEGMENT = re.compile(r"[^/\\]+$")

REDACTED = "[REDACTED]"


def shorten_home(path: str) -> str:
    """Replace a leading user home directory with ``~``."""
    return _HOME_PATTERN.sub("~", path, count=1)


def redact_path(path: str, sensitive: bool) -> str:
    """Display form of a path; sensitive filenames are masked."""
    shown = shorten_home(path)
    if not sensitive:
        return shown
    return _LAST_SEGMENT.sub(REDACTED, shown, count=1)


def safe_event_text(event: FileEvent) -> str:
    """One-line feed description of a file event."""
    text = f"{event.action} {redact_path(event.path, event.sensitive)}"
    if event.sensitive and event.reason:
        text += f" ({event.reason})"
    if event.repeat_count > 1:
        text += f" ×{event.repeat_count}"
    return text
