"""File activity capture.

Two feeds produce FileEvents: the open-handle scan (every file an agent
process holds open, reported once per pid) and filesystem watch callbacks
(debounced per path for WATCH_DEBOUNCE seconds).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from agent_watch.domain.interfaces import FileHandleSource
from agent_watch.domain.models import AgentProcess, FileEvent
from agent_watch.engine.cache import Clock, TTLCache
from agent_watch.policies.sensitive import (
    SensitiveClassifier,
    is_agent_config_reason,
    is_config_file,
    is_self_access,
    should_ignore,
)

logger = logging.getLogger(__name__)

WATCH_DEBOUNCE = 2.0
WATCH_DEBOUNCE_MAX = 500


def build_file_event(
    classifier: SensitiveClassifier,
    agent: AgentProcess,
    path: str,
    action: str,
    timestamp: float,
) -> FileEvent:
    """Classify ``path`` and attribute it to ``agent``.

    A match inside the agent's own config directory is recorded as self
    access and is not sensitive.
    """
    reason = classifier.classify(path)
    self_access = reason is not None and is_self_access(agent.name, path)
    return FileEvent(
        agent=agent.name,
        pid=agent.pid,
        path=path,
        action=action,
        timestamp=timestamp,
        sensitive=reason is not None and not self_access,
        reason=reason or "",
        self_access=self_access,
        config=is_agent_config_reason(reason) or (reason is not None and is_config_file(path)),
        cwd=agent.cwd,
        parent_editor=agent.parent_editor,
    )


class FileHandleScanner:
    """Report files newly opened by each agent pid since the last scan."""

    def __init__(
        self,
        source: FileHandleSource,
        classifier: SensitiveClassifier,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._source = source
        self._classifier = classifier
        self._clock = clock
        self._known: dict[int, set[str]] = {}

    def scan(self, agent: AgentProcess) -> list[FileEvent]:
        paths = self._source.open_files(agent.pid)
        if not paths:
            return []
        known = self._known.setdefault(agent.pid, set())
        events: list[FileEvent] = []
        for path in paths:
            if path in known or should_ignore(path):
                continue
            known.add(path)
            events.append(
                build_file_event(self._classifier, agent, path, "accessed", self._clock())
            )
        return events

    def scan_all(self, agents: list[AgentProcess]) -> list[FileEvent]:
        events: list[FileEvent] = []
        for agent in agents:
            if agent.category != "ai":
                continue
            events.extend(self.scan(agent))
        return events

    def prune(self, active_pids: set[int]) -> None:
        """Forget handle history of pids that are no longer running."""
        for pid in [p for p in self._known if p not in active_pids]:
            del self._known[pid]

    def known_pids(self) -> set[int]:
        return set(self._known)


class FileActivityTracker:
    """Attribute filesystem watch callbacks to the current agents.

    Watch events carry no pid, so the first detected AI agent is blamed.
    """

    def __init__(
        self,
        classifier: SensitiveClassifier,
        clock: Clock = time.time,
    ) -> None:
        self._classifier = classifier
        self._clock = clock
        self._debounce: TTLCache[str, bool] = TTLCache(
            ttl=WATCH_DEBOUNCE, max_entries=WATCH_DEBOUNCE_MAX, clock=clock
        )

    def handle_watch_event(
        self,
        action: str,
        path: str,
        agents: list[AgentProcess],
    ) -> FileEvent | None:
        if not agents or should_ignore(path):
            return None
        if path in self._debounce:
            return None
        self._debounce.record_only(path, True)

        ai_agents = [a for a in agents if a.category == "ai"]
        agent = ai_agents[0] if ai_agents else agents[0]
        return build_file_event(self._classifier, agent, path, action, self._clock())
