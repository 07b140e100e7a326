"""Session store — what each agent did during this process run."""

from __future__ import annotations

import logging
import ntpath
import posixpath
import threading
from collections.abc import Callable
from datetime import datetime

from agent_watch.domain.models import AgentSession
from agent_watch.engine.baselines import BaselineStore

logger = logging.getLogger(__name__)


def parent_directory(path: str) -> str:
    """Parent directory of a POSIX or Windows path."""
    if "\\" in path and "/" not in path:
        return ntpath.dirname(path)
    return posixpath.dirname(path)


class SessionStore:
    """Agent display name → AgentSession for the current run.

    Args:
        baselines: Where sessions are folded on finalization.
        now: Local-time source for hour-of-day tracking.
    """

    def __init__(
        self,
        baselines: BaselineStore,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._baselines = baselines
        self._now = now
        self._sessions: dict[str, AgentSession] = {}
        self._lock = threading.RLock()

    def ensure_session(self, agent: str) -> AgentSession:
        """Return the agent's live session, creating it on first use."""
        with self._lock:
            session = self._sessions.get(agent)
            if session is None:
                session = AgentSession(start_time=self._now().timestamp())
                self._sessions[agent] = session
            return session

    def record_file_access(
        self,
        agent: str,
        path: str,
        is_sensitive: bool,
        reason: str | None = None,
    ) -> None:
        with self._lock:
            session = self.ensure_session(agent)
            session.files.add(path)
            if is_sensitive:
                session.sensitive_count += 1
                if reason:
                    session.sensitive_reasons.add(reason)
            session.directories.add(parent_directory(path))
            session.active_hours.add(self._now().hour)

    def record_network_endpoint(self, agent: str, ip: str, port: int) -> None:
        with self._lock:
            self.ensure_session(agent).endpoints.add(f"{ip}:{port}")

    def get(self, agent: str) -> AgentSession | None:
        """Return a copy of the agent's session, or None if it has none."""
        with self._lock:
            session = self._sessions.get(agent)
            return session.copy() if session is not None else None

    def agents(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def finalize_all_sessions(self) -> list[str]:
        """Fold every active session into the baselines and persist them.

        Agents with no recorded activity are dropped without touching their
        baseline. Returns the names of the agents that were folded.
        """
        with self._lock:
            sessions = self._sessions
            self._sessions = {}

        folded: list[str] = []
        for agent, session in sessions.items():
            if not session.has_activity:
                continue
            self._baselines.fold(agent, session)
            folded.append(agent)

        if folded:
            logger.info("Folded %d session(s) into baselines: %s", len(folded), ", ".join(folded))
        if self._baselines.dirty:
            self._baselines.save()
        return folded
