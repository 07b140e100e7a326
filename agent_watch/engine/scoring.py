"""Scoring engine — one owner for all per-run scoring state.

Holds the baseline store, session store, anomaly scorer, file-event dedup,
the bounded activity log and the latest network snapshot. The scan loop
and the CLI construct one instance and pass it around; nothing here is
module-global.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from datetime import datetime

from agent_watch.domain.interfaces import KeyValueStore
from agent_watch.domain.models import (
    AgentAssessment,
    AgentProcess,
    AnomalyResult,
    DeviationWarning,
    FileEvent,
    NetworkConnection,
    RiskInputs,
)
from agent_watch.engine.anomaly import AnomalyScorer
from agent_watch.engine.baselines import BaselineStore
from agent_watch.engine.cache import EventDeduplicator
from agent_watch.engine.risk import (
    calculate_risk_score,
    decayed_counts,
    get_risk_label,
    get_trust_grade,
)
from agent_watch.engine.sessions import SessionStore

logger = logging.getLogger(__name__)

EVENT_LOG_LIMIT = 10_000
DEDUP_WINDOW = 30.0


class ScoringEngine:
    """Records agent activity and answers scoring queries.

    Args:
        store: Persistence for the baseline document.
        project_dir: Fallback project directory excluded from risk when an
            agent's own cwd is unknown.
        clock: Wall-clock source (event timestamps, decay, dedup).
        now: Local datetime source for hour-of-day tracking.
        io_timeout: Bound on baseline load/save.
    """

    def __init__(
        self,
        store: KeyValueStore,
        project_dir: str | None = None,
        clock: Callable[[], float] = time.time,
        now: Callable[[], datetime] = datetime.now,
        io_timeout: float = 5.0,
        dedup_window: float = DEDUP_WINDOW,
    ) -> None:
        self.project_dir = project_dir
        self.clock = clock
        self.baselines = BaselineStore(store, io_timeout=io_timeout, clock=clock)
        self.sessions = SessionStore(self.baselines, now=now)
        self.anomaly = AnomalyScorer(self.sessions, self.baselines)
        self._dedup = EventDeduplicator(window=dedup_window, clock=clock)
        self._events: deque[FileEvent] = deque(maxlen=EVENT_LOG_LIMIT)
        self._connections: list[NetworkConnection] = []
        self._lock = threading.RLock()

    def start(self) -> None:
        """Load persisted baselines. Never raises."""
        self.baselines.load()

    def close(self) -> None:
        self.baselines.close()

    # ── Recording ─────────────────────────────────────────────────────────────

    def record_file_event(self, event: FileEvent) -> FileEvent | None:
        """Log and record a file touch.

        Every event reaches the activity log and the agent's session. The
        return value is for the alert feed: None when the same agent/path
        was already reported within the dedup window, otherwise the event
        carrying how many times it was seen during the previous window.
        """
        with self._lock:
            self._events.append(event)
            self.sessions.record_file_access(
                event.agent, event.path, event.sensitive, event.reason or None
            )
            repeat_count = self._dedup.admit(f"{event.agent}|{event.path}")
        if repeat_count is None:
            return None
        return dataclasses.replace(event, repeat_count=repeat_count)

    def record_connections(self, connections: list[NetworkConnection]) -> None:
        """Replace the network snapshot and record every endpoint."""
        with self._lock:
            self._connections = list(connections)
            for conn in connections:
                self.sessions.record_network_endpoint(conn.agent, conn.remote_ip, conn.remote_port)

    # ── Queries ───────────────────────────────────────────────────────────────

    def events(self, agent: str | None = None) -> list[FileEvent]:
        with self._lock:
            if agent is None:
                return list(self._events)
            return [e for e in self._events if e.agent == agent]

    def connections(self) -> list[NetworkConnection]:
        with self._lock:
            return list(self._connections)

    def calculate_anomaly_score(self, agent: str) -> AnomalyResult:
        with self._lock:
            return self.anomaly.calculate_anomaly_score(agent)

    def check_deviations(self) -> list[DeviationWarning]:
        with self._lock:
            return self.anomaly.check_deviations()

    def risk_inputs(
        self,
        agent: str,
        pid: int | None = None,
        cwd: str | None = None,
    ) -> RiskInputs:
        with self._lock:
            events = list(self._events)
            connections = list(self._connections)
        return decayed_counts(
            agent,
            events,
            connections,
            project_dir=cwd or self.project_dir,
            pid=pid,
            now=self.clock(),
        )

    def assess(self, process: AgentProcess) -> AgentAssessment:
        """Live risk, grade and anomaly for one detected agent process.

        Activity is attributed by pid when the process cwd is known (one
        instance per project), by agent name otherwise.
        """
        pid = process.pid if process.cwd else None
        inputs = self.risk_inputs(process.name, pid=pid, cwd=process.cwd)
        score = calculate_risk_score(inputs, default_trust=process.default_trust)
        return AgentAssessment(
            agent=process.name,
            pid=process.pid,
            risk_score=score,
            trust_grade=get_trust_grade(score),
            risk_label=get_risk_label(score),
            anomaly=self.calculate_anomaly_score(process.name),
            inputs=inputs,
        )

    # ── Shutdown ──────────────────────────────────────────────────────────────

    def finalize_all_sessions(self) -> list[str]:
        with self._lock:
            return self.sessions.finalize_all_sessions()
