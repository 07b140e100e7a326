"""Anomaly scoring engine.

Compares an agent's live session against its own learned baseline and
produces a 0–100 anomaly score. Five components, each capped, summed,
rounded and clamped:

  file volume        — (ratio - 1) × 5 when ratio > 3,  max 30
  sensitive volume   — (ratio - 1) × 5 when ratio > 3,  max 25
  new sensitive kind — 10 per unseen reason,             max 20
  new endpoint       —  5 per endpoint not in last 5,    max 15
  unusual hour       — 10 per hour never active before,  max 10

Baselines with fewer than MIN_BASELINE_SESSIONS sessions are not scored.
"""

from __future__ import annotations

import logging
import math
import threading
from collections import defaultdict
from dataclasses import dataclass

from agent_watch.domain.models import (
    HOURS_PER_DAY,
    AgentBaseline,
    AgentSession,
    AnomalyResult,
    DeviationWarning,
)
from agent_watch.engine.baselines import BaselineStore
from agent_watch.engine.sessions import SessionStore

logger = logging.getLogger(__name__)

VOLUME_RATIO_THRESHOLD = 3
RECENT_ENDPOINT_WINDOW = 5
NEW_DIRECTORY_THRESHOLD = 4

# component -> (points per unit, cap)
_COMPONENTS: dict[str, tuple[float, float]] = {
    "files": (5, 30),
    "sensitive": (5, 25),
    "new-sensitive": (10, 20),
    "network": (5, 15),
    "timing": (10, 10),
}

# Display-only grouping of components into dimensions
_DIMENSIONS: dict[str, tuple[str, ...]] = {
    "network": ("network",),
    "filesystem": ("files", "sensitive"),
    "process": ("new-sensitive",),
    "timing": ("timing",),
}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class _Component:
    name: str
    points: float
    factors: tuple[str, ...] = ()


def _volume_component(name: str, current: int, average: float, label: str) -> _Component:
    per_unit, cap = _COMPONENTS[name]
    if average <= 0:
        return _Component(name, 0)
    ratio = current / average
    if ratio <= VOLUME_RATIO_THRESHOLD:
        return _Component(name, 0)
    points = min(cap, (ratio - 1) * per_unit)
    factor = f"{label} {ratio:.1f}x above average ({current} vs ~{round_half_up(average)})"
    return _Component(name, points, (factor,))


def _count_component(name: str, items: list[str], describe: str) -> _Component:
    per_unit, cap = _COMPONENTS[name]
    if not items:
        return _Component(name, 0)
    return _Component(
        name,
        min(cap, len(items) * per_unit),
        tuple(describe.format(item) for item in items),
    )


def unusual_hours(session: AgentSession, baseline: AgentBaseline) -> list[int]:
    """Active hours whose histogram bucket is zero, in ascending hour order.

    The order is by clock hour, not by when the hour was first seen, so the
    ``unusual-hour`` deviation always reports the earliest such hour of the day.
    """
    histogram = baseline.averages.hour_histogram or [0] * HOURS_PER_DAY
    return [h for h in sorted(session.active_hours) if histogram[h] == 0]


def new_sensitive_reasons(session: AgentSession, baseline: AgentBaseline) -> list[str]:
    known = set(baseline.averages.known_sensitive_reasons)
    return sorted(r for r in session.sensitive_reasons if r not in known)


def new_endpoints(session: AgentSession, baseline: AgentBaseline) -> list[str]:
    recent = baseline.recent_endpoints(RECENT_ENDPOINT_WINDOW)
    return sorted(ep for ep in session.endpoints if ep not in recent)


def new_directories(session: AgentSession, baseline: AgentBaseline) -> list[str]:
    typical = set(baseline.averages.typical_directories)
    return sorted(d for d in session.directories if d not in typical)


def score_session(session: AgentSession, baseline: AgentBaseline) -> AnomalyResult:
    """Score a session against a mature baseline. Pure function."""
    avg = baseline.averages
    components = [
        _volume_component("files", len(session.files), avg.files_per_session, "file volume"),
        _volume_component(
            "sensitive", session.sensitive_count, avg.sensitive_per_session, "sensitive access"
        ),
        _count_component(
            "new-sensitive",
            new_sensitive_reasons(session, baseline),
            "new sensitive category: {}",
        ),
        _count_component("network", new_endpoints(session, baseline), "new endpoint {}"),
        _count_component(
            "timing",
            [f"{h:02d}:00" for h in unusual_hours(session, baseline)],
            "activity at unusual hour {}",
        ),
    ]

    total = sum(c.points for c in components)
    score = max(0, min(100, round_half_up(total)))
    by_name = {c.name: c.points for c in components}
    dimensions = {
        dim: min(100, round_half_up(sum(by_name[n] for n in names)))
        for dim, names in _DIMENSIONS.items()
    }
    return AnomalyResult(
        score=score,
        factors=tuple(f for c in components for f in c.factors),
        dimensions=dimensions,
    )


class AnomalyScorer:
    """Baseline-deviation scoring and at-most-once deviation warnings.

    The warning memo lives for the lifetime of this object; each
    ``(agent, key)`` pair is emitted once and never again, however long
    the triggering condition persists.
    """

    def __init__(self, sessions: SessionStore, baselines: BaselineStore) -> None:
        self._sessions = sessions
        self._baselines = baselines
        self._sent: dict[str, set[str]] = defaultdict(set)
        self._lock = threading.Lock()

    def calculate_anomaly_score(self, agent: str) -> AnomalyResult:
        session = self._sessions.get(agent)
        baseline = self._baselines.get(agent)
        if session is None or baseline is None or not baseline.is_mature:
            return AnomalyResult()
        return score_session(session, baseline)

    def sent_keys(self, agent: str) -> frozenset[str]:
        with self._lock:
            return frozenset(self._sent.get(agent, ()))

    def check_deviations(self) -> list[DeviationWarning]:
        """Evaluate every agent with a live session and a mature baseline."""
        warnings: list[DeviationWarning] = []
        for agent in self._sessions.agents():
            session = self._sessions.get(agent)
            baseline = self._baselines.get(agent)
            if session is None or baseline is None or not baseline.is_mature:
                continue
            try:
                warnings.extend(self._agent_deviations(agent, session, baseline))
            except (ArithmeticError, LookupError, TypeError, ValueError):
                logger.exception("Deviation check failed for %s; skipping", agent)
        return warnings

    def _agent_deviations(
        self,
        agent: str,
        session: AgentSession,
        baseline: AgentBaseline,
    ) -> list[DeviationWarning]:
        avg = baseline.averages
        score = score_session(session, baseline).score
        out: list[DeviationWarning] = []

        def emit(kind: str, key: str, message: str) -> None:
            with self._lock:
                sent = self._sent[agent]
                if key in sent:
                    return
                sent.add(key)
            out.append(
                DeviationWarning(
                    agent=agent, kind=kind, key=key, message=message, anomaly_score=score
                )
            )

        files = len(session.files)
        if avg.files_per_session > 0 and files > avg.files_per_session * VOLUME_RATIO_THRESHOLD:
            emit(
                "files",
                "files-3x",
                f"{agent} normally accesses ~{round_half_up(avg.files_per_session)} files, "
                f"now {files}",
            )

        sensitive = session.sensitive_count
        if (
            avg.sensitive_per_session > 0
            and sensitive > avg.sensitive_per_session * VOLUME_RATIO_THRESHOLD
        ):
            multiplier = round_half_up(sensitive / avg.sensitive_per_session)
            emit(
                "sensitive",
                "sensitive-3x",
                f"{agent}: sensitive file access ({sensitive}) is {multiplier}x above average "
                f"({round_half_up(avg.sensitive_per_session)})",
            )

        for reason in new_sensitive_reasons(session, baseline):
            emit("new-sensitive", f"new-sens:{reason}", f'{agent} never accessed "{reason}" before')

        for endpoint in new_endpoints(session, baseline):
            emit("network", f"new-ep:{endpoint}", f"{agent}: connecting to new endpoint {endpoint}")

        dirs = new_directories(session, baseline)
        if len(dirs) >= NEW_DIRECTORY_THRESHOLD:
            emit(
                "directories",
                "new-dirs-4+",
                f"{agent}: accessing {len(dirs)} new directories not seen in previous sessions",
            )

        hours = unusual_hours(session, baseline)
        if hours:
            hour = hours[0]
            emit(
                "timing",
                f"unusual-hour:{hour:02d}",
                f"{agent}: activity at unusual hour ({hour:02d}:00) — "
                "not seen in previous sessions",
            )

        return out
