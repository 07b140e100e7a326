"""Baseline store — per-agent rolling history and derived averages.

Each agent keeps its last MAX_BASELINE_SESSIONS finished sessions. After
every fold the averages are recomputed from scratch, so they are always a
pure function of the retained sessions.

Folds are copy-on-write: a fold builds a new AgentBaseline and swaps it
in, so a reader holding a baseline from ``get`` always sees a consistent
snapshot.

Persistence is advisory. ``load`` falls back to an empty store on any
failure and ``save`` never raises; both run under a bounded timeout so a
stuck disk can't stall a scan cycle.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any

from agent_watch.domain.interfaces import KeyValueStore
from agent_watch.domain.models import (
    HOURS_PER_DAY,
    MAX_BASELINE_SESSIONS,
    AgentBaseline,
    AgentSession,
    BaselineAverages,
    BaselineSession,
)
from agent_watch.storage.baseline_codec import decode_document, encode_document

logger = logging.getLogger(__name__)

BASELINES_KEY = "baselines"


def recompute_averages(sessions: list[BaselineSession]) -> BaselineAverages:
    """Derive rolling averages from retained sessions.

    An empty history yields the zero BaselineAverages.
    """
    if not sessions:
        return BaselineAverages()

    count = len(sessions)
    dir_counts: Counter[str] = Counter()
    endpoints: set[str] = set()
    reasons: set[str] = set()
    histogram = [0] * HOURS_PER_DAY
    for session in sessions:
        dir_counts.update(set(session.directories))
        endpoints.update(session.network_endpoints)
        reasons.update(session.sensitive_reasons)
        for hour in set(session.active_hours):
            histogram[hour] += 1

    return BaselineAverages(
        files_per_session=sum(s.total_files for s in sessions) / count,
        sensitive_per_session=sum(s.sensitive_files for s in sessions) / count,
        typical_directories=sorted(d for d, n in dir_counts.items() if n >= 2),
        known_endpoints=sorted(endpoints),
        known_sensitive_reasons=sorted(reasons),
        hour_histogram=histogram,
    )


class BaselineStore:
    """Agent display name → AgentBaseline, persisted as one JSON document.

    Args:
        store: Persistence collaborator.
        io_timeout: Seconds to wait for a load/save before giving up.
        clock: Wall-clock source for session end times.
    """

    def __init__(
        self,
        store: KeyValueStore,
        io_timeout: float = 5.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._io_timeout = io_timeout
        self._clock = clock
        self._baselines: dict[str, AgentBaseline] = {}
        self._dirty = False
        self._lock = threading.RLock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="baseline-io")

    # ── Queries ───────────────────────────────────────────────────────────────

    def get(self, agent: str) -> AgentBaseline | None:
        with self._lock:
            return self._baselines.get(agent)

    def agents(self) -> list[str]:
        with self._lock:
            return sorted(self._baselines)

    def snapshot(self) -> dict[str, AgentBaseline]:
        with self._lock:
            return dict(self._baselines)

    @property
    def dirty(self) -> bool:
        """True when in-memory state hasn't been persisted yet."""
        return self._dirty

    # ── Mutations ─────────────────────────────────────────────────────────────

    def fold(self, agent: str, session: AgentSession) -> AgentBaseline:
        """Append a finished session to the agent's history and recompute averages."""
        snapshot = BaselineSession.from_session(session, end_time=self._clock())
        with self._lock:
            current = self._baselines.get(agent) or AgentBaseline()
            sessions = [*current.sessions, snapshot][-MAX_BASELINE_SESSIONS:]
            updated = AgentBaseline(
                session_count=current.session_count + 1,
                sessions=sessions,
                averages=recompute_averages(sessions),
            )
            self._baselines[agent] = updated
            self._dirty = True
        return updated

    def put(self, agent: str, baseline: AgentBaseline) -> None:
        """Install a baseline as-is (used for imports and tests)."""
        with self._lock:
            self._baselines[agent] = baseline
            self._dirty = True

    def reset(self, agent: str) -> bool:
        """Forget an agent's history. Returns True if it existed."""
        with self._lock:
            if self._baselines.pop(agent, None) is None:
                return False
            self._dirty = True
            return True

    # ── Persistence ───────────────────────────────────────────────────────────

    def load(self) -> None:
        """Replace in-memory state with the persisted document.

        Missing, unreadable, corrupt or timed-out documents leave an empty
        store; the failure is logged and never raised. A malformed entry for a
        single agent drops only that agent.
        """
        try:
            raw = self._run_io(self._store.load_json, BASELINES_KEY)
            baselines = decode_document(raw) if raw is not None else {}
        except FutureTimeout:
            logger.warning(
                "Timed out loading baselines after %.1fs; starting empty", self._io_timeout
            )
            baselines = {}
        except (OSError, ValueError, TypeError, KeyError) as err:
            logger.warning("Could not load baselines (%s); starting empty", err)
            baselines = {}

        with self._lock:
            self._baselines = baselines
            self._dirty = False
        logger.debug("Loaded baselines for %d agent(s)", len(baselines))

    def save(self) -> bool:
        """Persist the current state. Returns False (and stays dirty) on failure."""
        with self._lock:
            document = encode_document(self._baselines)
        try:
            self._run_io(self._store.save_json, BASELINES_KEY, document)
        except FutureTimeout:
            logger.warning("Timed out saving baselines after %.1fs; will retry", self._io_timeout)
            return False
        except (OSError, ValueError, TypeError) as err:
            logger.warning("Could not save baselines (%s); will retry", err)
            return False

        with self._lock:
            self._dirty = False
        return True

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    def _run_io(self, fn: Callable[..., Any], *args: Any) -> Any:
        future = self._executor.submit(fn, *args)
        return future.result(timeout=self._io_timeout)
