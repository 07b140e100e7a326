"""Core domain models for agent behavioral scoring.

These models have ZERO dependencies on storage, CLI, or the OS adapters.
Vocabulary: AgentSession (this run), BaselineSession / AgentBaseline (history),
FileEvent / NetworkConnection (raw activity), AnomalyResult and
AgentAssessment (scores).
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

HOURS_PER_DAY = 24

MAX_BASELINE_SESSIONS = 10
"""History is trimmed FIFO to this many sessions per agent."""

MIN_BASELINE_SESSIONS = 3
"""A baseline is trusted only once this many sessions have been folded."""


def empty_histogram() -> list[int]:
    return [0] * HOURS_PER_DAY


@dataclass
class AgentSession:
    """Activity of one agent during the current process run.

    Created lazily on the first recorded event, folded into the baseline
    store at shutdown.
    """

    files: set[str] = field(default_factory=set)
    sensitive_count: int = 0
    sensitive_reasons: set[str] = field(default_factory=set)
    directories: set[str] = field(default_factory=set)
    endpoints: set[str] = field(default_factory=set)
    """Distinct ``ip:port`` strings contacted."""

    active_hours: set[int] = field(default_factory=set)
    """Local hours of day (0–23) with recorded file activity."""

    start_time: float = field(default_factory=time.time)

    @property
    def has_activity(self) -> bool:
        return bool(
            self.files
            or self.sensitive_count
            or self.endpoints
            or self.sensitive_reasons
            or self.active_hours
        )

    def copy(self) -> AgentSession:
        return AgentSession(
            files=set(self.files),
            sensitive_count=self.sensitive_count,
            sensitive_reasons=set(self.sensitive_reasons),
            directories=set(self.directories),
            endpoints=set(self.endpoints),
            active_hours=set(self.active_hours),
            start_time=self.start_time,
        )


@dataclass(frozen=True)
class BaselineSession:
    """Immutable snapshot of a finished AgentSession."""

    start_time: float
    end_time: float
    total_files: int
    sensitive_files: int
    directories: tuple[str, ...] = ()
    network_endpoints: tuple[str, ...] = ()
    sensitive_reasons: tuple[str, ...] = ()
    active_hours: tuple[int, ...] = ()

    @classmethod
    def from_session(cls, session: AgentSession, end_time: float) -> BaselineSession:
        return cls(
            start_time=session.start_time,
            end_time=end_time,
            total_files=len(session.files),
            sensitive_files=session.sensitive_count,
            directories=tuple(sorted(session.directories)),
            network_endpoints=tuple(sorted(session.endpoints)),
            sensitive_reasons=tuple(sorted(session.sensitive_reasons)),
            active_hours=tuple(sorted(session.active_hours)),
        )


@dataclass
class BaselineAverages:
    """Rolling statistics derived from an agent's retained sessions."""

    files_per_session: float = 0.0
    sensitive_per_session: float = 0.0
    typical_directories: list[str] = field(default_factory=list)
    """Directories seen in at least two retained sessions."""

    known_endpoints: list[str] = field(default_factory=list)
    known_sensitive_reasons: list[str] = field(default_factory=list)
    hour_histogram: list[int] | None = field(default_factory=empty_histogram)
    """Per-hour count of sessions active in that hour. None means the
    baseline predates hour tracking and every hour reads as unusual."""


@dataclass
class AgentBaseline:
    """Persisted behavioral history for one agent display name."""

    session_count: int = 0
    """Total sessions ever folded. Never decremented by trimming."""

    sessions: list[BaselineSession] = field(default_factory=list)
    averages: BaselineAverages = field(default_factory=BaselineAverages)

    @property
    def is_mature(self) -> bool:
        return self.session_count >= MIN_BASELINE_SESSIONS

    def recent_endpoints(self, window: int = 5) -> set[str]:
        """Union of endpoints over the last ``window`` retained sessions."""
        endpoints: set[str] = set()
        for session in self.sessions[-window:]:
            endpoints.update(session.network_endpoints)
        return endpoints


@dataclass(frozen=True)
class AnomalyResult:
    """Composite anomaly score (0 = normal, 100 = extreme deviation)."""

    score: int = 0
    factors: tuple[str, ...] = ()
    dimensions: dict[str, int] = field(default_factory=dict, compare=False)
    """Display-only breakdown by category. Never feeds back into score."""


@dataclass(frozen=True)
class DeviationWarning:
    """A baseline deviation emitted to the alert feed."""

    agent: str
    kind: str
    """One of: files, sensitive, new-sensitive, network, directories, timing."""

    key: str
    """Suppression key; each (agent, key) is emitted once per process run."""

    message: str
    anomaly_score: int


@dataclass(frozen=True)
class FileEvent:
    """A single file touch attributed to an agent process."""

    agent: str
    pid: int
    path: str
    action: str
    """created | modified | deleted | accessed."""

    timestamp: float
    sensitive: bool = False
    reason: str = ""
    """Sensitivity label, empty when the path matched no rule."""

    self_access: bool = False
    """The agent touched its own config directory (expected, not risky)."""

    config: bool = False
    cwd: str | None = None
    parent_editor: str | None = None
    repeat_count: int = 1


@dataclass(frozen=True)
class NetworkConnection:
    """An outbound connection attributed to an agent process."""

    agent: str
    pid: int
    remote_ip: str
    remote_port: int
    state: str
    domain: str = ""
    flagged: bool = False
    """Reverse DNS failed or resolved to a domain outside the known list."""

    cwd: str | None = None

    @property
    def endpoint(self) -> str:
        return f"{self.remote_ip}:{self.remote_port}"


@dataclass
class AgentProcess:
    """A running process identified as an agent, enriched during a scan."""

    pid: int
    name: str
    """Agent display name, e.g. 'Claude Code'."""

    process_name: str
    category: str = "ai"
    default_trust: int = 20
    parent_chain: list[str] = field(default_factory=list)
    parent_editor: str | None = None
    cwd: str | None = None

    @property
    def display_label(self) -> str:
        if self.parent_editor:
            return f"{self.name} (via {self.parent_editor})"
        return self.name


@dataclass(frozen=True)
class RiskInputs:
    """Decay-weighted activity counts feeding the live risk score."""

    sensitive_files: float = 0.0
    ssh_aws_files: float = 0.0
    unknown_domains: float = 0.0
    network_count: float = 0.0
    config_files: float = 0.0
    file_count: float = 0.0


@dataclass(frozen=True)
class AgentAssessment:
    """Live scores for one agent after a scan cycle."""

    agent: str
    pid: int
    risk_score: int
    trust_grade: str
    risk_label: str
    anomaly: AnomalyResult
    inputs: RiskInputs
