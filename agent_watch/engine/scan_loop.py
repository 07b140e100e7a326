"""Scan loop — the single scheduler driving scan → record → score → emit.

One cycle:

  1. list processes and detect agents
  2. resolve parent chains, editor hosts and working directories
  3. forget open-handle history of exited pids
  4. scan open file handles of every AI agent and record them
  5. scan network connections when the agent pid set changed or the
     network interval elapsed, and record them
  6. check deviations and assess every agent

All recording for a cycle completes before scoring. A failing phase is
logged and the cycle carries on with what it has.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from agent_watch.adapters.files import FileActivityTracker, FileHandleScanner
from agent_watch.adapters.network import NetworkScanner, ReverseDnsResolver
from agent_watch.adapters.processes import (
    AncestryResolver,
    WorkingDirResolver,
    annotate_host_apps,
    detect_agents,
)
from agent_watch.domain.interfaces import (
    FileHandleSource,
    NetworkSource,
    ProcessSource,
    Resolver,
)
from agent_watch.domain.models import (
    AgentAssessment,
    AgentProcess,
    DeviationWarning,
    FileEvent,
    NetworkConnection,
)
from agent_watch.engine.scoring import ScoringEngine
from agent_watch.policies.sensitive import SensitiveClassifier

logger = logging.getLogger(__name__)

SCAN_INTERVAL = 10.0
NETWORK_INTERVAL = 30.0


@dataclass
class ScanReport:
    """What one cycle observed and concluded."""

    agents: list[AgentProcess] = field(default_factory=list)
    file_events: list[FileEvent] = field(default_factory=list)
    """Events admitted by dedup, i.e. the ones worth showing."""

    connections: list[NetworkConnection] | None = None
    """None when the network was not scanned this cycle."""

    deviations: list[DeviationWarning] = field(default_factory=list)
    assessments: list[AgentAssessment] = field(default_factory=list)
    failed_phases: list[str] = field(default_factory=list)


class ScanLoop:
    """Periodic driver around a ScoringEngine.

    Args:
        engine: Owner of all scoring state.
        processes / files / network: OS collaborators.
        resolver: Reverse DNS; defaults to ReverseDnsResolver.
        classifier: Sensitive-path rules; defaults to built-ins only.
        trust_overrides: Display name → default trust.
        scan_interval: Seconds between cycles in ``run``.
        network_interval: Max seconds between network scans.
        clock: Monotonic source for network cadence and caches.
    """

    def __init__(
        self,
        engine: ScoringEngine,
        processes: ProcessSource,
        files: FileHandleSource,
        network: NetworkSource,
        resolver: Resolver | None = None,
        classifier: SensitiveClassifier | None = None,
        trust_overrides: dict[str, int] | None = None,
        scan_interval: float = SCAN_INTERVAL,
        network_interval: float = NETWORK_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.engine = engine
        self.classifier = classifier or SensitiveClassifier()
        self.scan_interval = scan_interval
        self.network_interval = network_interval
        self._processes = processes
        self._trust_overrides = trust_overrides or {}
        self._clock = clock
        self._ancestry = AncestryResolver(processes, clock=clock)
        self._cwds = WorkingDirResolver(processes, clock=clock)
        self._handles = FileHandleScanner(files, self.classifier, clock=engine.clock)
        self._watch = FileActivityTracker(self.classifier, clock=engine.clock)
        self._network = NetworkScanner(network, resolver or ReverseDnsResolver(clock=clock))
        self._agents: list[AgentProcess] = []
        self._last_pids: frozenset[int] | None = None
        self._last_network_scan: float | None = None
        self._stop = threading.Event()
        self._cycle_lock = threading.Lock()

    @property
    def agents(self) -> list[AgentProcess]:
        return list(self._agents)

    # ── One cycle ─────────────────────────────────────────────────────────────

    def run_cycle(self) -> ScanReport:
        with self._cycle_lock:
            report = ScanReport()
            self._phase(report, "processes", self._scan_processes)
            self._phase(report, "files", self._scan_files)
            self._phase(report, "network", self._scan_network)
            self._phase(report, "scoring", self._score)
            return report

    def _phase(self, report: ScanReport, name: str, fn: Callable[[ScanReport], None]) -> None:
        try:
            fn(report)
        except Exception:
            logger.exception("Scan phase %r failed; continuing", name)
            report.failed_phases.append(name)

    def _scan_processes(self, report: ScanReport) -> None:
        agents = detect_agents(self._processes.list_processes(), self._trust_overrides)
        self._handles.prune({a.pid for a in agents})
        self._ancestry.enrich(agents)
        annotate_host_apps(agents)
        self._cwds.annotate(agents)
        self._agents = agents
        report.agents = list(agents)

    def _scan_files(self, report: ScanReport) -> None:
        for event in self._handles.scan_all(self._agents):
            admitted = self.engine.record_file_event(event)
            if admitted is not None:
                report.file_events.append(admitted)

    def _scan_network(self, report: ScanReport) -> None:
        pids = frozenset(a.pid for a in self._agents)
        now = self._clock()
        changed = pids != self._last_pids
        due = (
            self._last_network_scan is None
            or now - self._last_network_scan >= self.network_interval
        )
        self._last_pids = pids
        if not (changed or due):
            return
        self._last_network_scan = now
        connections = self._network.scan(self._agents)
        self.engine.record_connections(connections)
        report.connections = connections

    def _score(self, report: ScanReport) -> None:
        report.deviations = self.engine.check_deviations()
        for warning in report.deviations:
            logger.warning("Baseline deviation: %s", warning.message)
        report.assessments = [self.engine.assess(a) for a in self._agents]

    # ── Watch callbacks ───────────────────────────────────────────────────────

    def handle_watch_event(self, action: str, path: str) -> FileEvent | None:
        """Record a filesystem watch callback against the current agents."""
        event = self._watch.handle_watch_event(action, path, self._agents)
        if event is None:
            return None
        return self.engine.record_file_event(event)

    # ── Scheduling ────────────────────────────────────────────────────────────

    def run(
        self,
        max_cycles: int | None = None,
        on_report: Callable[[ScanReport], None] | None = None,
    ) -> int:
        """Run cycles until ``stop`` or ``max_cycles``. Returns cycles run."""
        cycles = 0
        self._stop.clear()
        while not self._stop.is_set():
            report = self.run_cycle()
            cycles += 1
            if on_report is not None:
                on_report(report)
            if max_cycles is not None and cycles >= max_cycles:
                break
            self._stop.wait(self.scan_interval)
        return cycles

    def stop(self) -> None:
        self._stop.set()

    def shutdown(self) -> list[str]:
        """Stop scheduling and fold this run's sessions into the baselines."""
        self.stop()
        with self._cycle_lock:
            return self.engine.finalize_all_sessions()
