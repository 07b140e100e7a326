"""Tests for agent_watch/engine/scan_loop.py, driven by in-memory OS sources."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import pytest

from agent_watch.domain.interfaces import ParentInfo, ProcessInfo, RawConnection
from agent_watch.domain.models import AgentBaseline, BaselineAverages
from agent_watch.engine.scan_loop import ScanLoop, ScanReport
from agent_watch.engine.scoring import ScoringEngine


class MemoryStore:
    def __init__(self) -> None:
        self.docs: dict[str, Any] = {}

    def load_json(self, key: str) -> Any | None:
        return self.docs.get(key)

    def save_json(self, key: str, value: Any) -> None:
        self.docs[key] = value


class FakeClock:
    def __init__(self, start: float) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProcesses:
    def __init__(self) -> None:
        self.processes = [ProcessInfo(100, "claude"), ProcessInfo(200, "aider")]
        self.parents = {
            100: ParentInfo("claude", 50),
            50: ParentInfo("code", 1),
            200: ParentInfo("aider", 1),
            1: ParentInfo("init", 0),
        }
        self.cwds = {100: "/home/u/proj"}
        self.fail = False

    def list_processes(self) -> list[ProcessInfo]:
        if self.fail:
            raise RuntimeError("process table unavailable")
        return list(self.processes)

    def parent_map(self) -> dict[int, ParentInfo]:
        return dict(self.parents)

    def cwd(self, pid: int) -> str | None:
        return self.cwds.get(pid)


class FakeHandles:
    def __init__(self) -> None:
        self.files = {
            100: ["/home/u/proj/main.py", "/home/u/.ssh/id_rsa"],
            200: ["/srv/app/readme.md"],
        }
        self.fail = False

    def open_files(self, pid: int) -> list[str]:
        if self.fail:
            raise RuntimeError("handle scan failed")
        return list(self.files.get(pid, []))


class FakeNetwork:
    def __init__(self) -> None:
        self.calls = 0

    def connections(self, pids: list[int]) -> list[RawConnection]:
        self.calls += 1
        return [RawConnection(200, "45.9.9.9", 443, "ESTABLISHED")]


class FakeResolver:
    def reverse(self, ip: str) -> str | None:
        return None


@pytest.fixture()
def wall() -> FakeClock:
    return FakeClock(1_800_000_000.0)


@pytest.fixture()
def mono() -> FakeClock:
    return FakeClock(500.0)


@pytest.fixture()
def processes() -> FakeProcesses:
    return FakeProcesses()


@pytest.fixture()
def handles() -> FakeHandles:
    return FakeHandles()


@pytest.fixture()
def network() -> FakeNetwork:
    return FakeNetwork()


@pytest.fixture()
def engine(wall: FakeClock) -> ScoringEngine:
    e = ScoringEngine(MemoryStore(), clock=wall, now=lambda: datetime(2026, 3, 2, 15, 0, 0))
    yield e
    e.close()


@pytest.fixture()
def loop(
    engine: ScoringEngine,
    processes: FakeProcesses,
    handles: FakeHandles,
    network: FakeNetwork,
    mono: FakeClock,
) -> ScanLoop:
    return ScanLoop(
        engine,
        processes=processes,
        files=handles,
        network=network,
        resolver=FakeResolver(),
        scan_interval=0,
        network_interval=30,
        clock=mono,
    )


class TestRunCycle:
    def test_full_cycle(self, loop: ScanLoop) -> None:
        report = loop.run_cycle()

        assert report.failed_phases == []
        assert [a.name for a in report.agents] == ["Claude Code", "Aider"]
        claude = report.agents[0]
        assert claude.parent_editor == "VS Code"
        assert claude.cwd == "/home/u/proj"

        paths = {(e.agent, e.path) for e in report.file_events}
        assert paths == {
            ("Claude Code", "/home/u/proj/main.py"),
            ("Claude Code", "/home/u/.ssh/id_rsa"),
            ("Aider", "/srv/app/readme.md"),
        }
        assert report.connections is not None
        assert [c.endpoint for c in report.connections] == ["45.9.9.9:443"]
        assert report.connections[0].flagged

        by_agent = {a.agent: a for a in report.assessments}
        assert set(by_agent) == {"Claude Code", "Aider"}
        assert by_agent["Claude Code"].inputs.sensitive_files == 1.0
        assert by_agent["Aider"].inputs.unknown_domains == 1

    def test_open_handles_reported_once(self, loop: ScanLoop) -> None:
        loop.run_cycle()
        assert loop.run_cycle().file_events == []
        assert len(loop.engine.events()) == 3

    def test_network_cadence(self, loop: ScanLoop, network: FakeNetwork, mono: FakeClock) -> None:
        loop.run_cycle()
        assert network.calls == 1

        mono.advance(10)
        assert loop.run_cycle().connections is None
        assert network.calls == 1

        mono.advance(20)
        assert loop.run_cycle().connections is not None
        assert network.calls == 2

    def test_pid_change_triggers_network_scan(
        self, loop: ScanLoop, processes: FakeProcesses, network: FakeNetwork
    ) -> None:
        loop.run_cycle()
        processes.processes.append(ProcessInfo(300, "codex"))
        report = loop.run_cycle()
        assert report.connections is not None
        assert network.calls == 2

    def test_failing_phase_is_isolated(self, loop: ScanLoop, handles: FakeHandles) -> None:
        handles.fail = True
        report = loop.run_cycle()
        assert report.failed_phases == ["files"]
        assert report.connections is not None
        assert len(report.assessments) == 2

    def test_process_failure_leaves_no_agents(
        self, loop: ScanLoop, processes: FakeProcesses
    ) -> None:
        processes.fail = True
        report = loop.run_cycle()
        assert report.failed_phases == ["processes"]
        assert report.agents == []
        assert report.assessments == []

    def test_deviation_logged(
        self, loop: ScanLoop, engine: ScoringEngine, caplog: pytest.LogCaptureFixture
    ) -> None:
        engine.baselines.put(
            "Aider",
            AgentBaseline(
                session_count=4,
                averages=BaselineAverages(files_per_session=0.2, hour_histogram=[1] * 24),
            ),
        )
        with caplog.at_level(logging.WARNING, logger="agent_watch.engine.scan_loop"):
            report = loop.run_cycle()
        assert [w.key for w in report.deviations] == ["files-3x", "new-ep:45.9.9.9:443"]
        assert "Aider normally accesses ~0 files, now 1" in caplog.text


class TestWatchEvents:
    def test_attributed_to_first_ai_agent(self, loop: ScanLoop) -> None:
        loop.run_cycle()
        event = loop.handle_watch_event("modified", "/home/u/proj/.env")
        assert event is not None
        assert event.agent == "Claude Code"
        assert event.reason == "Environment variables"
        assert loop.engine.events("Claude Code")[-1].path == "/home/u/proj/.env"

    def test_ignored_without_agents(self, loop: ScanLoop) -> None:
        assert loop.handle_watch_event("modified", "/home/u/proj/.env") is None


class TestScheduling:
    def test_run_stops_after_max_cycles(self, loop: ScanLoop) -> None:
        reports: list[ScanReport] = []
        assert loop.run(max_cycles=3, on_report=reports.append) == 3
        assert len(reports) == 3

    def test_stop_from_callback(self, loop: ScanLoop) -> None:
        assert loop.run(on_report=lambda _: loop.stop()) == 1

    def test_shutdown_folds_sessions(self, loop: ScanLoop, engine: ScoringEngine) -> None:
        loop.run_cycle()
        folded = loop.shutdown()
        assert sorted(folded) == ["Aider", "Claude Code"]
        baseline = engine.baselines.get("Claude Code")
        assert baseline is not None
        assert baseline.session_count == 1
        assert baseline.sessions[0].total_files == 2
