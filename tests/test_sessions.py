"""Tests for agent_watch/engine/sessions.py."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import pytest

from agent_watch.engine.baselines import BaselineStore
from agent_watch.engine.sessions import SessionStore, parent_directory


class MemoryStore:
    def __init__(self) -> None:
        self.docs: dict[str, Any] = {}
        self.saves = 0

    def load_json(self, key: str) -> Any | None:
        return self.docs.get(key)

    def save_json(self, key: str, value: Any) -> None:
        self.saves += 1
        self.docs[key] = value


def _at(hour: int) -> datetime:
    return datetime(2026, 3, 2, hour, 15, 0)


@pytest.fixture()
def kv() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def baselines(kv: MemoryStore) -> BaselineStore:
    store = BaselineStore(kv, clock=lambda: 2_000_000.0)
    yield store
    store.close()


class TestParentDirectory:
    @pytest.mark.parametrize(
        "path, expected",
        [
            ("/home/dev/app/main.py", "/home/dev/app"),
            ("/main.py", "/"),
            ("C:\\Users\\dev\\app\\main.py", "C:\\Users\\dev\\app"),
            ("relative.txt", ""),
        ],
    )
    def test_parent_directory(self, path: str, expected: str) -> None:
        assert parent_directory(path) == expected


class TestRecording:
    def test_session_created_lazily(self, baselines: BaselineStore) -> None:
        sessions = SessionStore(baselines, now=lambda: _at(10))
        assert sessions.get("Claude Code") is None
        sessions.record_file_access("Claude Code", "/p/a.py", is_sensitive=False)
        session = sessions.get("Claude Code")
        assert session is not None
        assert session.start_time == _at(10).timestamp()

    def test_file_access_updates_all_sets(self, baselines: BaselineStore) -> None:
        sessions = SessionStore(baselines, now=lambda: _at(14))
        sessions.record_file_access("Aider", "/p/src/a.py", is_sensitive=False)
        sessions.record_file_access("Aider", "/p/src/a.py", is_sensitive=False)
        sessions.record_file_access("Aider", "/home/u/.ssh/id_rsa", True, "SSH private key")

        session = sessions.get("Aider")
        assert session is not None
        assert session.files == {"/p/src/a.py", "/home/u/.ssh/id_rsa"}
        assert session.sensitive_count == 1
        assert session.sensitive_reasons == {"SSH private key"}
        assert session.directories == {"/p/src", "/home/u/.ssh"}
        assert session.active_hours == {14}

    def test_sensitive_count_counts_every_access(self, baselines: BaselineStore) -> None:
        sessions = SessionStore(baselines, now=lambda: _at(9))
        for _ in range(3):
            sessions.record_file_access("Aider", "/p/.env", True, "Environment variables")
        session = sessions.get("Aider")
        assert session is not None
        assert session.sensitive_count == 3
        assert len(session.files) == 1

    def test_reason_ignored_when_not_sensitive(self, baselines: BaselineStore) -> None:
        sessions = SessionStore(baselines, now=lambda: _at(9))
        sessions.record_file_access("Aider", "/p/x", False, "AI agent config: Aider")
        session = sessions.get("Aider")
        assert session is not None
        assert session.sensitive_reasons == set()

    def test_network_endpoint_recorded(self, baselines: BaselineStore) -> None:
        sessions = SessionStore(baselines, now=lambda: _at(9))
        sessions.record_network_endpoint("Codex CLI", "104.18.1.1", 443)
        sessions.record_network_endpoint("Codex CLI", "104.18.1.1", 443)
        session = sessions.get("Codex CLI")
        assert session is not None
        assert session.endpoints == {"104.18.1.1:443"}
        assert session.active_hours == set()

    def test_get_returns_a_copy(self, baselines: BaselineStore) -> None:
        sessions = SessionStore(baselines, now=lambda: _at(9))
        sessions.record_file_access("Aider", "/p/a", False)
        copy = sessions.get("Aider")
        assert copy is not None
        copy.files.add("/tampered")
        again = sessions.get("Aider")
        assert again is not None
        assert "/tampered" not in again.files


class TestFinalize:
    def test_folds_active_sessions_and_saves(
        self, kv: MemoryStore, baselines: BaselineStore
    ) -> None:
        sessions = SessionStore(baselines, now=lambda: _at(9))
        sessions.record_file_access("Aider", "/p/a", False)
        sessions.record_network_endpoint("Codex CLI", "1.2.3.4", 443)

        folded = sessions.finalize_all_sessions()

        assert sorted(folded) == ["Aider", "Codex CLI"]
        assert sessions.agents() == []
        aider = baselines.get("Aider")
        assert aider is not None
        assert aider.session_count == 1
        assert kv.saves == 1
        assert not baselines.dirty

    def test_empty_session_is_skipped(self, kv: MemoryStore, baselines: BaselineStore) -> None:
        sessions = SessionStore(baselines, now=lambda: _at(9))
        sessions.ensure_session("Aider")

        assert sessions.finalize_all_sessions() == []
        assert baselines.get("Aider") is None
        assert kv.saves == 0

    def test_finalize_twice_does_not_double_fold(self, baselines: BaselineStore) -> None:
        sessions = SessionStore(baselines, now=lambda: _at(9))
        sessions.record_file_access("Aider", "/p/a", False)
        sessions.finalize_all_sessions()
        sessions.finalize_all_sessions()
        aider = baselines.get("Aider")
        assert aider is not None
        assert aider.session_count == 1
