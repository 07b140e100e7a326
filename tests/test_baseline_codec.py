"""Tests for agent_watch/storage/baseline_codec.py."""

from __future__ import annotations

import pytest

from agent_watch.domain.models import AgentBaseline, BaselineAverages, BaselineSession
from agent_watch.storage.baseline_codec import (
    SCHEMA_VERSION,
    decode_document,
    empty_document,
    encode_document,
    upgrade_document,
)


class TestUpgrade:
    def test_empty_document(self) -> None:
        assert upgrade_document(empty_document()) == {"version": SCHEMA_VERSION, "agents": {}}

    def test_missing_agents_is_empty(self) -> None:
        assert upgrade_document({})["agents"] == {}

    @pytest.mark.parametrize(
        "raw",
        [
            None,
            "text",
            {"version": 0},
            {"version": "2"},
            {"version": SCHEMA_VERSION + 1},
            {"agents": []},
        ],
    )
    def test_malformed_documents_rejected(self, raw: object) -> None:
        with pytest.raises(ValueError):
            upgrade_document(raw)

    @pytest.mark.parametrize(
        "bad",
        [
            "nope",
            {"sessions": ["nope"]},
            {"sessionCount": "many"},
            {"averages": ["nope"]},
        ],
    )
    def test_malformed_agent_dropped(self, bad: object) -> None:
        doc = upgrade_document({"agents": {"Aider": {"sessions": [{}]}, "Broken": bad}})
        assert list(doc["agents"]) == ["Aider"]

    def test_session_count_defaults_to_retained(self) -> None:
        doc = upgrade_document({"agents": {"Aider": {"sessions": [{}, {}]}}})
        assert doc["agents"]["Aider"]["sessionCount"] == 2


class TestDecode:
    def test_out_of_range_hours_dropped(self) -> None:
        raw = {
            "version": 2,
            "agents": {"Aider": {"sessions": [{"activeHours": [3, 24, -1, 23]}]}},
        }
        baseline = decode_document(raw)["Aider"]
        assert baseline.sessions[0].active_hours == (3, 23)

    def test_short_histogram_padded(self) -> None:
        raw = {"version": 2, "agents": {"Aider": {"averages": {"hourHistogram": [1, 2]}}}}
        histogram = decode_document(raw)["Aider"].averages.hour_histogram
        assert histogram == [1, 2] + [0] * 22

    def test_bad_session_field_drops_only_that_agent(self) -> None:
        raw = {
            "version": 2,
            "agents": {
                "Aider": {"sessionCount": 1, "sessions": [{"totalFiles": 3}]},
                "Codex CLI": {"sessions": [{"totalFiles": "x"}]},
            },
        }
        baselines = decode_document(raw)
        assert list(baselines) == ["Aider"]
        assert baselines["Aider"].sessions[0].total_files == 3


class TestEncode:
    def test_camel_case_layout(self) -> None:
        baseline = AgentBaseline(
            session_count=1,
            sessions=[
                BaselineSession(
                    start_time=1.0,
                    end_time=2.0,
                    total_files=3,
                    sensitive_files=1,
                    directories=("/p",),
                    network_endpoints=("1.1.1.1:443",),
                    sensitive_reasons=("API token",),
                    active_hours=(9,),
                )
            ],
            averages=BaselineAverages(files_per_session=3.0, sensitive_per_session=1.0),
        )
        doc = encode_document({"Aider": baseline})
        assert doc["version"] == SCHEMA_VERSION
        agent = doc["agents"]["Aider"]
        assert agent["sessionCount"] == 1
        assert agent["sessions"][0]["networkEndpoints"] == ["1.1.1.1:443"]
        assert agent["sessions"][0]["activeHours"] == [9]
        assert agent["averages"]["filesPerSession"] == 3.0
        assert agent["averages"]["hourHistogram"] == [0] * 24

    def test_decode_of_encode_preserves_baseline(self) -> None:
        baseline = AgentBaseline(
            session_count=12,
            sessions=[
                BaselineSession(start_time=1.0, end_time=2.0, total_files=1, sensitive_files=0)
            ],
            averages=BaselineAverages(files_per_session=1.0, hour_histogram=None),
        )
        assert decode_document(encode_document({"Aider": baseline})) == {"Aider": baseline}
