"""Versioned (de)serialisation of the baseline document.

Persisted layout (camelCase keys, one document for all agents):

  version: 2
  agents:
    "<display name>":
      sessionCount: int
      sessions: [ {startTime, endTime, totalFiles, sensitiveFiles,
                   directories[], networkEndpoints[], sensitiveReasons[],
                   activeHours[]} ]
      averages: {filesPerSession, sensitivePerSession, typicalDirectories[],
                 knownEndpoints[], knownSensitiveReasons[], hourHistogram[24]|null}

Version 1 documents have no ``version`` key and predate
``sensitiveReasons`` / ``activeHours`` / ``hourHistogram``. The schema is
additive-only: ``upgrade_document`` fills every missing field with its
empty default before decoding.

Structural faults (non-object root, bad version, non-object ``agents``)
reject the whole document. A malformed entry for one agent is logged and
dropped; every other agent still loads.
"""

from __future__ import annotations

import logging
from typing import Any

from agent_watch.domain.models import (
    HOURS_PER_DAY,
    AgentBaseline,
    BaselineAverages,
    BaselineSession,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2


def empty_document() -> dict[str, Any]:
    return {"version": SCHEMA_VERSION, "agents": {}}


def upgrade_document(raw: Any) -> dict[str, Any]:
    """Bring a loaded document up to SCHEMA_VERSION.

    Raises:
        ValueError: if the document isn't structurally a baseline document.
    """
    if not isinstance(raw, dict):
        raise ValueError(f"Baseline document must be an object, got {type(raw).__name__}")

    version = raw.get("version", 1)
    if not isinstance(version, int) or version < 1:
        raise ValueError(f"Invalid baseline document version: {version!r}")
    if version > SCHEMA_VERSION:
        raise ValueError(
            f"Baseline document version {version} is newer than supported ({SCHEMA_VERSION})"
        )

    agents = raw.get("agents") or {}
    if not isinstance(agents, dict):
        raise ValueError("Baseline document 'agents' must be an object")

    upgraded: dict[str, Any] = {}
    for name, data in agents.items():
        try:
            upgraded[str(name)] = _upgrade_agent(data, agent=str(name))
        except (ValueError, TypeError, KeyError) as err:
            logger.warning("Dropping malformed baseline for %s (%s)", name, err)

    return {"version": SCHEMA_VERSION, "agents": upgraded}


def _upgrade_agent(data: Any, agent: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"Baseline for agent {agent!r} must be an object")
    sessions = [_upgrade_session(s, agent=agent) for s in data.get("sessions") or []]
    averages = data.get("averages") or {}
    if not isinstance(averages, dict):
        raise ValueError(f"Baseline averages for agent {agent!r} must be an object")
    averages = dict(averages)
    averages.setdefault("filesPerSession", 0.0)
    averages.setdefault("sensitivePerSession", 0.0)
    averages.setdefault("typicalDirectories", [])
    averages.setdefault("knownEndpoints", [])
    averages.setdefault("knownSensitiveReasons", [])
    averages.setdefault("hourHistogram", None)
    return {
        "sessionCount": int(data.get("sessionCount", len(sessions))),
        "sessions": sessions,
        "averages": averages,
    }


def _upgrade_session(data: Any, agent: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"Baseline session for agent {agent!r} must be an object")
    session = dict(data)
    session.setdefault("startTime", 0)
    session.setdefault("endTime", session["startTime"])
    session.setdefault("totalFiles", 0)
    session.setdefault("sensitiveFiles", 0)
    session.setdefault("directories", [])
    session.setdefault("networkEndpoints", [])
    session.setdefault("sensitiveReasons", [])
    session.setdefault("activeHours", [])
    return session


# ── Decode ────────────────────────────────────────────────────────────────────


def decode_document(raw: Any) -> dict[str, AgentBaseline]:
    """Upgrade and decode a persisted document into domain baselines."""
    doc = upgrade_document(raw)
    baselines: dict[str, AgentBaseline] = {}
    for name, data in doc["agents"].items():
        try:
            baselines[name] = _decode_baseline(data)
        except (ValueError, TypeError, KeyError) as err:
            logger.warning("Dropping malformed baseline for %s (%s)", name, err)
    return baselines


def _decode_baseline(data: dict[str, Any]) -> AgentBaseline:
    return AgentBaseline(
        session_count=data["sessionCount"],
        sessions=[_decode_session(s) for s in data["sessions"]],
        averages=_decode_averages(data["averages"]),
    )


def _decode_session(data: dict[str, Any]) -> BaselineSession:
    return BaselineSession(
        start_time=data["startTime"],
        end_time=data["endTime"],
        total_files=int(data["totalFiles"]),
        sensitive_files=int(data["sensitiveFiles"]),
        directories=tuple(str(d) for d in data["directories"]),
        network_endpoints=tuple(str(e) for e in data["networkEndpoints"]),
        sensitive_reasons=tuple(str(r) for r in data["sensitiveReasons"]),
        active_hours=tuple(int(h) for h in data["activeHours"] if 0 <= int(h) < HOURS_PER_DAY),
    )


def _decode_averages(data: dict[str, Any]) -> BaselineAverages:
    histogram = data["hourHistogram"]
    if histogram is not None:
        histogram = [int(v) for v in histogram][:HOURS_PER_DAY]
        histogram += [0] * (HOURS_PER_DAY - len(histogram))
    return BaselineAverages(
        files_per_session=data["filesPerSession"],
        sensitive_per_session=data["sensitivePerSession"],
        typical_directories=list(data["typicalDirectories"]),
        known_endpoints=list(data["knownEndpoints"]),
        known_sensitive_reasons=list(data["knownSensitiveReasons"]),
        hour_histogram=histogram,
    )


# ── Encode ────────────────────────────────────────────────────────────────────


def encode_document(baselines: dict[str, AgentBaseline]) -> dict[str, Any]:
    return {
        "version": SCHEMA_VERSION,
        "agents": {name: _encode_baseline(b) for name, b in baselines.items()},
    }


def _encode_baseline(baseline: AgentBaseline) -> dict[str, Any]:
    avg = baseline.averages
    return {
        "sessionCount": baseline.session_count,
        "sessions": [_encode_session(s) for s in baseline.sessions],
        "averages": {
            "filesPerSession": avg.files_per_session,
            "sensitivePerSession": avg.sensitive_per_session,
            "typicalDirectories": list(avg.typical_directories),
            "knownEndpoints": list(avg.known_endpoints),
            "knownSensitiveReasons": list(avg.known_sensitive_reasons),
            "hourHistogram": list(avg.hour_histogram) if avg.hour_histogram is not None else None,
        },
    }


def _encode_session(session: BaselineSession) -> dict[str, Any]:
    return {
        "startTime": session.start_time,
        "endTime": session.end_time,
        "totalFiles": session.total_files,
        "sensitiveFiles": session.sensitive_files,
        "directories": list(session.directories),
        "networkEndpoints": list(session.network_endpoints),
        "sensitiveReasons": list(session.sensitive_reasons),
        "activeHours": list(session.active_hours),
    }
