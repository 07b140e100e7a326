"""Live risk scoring engine.

Turns the current activity mix of one agent into a 0–100 risk score and a
letter trust grade. Independent of baseline history.

Each event is weighted by age (1.0 under an hour, 0.5 under a day, 0.1
after that), so old activity fades instead of dropping off a cliff. Each
category then contributes a concave, capped amount:

  sensitive files   — 10 × √n, max 40
  SSH/AWS files     —  4 × √n, max 20
  unknown domains   —  4 × √n, max 20
  connections       —  2 × √n, max 10
  config files      —  1 × √n, max  5
  all file touches  — 0.5 × √n, max 5

Caps sum to 100. Agents with a default trust of 70 or more have their
score halved.
"""

from __future__ import annotations

import math
import re
import time
from collections.abc import Iterable
from dataclasses import fields

from agent_watch.domain.models import FileEvent, NetworkConnection, RiskInputs
from agent_watch.engine.anomaly import round_half_up

ONE_HOUR = 3600.0
ONE_DAY = 86400.0
REPEAT_WINDOW = 30.0
TRUSTED_THRESHOLD = 70
TRUSTED_MULTIPLIER = 0.5

# RiskInputs field -> (coefficient, cap)
_CATEGORIES: dict[str, tuple[float, float]] = {
    "sensitive_files": (10, 40),
    "ssh_aws_files": (4, 20),
    "unknown_domains": (4, 20),
    "network_count": (2, 10),
    "config_files": (1, 5),
    "file_count": (0.5, 5),
}

_SSH_AWS_REASON = re.compile(r"SSH|AWS", re.IGNORECASE)

# (upper bound inclusive, grade)
_GRADES: tuple[tuple[float, str], ...] = (
    (10, "A+"),
    (20, "A"),
    (30, "B+"),
    (40, "B"),
    (55, "C"),
    (70, "D"),
)


def time_decay_weight(timestamp: float, now: float | None = None) -> float:
    """Weight of an event by age: 1.0 (<1h), 0.5 (<24h), 0.1 otherwise."""
    age = (time.time() if now is None else now) - timestamp
    if age < ONE_HOUR:
        return 1.0
    if age < ONE_DAY:
        return 0.5
    return 0.1


def is_inside(path: str, directory: str | None) -> bool:
    """Case- and separator-insensitive containment check."""
    if not directory or not path:
        return False
    norm_path = path.replace("\\", "/").lower()
    norm_dir = directory.replace("\\", "/").lower().rstrip("/")
    return norm_path == norm_dir or norm_path.startswith(norm_dir + "/")


def decayed_counts(
    agent: str,
    events: Iterable[FileEvent],
    connections: Iterable[NetworkConnection],
    project_dir: str | None = None,
    pid: int | None = None,
    now: float | None = None,
) -> RiskInputs:
    """Collect decay-weighted RiskInputs for one agent.

    Events are matched by ``pid`` when given, by agent name otherwise.
    Self-access events and files inside ``project_dir`` are skipped, and a
    file touched again within REPEAT_WINDOW seconds counts once.
    """
    now = time.time() if now is None else now
    sensitive = ssh_aws = config = files = 0.0
    last_seen: dict[str, float] = {}

    for ev in sorted(events, key=lambda e: e.timestamp):
        if (ev.pid != pid) if pid is not None else (ev.agent != agent):
            continue
        if ev.self_access or is_inside(ev.path, project_dir):
            continue
        previous = last_seen.get(ev.path)
        if previous is not None and ev.timestamp - previous < REPEAT_WINDOW:
            continue
        last_seen[ev.path] = ev.timestamp

        weight = time_decay_weight(ev.timestamp, now)
        files += weight
        if ev.sensitive:
            sensitive += weight
        if ev.config:
            config += weight
        if ev.reason and _SSH_AWS_REASON.search(ev.reason):
            ssh_aws += weight

    network = unknown = 0
    for conn in connections:
        if (conn.pid != pid) if pid is not None else (conn.agent != agent):
            continue
        network += 1
        if conn.flagged:
            unknown += 1

    return RiskInputs(
        sensitive_files=sensitive,
        ssh_aws_files=ssh_aws,
        unknown_domains=unknown,
        network_count=network,
        config_files=config,
        file_count=files,
    )


def calculate_risk_score(inputs: RiskInputs, default_trust: int | None = None) -> int:
    """Compute the 0–100 composite risk score from decayed counts."""
    raw = 0.0
    for f in fields(RiskInputs):
        n = getattr(inputs, f.name)
        if not n > 0:  # also rejects NaN
            continue
        coefficient, cap = _CATEGORIES[f.name]
        raw += min(cap, coefficient * math.sqrt(n))

    if default_trust is not None and default_trust >= TRUSTED_THRESHOLD:
        raw *= TRUSTED_MULTIPLIER
    return max(0, min(100, round_half_up(raw)))


def get_trust_grade(score: float) -> str:
    """Map a risk score to a letter grade. Lower risk, better grade."""
    for upper, grade in _GRADES:
        if score <= upper:
            return grade
    return "F"


def get_risk_label(score: float) -> str:
    if score >= 76:
        return "CRITICAL"
    if score >= 51:
        return "HIGH"
    if score >= 26:
        return "MEDIUM"
    return "LOW"


def get_risk_color(score: float) -> str:
    if score >= 76:
        return "red"
    if score >= 51:
        return "orange"
    if score >= 26:
        return "yellow"
    return "green"
