"""Agent process detection and enrichment.

detect_agents matches the process table against the agent catalog;
AncestryResolver and WorkingDirResolver add the parent chain and cwd,
each cached per pid for a minute.
"""

from __future__ import annotations

import logging
import time

from agent_watch.domain.interfaces import ParentInfo, ProcessInfo, ProcessSource
from agent_watch.domain.models import AgentProcess
from agent_watch.engine.cache import Clock, TTLCache
from agent_watch.policies.agents import (
    EDITOR_LABELS,
    IGNORE_PROCESS_FRAGMENTS,
    default_trust_for,
    find_agent,
)

logger = logging.getLogger(__name__)

MAX_PARENT_DEPTH = 6
PROCESS_CACHE_TTL = 60.0
PROCESS_CACHE_MAX = 500


def detect_agents(
    processes: list[ProcessInfo],
    trust_overrides: dict[str, int] | None = None,
) -> list[AgentProcess]:
    """Return one AgentProcess per distinct pid running a known agent.

    Editor hosts themselves are skipped (their children are still matched),
    as are hardware-vendor helpers.
    """
    detected: list[AgentProcess] = []
    seen: set[int] = set()
    for proc in processes:
        name = proc.name.lower()
        if proc.pid in seen or name in EDITOR_LABELS:
            continue
        if any(fragment in name for fragment in IGNORE_PROCESS_FRAGMENTS):
            continue
        agent = find_agent(name)
        if agent is None:
            continue
        seen.add(proc.pid)
        detected.append(
            AgentProcess(
                pid=proc.pid,
                name=agent.display_name,
                process_name=proc.name,
                default_trust=default_trust_for(agent.display_name, trust_overrides),
            )
        )
    return detected


def walk_parent_chain(pid: int, parents: dict[int, ParentInfo]) -> list[str]:
    """Names of up to MAX_PARENT_DEPTH ancestors, nearest first.

    Stops at a missing parent, pid 0, a self-parent or a cycle.
    """
    chain: list[str] = []
    current = pid
    seen: set[int] = set()
    for _ in range(MAX_PARENT_DEPTH):
        info = parents.get(current)
        if info is None:
            break
        ppid = info.ppid
        if ppid <= 0 or ppid == current or ppid in seen:
            break
        seen.add(ppid)
        parent = parents.get(ppid)
        if parent is None:
            break
        chain.append(parent.name)
        current = ppid
    return chain


class AncestryResolver:
    """Per-pid parent chains, refreshed at most once a minute.

    The process table is only read when at least one pid is uncached.
    """

    def __init__(self, source: ProcessSource, clock: Clock = time.monotonic) -> None:
        self._source = source
        self._cache: TTLCache[int, list[str]] = TTLCache(
            ttl=PROCESS_CACHE_TTL, max_entries=PROCESS_CACHE_MAX, clock=clock
        )

    def chains(self, pids: list[int]) -> dict[int, list[str]]:
        result: dict[int, list[str]] = {}
        missing: list[int] = []
        for pid in pids:
            cached = self._cache.get(pid)
            if cached is None:
                missing.append(pid)
            else:
                result[pid] = cached
        if not missing:
            return result

        parents = self._source.parent_map()
        for pid in missing:
            chain = walk_parent_chain(pid, parents)
            self._cache.record_only(pid, chain)
            result[pid] = chain
        return result

    def enrich(self, agents: list[AgentProcess]) -> None:
        if not agents:
            return
        chains = self.chains([a.pid for a in agents])
        for agent in agents:
            agent.parent_chain = chains.get(agent.pid, [])


def annotate_host_apps(agents: list[AgentProcess]) -> None:
    """Set ``parent_editor`` from the nearest editor host in the parent chain."""
    for agent in agents:
        for parent in agent.parent_chain:
            label = EDITOR_LABELS.get(parent.lower())
            if label:
                agent.parent_editor = label
                break


class WorkingDirResolver:
    """Per-pid working directories, cached for a minute (misses included)."""

    def __init__(self, source: ProcessSource, clock: Clock = time.monotonic) -> None:
        self._source = source
        self._cache: TTLCache[int, tuple[str | None]] = TTLCache(
            ttl=PROCESS_CACHE_TTL, max_entries=PROCESS_CACHE_MAX, clock=clock
        )

    def cwd(self, pid: int) -> str | None:
        (value,) = self._cache.get_or_compute(pid, lambda: (self._source.cwd(pid),))
        return value

    def annotate(self, agents: list[AgentProcess]) -> None:
        for agent in agents:
            agent.cwd = self.cwd(agent.pid)
