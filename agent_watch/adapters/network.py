"""Outbound connection scanning with cached reverse DNS."""

from __future__ import annotations

import logging
import socket
import time

from agent_watch.domain.interfaces import NetworkSource, Resolver
from agent_watch.domain.models import AgentProcess, NetworkConnection
from agent_watch.engine.cache import Clock, TTLCache
from agent_watch.policies.domains import is_known_domain, is_private_ip

logger = logging.getLogger(__name__)

DNS_CACHE_TTL = 300.0
DNS_CACHE_MAX = 1000


class ReverseDnsResolver:
    """Resolver over ``socket.gethostbyaddr``.

    Failed lookups are cached too, so an IP without a PTR record is not
    retried for DNS_CACHE_TTL seconds.
    """

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self._cache: TTLCache[str, tuple[str | None]] = TTLCache(
            ttl=DNS_CACHE_TTL, max_entries=DNS_CACHE_MAX, clock=clock
        )

    def reverse(self, ip: str) -> str | None:
        (name,) = self._cache.get_or_compute(ip, lambda: (self._lookup(ip),))
        return name

    @staticmethod
    def _lookup(ip: str) -> str | None:
        try:
            hostname, _, _ = socket.gethostbyaddr(ip)
        except OSError:
            return None
        return hostname or None


class NetworkScanner:
    """Turn raw sockets of agent processes into classified connections."""

    def __init__(self, source: NetworkSource, resolver: Resolver) -> None:
        self._source = source
        self._resolver = resolver

    def scan(self, agents: list[AgentProcess]) -> list[NetworkConnection]:
        """Public, deduplicated (pid, ip, port) connections for ``agents``.

        A connection is flagged when reverse DNS fails or the name is not
        a known domain.
        """
        if not agents:
            return []
        by_pid = {a.pid: a for a in agents}
        raw = self._source.connections(list(by_pid))

        seen: set[tuple[int, str, int]] = set()
        domains: dict[str, str | None] = {}
        out: list[NetworkConnection] = []
        for conn in raw:
            if is_private_ip(conn.ip):
                continue
            key = (conn.pid, conn.ip, conn.port)
            if key in seen:
                continue
            seen.add(key)
            if conn.ip not in domains:
                domains[conn.ip] = self._resolver.reverse(conn.ip)
            domain = domains[conn.ip]
            agent = by_pid.get(conn.pid)
            out.append(
                NetworkConnection(
                    agent=agent.name if agent else f"PID {conn.pid}",
                    pid=conn.pid,
                    remote_ip=conn.ip,
                    remote_port=conn.port,
                    state=conn.state,
                    domain=domain or "",
                    flagged=not domain or not is_known_domain(domain),
                    cwd=agent.cwd if agent else None,
                )
            )
        logger.debug("Network scan: %d connection(s) across %d agent(s)", len(out), len(agents))
        return out
