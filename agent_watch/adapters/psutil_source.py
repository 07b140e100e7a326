"""psutil-backed process, network and open-file sources.

Processes that exit or deny access mid-scan are skipped silently; that is
the normal state of a live process table, not an error.
"""

from __future__ import annotations

import logging

import psutil

from agent_watch.domain.interfaces import ParentInfo, ProcessInfo, RawConnection

logger = logging.getLogger(__name__)

_GONE = (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess)


class PsutilProcessSource:
    """ProcessSource over ``psutil.process_iter``."""

    def list_processes(self) -> list[ProcessInfo]:
        out: list[ProcessInfo] = []
        for proc in psutil.process_iter(["pid", "name"]):
            name = proc.info.get("name")
            if name:
                out.append(ProcessInfo(pid=proc.info["pid"], name=name))
        return out

    def parent_map(self) -> dict[int, ParentInfo]:
        out: dict[int, ParentInfo] = {}
        for proc in psutil.process_iter(["pid", "name", "ppid"]):
            info = proc.info
            out[info["pid"]] = ParentInfo(name=info.get("name") or "", ppid=info.get("ppid") or 0)
        return out

    def cwd(self, pid: int) -> str | None:
        try:
            return psutil.Process(pid).cwd() or None
        except _GONE:
            return None


class PsutilNetworkSource:
    """NetworkSource over ``psutil.net_connections``.

    Only connections with a remote address are returned.
    """

    def connections(self, pids: list[int]) -> list[RawConnection]:
        wanted = set(pids)
        if not wanted:
            return []
        try:
            conns = psutil.net_connections(kind="tcp")
        except psutil.AccessDenied:
            logger.warning("Not permitted to list system connections; network scan skipped")
            return []

        out: list[RawConnection] = []
        for conn in conns:
            if conn.pid not in wanted or not conn.raddr:
                continue
            out.append(
                RawConnection(
                    pid=conn.pid, ip=conn.raddr.ip, port=conn.raddr.port, state=conn.status
                )
            )
        return out


class PsutilFileHandleSource:
    """FileHandleSource over ``psutil.Process.open_files``."""

    def open_files(self, pid: int) -> list[str]:
        try:
            return [f.path for f in psutil.Process(pid).open_files()]
        except _GONE:
            return []
