"""Collaborator interfaces.

These are pure protocols. The scoring core never talks to the OS or the
disk directly. psutil / socket / JSON-file implementations live in
``agent_watch.adapters`` and ``agent_watch.storage``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class ProcessInfo:
    pid: int
    name: str


@dataclass(frozen=True)
class ParentInfo:
    name: str
    ppid: int


@dataclass(frozen=True)
class RawConnection:
    pid: int
    ip: str
    port: int
    state: str


class ProcessSource(Protocol):
    """Enumerate running processes and their ancestry."""

    def list_processes(self) -> list[ProcessInfo]:
        """Return every visible process as ``(pid, name)``."""
        ...

    def parent_map(self) -> dict[int, ParentInfo]:
        """Return ``pid -> (name, ppid)`` for every visible process."""
        ...

    def cwd(self, pid: int) -> str | None:
        """Return the working directory of ``pid``, or None if unavailable."""
        ...


class NetworkSource(Protocol):
    """Enumerate remote connections owned by a set of processes."""

    def connections(self, pids: list[int]) -> list[RawConnection]: ...


class FileHandleSource(Protocol):
    """List files currently held open by a process."""

    def open_files(self, pid: int) -> list[str]: ...


class Resolver(Protocol):
    """Reverse-resolve an IP address to a hostname."""

    def reverse(self, ip: str) -> str | None: ...


class KeyValueStore(Protocol):
    """Durable JSON key-value persistence."""

    def load_json(self, key: str) -> Any | None:
        """Return the stored document, or None when absent.

        May raise OSError / ValueError on unreadable or corrupt data;
        callers decide how to recover.
        """
        ...

    def save_json(self, key: str, value: Any) -> None:
        """Persist ``value`` under ``key``, replacing any previous document."""
        ...
