"""Bounded TTL cache.

One abstraction behind every rate-sensitive lookup in a scan cycle:
process ancestry (pid, 60s), reverse DNS (ip, 300s), working directory
(pid, 60s), watcher debounce (path, 2s) and event dedup (agent|path, 30s).

Size backstop: when a store pushes the cache past ``max_entries``, one
pass removes every expired entry; if the cache is still over the limit
it is cleared. Misses only cost a fresh lookup, so no LRU bookkeeping.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Clock = Callable[[], float]


@dataclass
class CacheEntry(Generic[V]):
    value: V
    timestamp: float


class TTLCache(Generic[K, V]):
    """Thread-safe key → value cache with per-entry expiry.

    Args:
        ttl: Default entry lifetime in seconds.
        max_entries: Size backstop (see module docstring).
        clock: Monotonic time source in seconds. Injected by tests.
    """

    def __init__(
        self,
        ttl: float,
        max_entries: int = 500,
        clock: Clock = time.monotonic,
    ) -> None:
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[K, CacheEntry[V]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            entry = self._entries.get(key)  # type: ignore[arg-type]
            return entry is not None and self._fresh(entry, self.ttl, self._clock())

    # ── Reads ─────────────────────────────────────────────────────────────────

    def get(self, key: K, ttl: float | None = None) -> V | None:
        """Return the value for ``key`` if present and unexpired, else None."""
        window = self.ttl if ttl is None else ttl
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or not self._fresh(entry, window, self._clock()):
                return None
            return entry.value

    def peek(self, key: K) -> CacheEntry[V] | None:
        """Return the raw entry for ``key`` regardless of age."""
        with self._lock:
            return self._entries.get(key)

    def get_or_compute(
        self,
        key: K,
        compute: Callable[[], V],
        ttl: float | None = None,
    ) -> V:
        """Return the cached value, or call ``compute`` and cache its result.

        ``compute`` runs outside the lock. If it raises, nothing is cached
        and the exception propagates.
        """
        window = self.ttl if ttl is None else ttl
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._fresh(entry, window, self._clock()):
                return entry.value

        value = compute()
        self.record_only(key, value)
        return value

    # ── Writes ────────────────────────────────────────────────────────────────

    def record_only(self, key: K, value: V) -> None:
        """Store a value the caller already has, stamped with the current time."""
        with self._lock:
            now = self._clock()
            self._entries[key] = CacheEntry(value=value, timestamp=now)
            if len(self._entries) > self.max_entries:
                self._enforce_backstop(now)

    def pop(self, key: K) -> V | None:
        with self._lock:
            entry = self._entries.pop(key, None)
            return entry.value if entry is not None else None

    def prune(self) -> int:
        """Remove expired entries. Returns the number removed."""
        with self._lock:
            return self._prune_expired(self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    # ── Internals (lock held) ─────────────────────────────────────────────────

    @staticmethod
    def _fresh(entry: CacheEntry[V], window: float, now: float) -> bool:
        return now - entry.timestamp < window

    def _prune_expired(self, now: float) -> int:
        stale = [k for k, e in self._entries.items() if not self._fresh(e, self.ttl, now)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def _enforce_backstop(self, now: float) -> None:
        self._prune_expired(now)
        if len(self._entries) > self.max_entries:
            self._entries.clear()


@dataclass
class _DedupState:
    count: int = 1


class EventDeduplicator:
    """Suppress repeats of the same key inside a fixed window.

    ``admit`` returns None for a suppressed repeat. For an admitted key it
    returns how many times the key was seen during the previous window
    (1 when nothing was suppressed), so the feed can show "×N".
    """

    def __init__(
        self,
        window: float = 30.0,
        max_entries: int = 500,
        clock: Clock = time.monotonic,
    ) -> None:
        self.window = window
        self._clock = clock
        self._cache: TTLCache[str, _DedupState] = TTLCache(
            ttl=window * 2, max_entries=max_entries, clock=clock
        )
        self._lock = threading.Lock()

    def admit(self, key: str) -> int | None:
        with self._lock:
            now = self._clock()
            previous = self._cache.peek(key)
            if previous is not None and now - previous.timestamp >= self._cache.ttl:
                previous = None
            if previous is not None and now - previous.timestamp < self.window:
                previous.value.count += 1
                return None
            repeat_count = previous.value.count if previous is not None else 1
            self._cache.record_only(key, _DedupState())
            return repeat_count

    def __len__(self) -> int:
        return len(self._cache)
