"""In-process view cache keyed by (namespace, user_id, *suffix) tuples.

Dependent views (profile, strategy, diversification, insights, decisions) are
memoised per user for a short staleness window and dropped by prefix when a
write makes them stale. Listeners registered on a namespace are notified on
every invalidation so that out-of-process consumers can refresh too.
"""
from __future__ import annotations
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

_log = logging.getLogger(__name__)

# Centralized namespaces used across the package
NS_PROFILE = "userProfile"
NS_STRATEGY = "strategy"
NS_DIVERSIFICATION = "diversification"
NS_INSIGHTS = "insights"
NS_DECISIONS = "decisions"

Key = Tuple[str, ...]


def query_key(namespace: str, user_id: str, *suffix: str) -> Key:
    """Build a cache key; e.g. query_key(NS_PROFILE, "u1", "strategy")."""
    return (namespace, str(user_id), *[str(s) for s in suffix])


class ViewCache:
    """Thread-safe memo cache with a staleness window and garbage collection.

    Entries older than ``stale_seconds`` are recomputed on the next read;
    entries older than ``gc_seconds`` are removed by ``sweep()``, which
    ``set()`` also runs once per gc window.

    Every ``invalidate(prefix)`` bumps a generation counter for that prefix.
    A reader takes ``generation(key)`` before fetching and passes it to
    ``set()``; the write is refused if any prefix of the key was invalidated
    in between.
    """

    def __init__(self, stale_seconds: float = 300.0, gc_seconds: float = 1800.0,
                 clock: Callable[[], float] = time.monotonic):
        self.stale_seconds = float(stale_seconds)
        self.gc_seconds = float(gc_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[Key, Tuple[float, Any]] = {}
        self._generations: Dict[Key, int] = {}
        self._listeners: Dict[str, List[Callable[[Key], None]]] = {}
        self._last_sweep = clock()

    def get(self, key: Key) -> Optional[Any]:
        """Return the cached value if present and fresh; else None."""
        with self._lock:
            hit = self._entries.get(key)
        if hit is None:
            return None
        stored_at, value = hit
        if self._clock() - stored_at > self.stale_seconds:
            return None
        return value

    def _generation_locked(self, key: Key) -> Tuple[int, ...]:
        return tuple(self._generations.get(key[:i], 0) for i in range(1, len(key) + 1))

    def generation(self, key: Key) -> Tuple[int, ...]:
        """Invalidation counters of every prefix of ``key``."""
        with self._lock:
            return self._generation_locked(key)

    def set(self, key: Key, value: Any, generation: Optional[Tuple[int, ...]] = None) -> bool:
        """Store ``value``. Returns False (nothing stored) if ``generation`` is outdated."""
        now = self._clock()
        with self._lock:
            if generation is not None and generation != self._generation_locked(key):
                return False
            self._entries[key] = (now, value)
            if now - self._last_sweep > self.gc_seconds:
                self._sweep_locked(now)
        return True

    def subscribe(self, namespace: str, listener: Callable[[Key], None]) -> None:
        """Register a callback invoked with the prefix on each invalidation of ``namespace``."""
        with self._lock:
            self._listeners.setdefault(namespace, []).append(listener)

    def invalidate(self, prefix: Key) -> int:
        """Drop every entry whose key starts with ``prefix`` and notify listeners.

        Listener exceptions propagate to the caller; see ``broadcast``.
        Returns the number of dropped entries.
        """
        n = len(prefix)
        with self._lock:
            stale = [k for k in self._entries if k[:n] == prefix]
            for k in stale:
                del self._entries[k]
            self._generations[prefix] = self._generations.get(prefix, 0) + 1
            listeners = list(self._listeners.get(prefix[0], [])) if prefix else []
        for listener in listeners:
            listener(prefix)
        return len(stale)

    def broadcast(self, prefixes: List[Key]) -> List[Key]:
        """Invalidate each prefix independently (best-effort).

        A failing prefix is logged as a warning and does not stop the others.
        Returns the prefixes that failed.
        """
        failed: List[Key] = []
        for prefix in prefixes:
            try:
                self.invalidate(prefix)
            except Exception as e:
                _log.warning("Failed to invalidate view %s: %s", "/".join(prefix), e)
                failed.append(prefix)
        return failed

    def _sweep_locked(self, now: float) -> int:
        old = [k for k, (ts, _) in self._entries.items() if now - ts > self.gc_seconds]
        for k in old:
            del self._entries[k]
        self._last_sweep = now
        return len(old)

    def sweep(self) -> int:
        """Remove entries older than the gc window. Returns the number removed."""
        now = self._clock()
        with self._lock:
            return self._sweep_locked(now)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = [
    "NS_PROFILE",
    "NS_STRATEGY",
    "NS_DIVERSIFICATION",
    "NS_INSIGHTS",
    "NS_DECISIONS",
    "query_key",
    "ViewCache",
]
