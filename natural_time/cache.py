"""Thread-safe memo table for the expensive ephemeris searches."""

from __future__ import annotations

import json
import logging
from threading import Lock
from typing import Any, Callable, Dict, Hashable, TypeVar

__all__ = ["EventCache"]

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class EventCache:
    """Memoize search results by structural key until :meth:`reset`.

    Astronomical results never go stale, so there is no expiry. Concurrent
    callers asking for the same missing key wait on a per-key lock and only
    one of them runs the computation. Stored values may be ``None``.
    """

    def __init__(self) -> None:
        self._entries: Dict[Hashable, Any] = {}
        self._key_locks: Dict[Hashable, Lock] = {}
        self._lock = Lock()
        self._generation = 0
        self._hits = 0
        self._misses = 0

    def get_or_compute(self, key: Hashable, compute: Callable[[], T]) -> T:
        with self._lock:
            if key in self._entries:
                self._hits += 1
                return self._entries[key]
            key_lock = self._key_locks.setdefault(key, Lock())

        with key_lock:
            with self._lock:
                if key in self._entries:
                    self._hits += 1
                    return self._entries[key]
                generation = self._generation
            succeeded = False
            try:
                value = compute()
                succeeded = True
            finally:
                with self._lock:
                    if self._key_locks.get(key) is key_lock:
                        del self._key_locks[key]
                    if succeeded:
                        self._misses += 1
                        # a reset() during compute() discards the result
                        if generation == self._generation:
                            self._entries[key] = value
            return value

    def reset(self) -> None:
        """Drop every entry. Lookups already running return their value uncached."""

        with self._lock:
            dropped = len(self._entries)
            self._entries.clear()
            self._key_locks.clear()
            self._generation += 1
            self._hits = 0
            self._misses = 0
        LOGGER.info(json.dumps({"event": "caches_reset", "entries": dropped}))

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"entries": len(self._entries), "hits": self._hits, "misses": self._misses}

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
