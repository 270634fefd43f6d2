"""
services/catalog_cache.py – Time-bounded in-memory cache for listing results.

Staleness is evaluated lazily on read: an entry is fresh while
``now - fetched_at_ms < ttl_ms``.  Entries are replaced wholesale on put() and
dropped all at once by clear(); there is no per-key eviction.
"""

import logging
import threading
import time
from typing import Callable, Dict, Generic, Optional, Tuple, TypeVar

from models.catalog_entry import CacheEntry

T = TypeVar("T")

Clock = Callable[[], int]

log = logging.getLogger(__name__)


def epoch_millis() -> int:
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


class TimedCache(Generic[T]):
    """
    Thread-safe key → value store with a single time-to-live.

    Parameters
    ----------
    ttl_ms : Maximum age of a fresh entry, in milliseconds.
    clock  : Callable returning the current epoch time in milliseconds;
             injectable so tests can advance time.
    name   : Label used in log messages.
    """

    def __init__(self, ttl_ms: int, *, clock: Clock = epoch_millis, name: str = "cache") -> None:
        self._ttl_ms = ttl_ms
        self._clock = clock
        self._name = name
        self._entries: Dict[str, CacheEntry[T]] = {}
        self._lock = threading.Lock()

    @property
    def ttl_ms(self) -> int:
        return self._ttl_ms

    def get(self, key: str) -> Tuple[Optional[T], bool]:
        """
        Return ``(value, fresh)`` for *key*.

        A missing key yields ``(None, False)``; an expired one yields its last
        value with ``fresh=False`` so callers may still fall back to it.
        """
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            log.debug("%s miss: %s", self._name, key)
            return None, False
        fresh = self._clock() - entry.fetched_at_ms < self._ttl_ms
        log.debug("%s %s: %s", self._name, "hit" if fresh else "stale", key)
        return entry.value, fresh

    def put(self, key: str, value: T) -> None:
        """Store *value* under *key*, stamped with the current time."""
        entry = CacheEntry(value=value, fetched_at_ms=self._clock())
        with self._lock:
            self._entries[key] = entry

    def clear(self) -> None:
        """Drop every entry for every key."""
        with self._lock:
            count = len(self._entries)
            self._entries = {}
        log.info("%s cleared (%d entries dropped).", self._name, count)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def snapshot(self) -> Dict[str, T]:
        """Copy of every stored value regardless of freshness."""
        with self._lock:
            return {key: entry.value for key, entry in self._entries.items()}
