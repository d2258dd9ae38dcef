"""
Resolution Cache

Process-lifetime memo for metadata lookups, keyed by a normalized query key.

- Found and not-found (None) results are both cached
- Failures are never cached, so the next call retries
- Concurrent lookups of the same key share one in-flight fetch
- Nothing is evicted; catalog metadata is treated as stable for the
  lifetime of the process
"""

import time
import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

# Sentinel value to distinguish "no cache exists" from "cached None (no match found)"
_CACHE_MISS = object()

KEY_SEPARATOR = '||'


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    fetched_at: float


def make_cache_key(kind: str, *parts: Optional[str]) -> str:
    """
    Build a case-insensitive cache key

    Example:
        make_cache_key('track', 'Creep', 'Radiohead') -> 'track||creep||radiohead'
    """
    normalized = [(part or '').strip().lower() for part in parts]
    return KEY_SEPARATOR.join([kind] + normalized)


class ResolutionCache:
    """Memoizes fetch results per key for the lifetime of the process"""

    def __init__(self, clock=time.time):
        self.clock = clock
        self._entries = {}
        self._in_flight = {}
        self._lock = threading.Lock()

        self.stats = {
            'hits': 0,
            'misses': 0,
            'coalesced': 0,
            'failures': 0
        }

    def __contains__(self, key):
        with self._lock:
            return key in self._entries

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def peek(self, key: str) -> Any:
        """Return the cached value for key, or _CACHE_MISS"""
        with self._lock:
            entry = self._entries.get(key)
        return entry.value if entry is not None else _CACHE_MISS

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(key)

    def resolve(self, key: str, fetch_fn: Callable[[], Any]) -> Any:
        """
        Return the memoized value for key, fetching it on first use

        Args:
            key: Normalized cache key (see make_cache_key)
            fetch_fn: Zero-argument callable performing the lookup

        Returns:
            The fetched value, which may be None for "not found"

        Raises:
            Whatever fetch_fn raises; the key stays uncached
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self.stats['hits'] += 1
                return entry.value

            future = self._in_flight.get(key)
            if future is None:
                future = Future()
                self._in_flight[key] = future
                owner = True
                self.stats['misses'] += 1
            else:
                owner = False
                self.stats['coalesced'] += 1

        if not owner:
            logger.debug(f"Joining in-flight lookup for {key}")
            return future.result()

        try:
            value = fetch_fn()
        except Exception as e:
            with self._lock:
                del self._in_flight[key]
                self.stats['failures'] += 1
            future.set_exception(e)
            raise

        with self._lock:
            self._entries[key] = CacheEntry(value=value, fetched_at=self.clock())
            del self._in_flight[key]
        future.set_result(value)

        logger.debug(f"Cached {'result' if value is not None else 'not-found'} for {key}")
        return value
