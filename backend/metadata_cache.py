"""
Stale-While-Revalidate Metadata Cache

Consumer-facing caching policy for metadata lookups:

- Younger than the freshness window (24h): served as-is
- Between freshness and retention (7 days): served immediately, refreshed
  in a background thread
- Older than the retention window, or missing: fetched synchronously

Spotify failures never reach the caller. They are logged and stored as a
"no metadata" (None) entry, which gets retried once it goes stale.
"""

import time
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from resolution_cache import CacheEntry
from spotify_client import SpotifyError

logger = logging.getLogger(__name__)

FRESHNESS_WINDOW = 60 * 60 * 24       # 24 hours
RETENTION_WINDOW = 60 * 60 * 24 * 7   # 7 days

STATUS_FRESH = 'fresh'
STATUS_STALE = 'stale'
STATUS_FETCHED = 'fetched'
STATUS_DISABLED = 'disabled'


@dataclass(frozen=True)
class LookupResult:
    """
    Outcome of a cache read

    status is one of fresh, stale (background refresh scheduled),
    fetched (looked up synchronously) or disabled (nothing to look up).
    """
    value: Any
    status: str
    fetched_at: Optional[float] = None

    @property
    def found(self) -> bool:
        return self.value is not None


class MetadataCache:
    """Time-bounded cache that revalidates stale entries in the background"""

    def __init__(self, freshness_window=FRESHNESS_WINDOW, retention_window=RETENTION_WINDOW,
                 clock=time.time):
        if retention_window < freshness_window:
            raise ValueError("retention_window must be at least freshness_window")

        self.freshness_window = freshness_window
        self.retention_window = retention_window
        self.clock = clock

        self._entries = {}
        self._refreshing = {}
        self._lock = threading.Lock()

        self.stats = {
            'fresh_hits': 0,
            'stale_hits': 0,
            'fetches': 0,
            'evictions': 0,
            'background_refreshes': 0,
            'errors': 0
        }

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def get(self, key: str, fetch_fn: Callable[[], Any], enabled: bool = True) -> LookupResult:
        """
        Return the best known value for key

        Args:
            key: Normalized cache key
            fetch_fn: Zero-argument callable returning the value (or None)
            enabled: False when the query has an empty component; nothing is
                fetched and a disabled result is returned

        Returns:
            LookupResult with the value and how it was obtained
        """
        if not enabled:
            return LookupResult(value=None, status=STATUS_DISABLED)

        now = self.clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and now - entry.fetched_at > self.retention_window:
                del self._entries[key]
                self.stats['evictions'] += 1
                logger.debug(f"Evicted expired entry for {key}")
                entry = None

            if entry is not None:
                fresh = now - entry.fetched_at < self.freshness_window
                self.stats['fresh_hits' if fresh else 'stale_hits'] += 1

        if entry is None:
            entry = self._fetch(key, fetch_fn)
            return LookupResult(value=entry.value, status=STATUS_FETCHED, fetched_at=entry.fetched_at)

        if fresh:
            return LookupResult(value=entry.value, status=STATUS_FRESH, fetched_at=entry.fetched_at)

        self._schedule_refresh(key, fetch_fn)
        return LookupResult(value=entry.value, status=STATUS_STALE, fetched_at=entry.fetched_at)

    def _count(self, name):
        with self._lock:
            self.stats[name] += 1

    def _fetch(self, key: str, fetch_fn: Callable[[], Any]) -> CacheEntry:
        """Fetch synchronously, downgrading Spotify failures to a cached None"""
        self._count('fetches')
        try:
            value = fetch_fn()
        except SpotifyError as e:
            self._count('errors')
            logger.warning(f"Metadata lookup failed for {key}, caching as unavailable: {e}")
            value = None

        entry = CacheEntry(value=value, fetched_at=self.clock())
        with self._lock:
            self._entries[key] = entry
        return entry

    def _schedule_refresh(self, key: str, fetch_fn: Callable[[], Any]):
        # Registered and started under one lock, so wait_for_refreshes never
        # sees a thread that has not been started yet
        with self._lock:
            if key in self._refreshing:
                return
            thread = threading.Thread(
                target=self._refresh,
                args=(key, fetch_fn),
                name=f"metadata-refresh-{key}",
                daemon=True
            )
            self._refreshing[key] = thread
            self.stats['background_refreshes'] += 1
            logger.debug(f"Scheduling background refresh for {key}")
            thread.start()

    def _refresh(self, key: str, fetch_fn: Callable[[], Any]):
        """Background worker: replace the entry on success, keep it otherwise"""
        try:
            value = fetch_fn()
            with self._lock:
                self._entries[key] = CacheEntry(value=value, fetched_at=self.clock())
            logger.debug(f"Background refresh complete for {key}")
        except Exception as e:
            self._count('errors')
            logger.warning(f"Background refresh failed for {key}: {e}")
        finally:
            with self._lock:
                self._refreshing.pop(key, None)

    def wait_for_refreshes(self, timeout: Optional[float] = None):
        """Block until background refreshes started so far have finished"""
        with self._lock:
            threads = list(self._refreshing.values())
        for thread in threads:
            thread.join(timeout)

    def invalidate(self, key: str):
        with self._lock:
            self._entries.pop(key, None)

    def clear(self):
        with self._lock:
            self._entries.clear()
