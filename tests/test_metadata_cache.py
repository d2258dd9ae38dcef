"""
Unit tests for the stale-while-revalidate MetadataCache.
"""

import threading
from unittest.mock import Mock, patch

import pytest

from metadata_cache import (
    STATUS_DISABLED,
    STATUS_FETCHED,
    STATUS_FRESH,
    STATUS_STALE,
    MetadataCache,
)
from spotify_client import SpotifyAuthError, SpotifyLookupError
from conftest import DAY, HOUR


@pytest.fixture
def cache(clock):
    return MetadataCache(clock=clock)


class TestFreshnessPolicy:

    def test_first_read_fetches(self, cache):
        fetch = Mock(return_value='v1')
        result = cache.get('k', fetch)

        assert result.value == 'v1'
        assert result.status == STATUS_FETCHED
        assert fetch.call_count == 1

    def test_fresh_read_does_not_refetch(self, cache, clock):
        fetch = Mock(return_value='v1')
        cache.get('k', fetch)

        clock.advance(23 * HOUR)
        result = cache.get('k', fetch)

        assert result.status == STATUS_FRESH
        assert result.value == 'v1'
        assert fetch.call_count == 1

    def test_stale_read_serves_cached_value_and_refreshes(self, cache, clock):
        fetch = Mock(side_effect=['v1', 'v2'])
        cache.get('k', fetch)

        clock.advance(30 * HOUR)
        result = cache.get('k', fetch)
        assert result.status == STATUS_STALE
        assert result.value == 'v1'

        cache.wait_for_refreshes(2)
        assert fetch.call_count == 2

        refreshed = cache.get('k', fetch)
        assert refreshed.status == STATUS_FRESH
        assert refreshed.value == 'v2'

    def test_expired_entry_fetched_synchronously(self, cache, clock):
        fetch = Mock(side_effect=['v1', 'v2'])
        cache.get('k', fetch)

        clock.advance(8 * DAY)
        result = cache.get('k', fetch)

        assert result.status == STATUS_FETCHED
        assert result.value == 'v2'
        assert fetch.call_count == 2
        assert cache.stats['evictions'] == 1

    def test_custom_windows(self, clock):
        cache = MetadataCache(freshness_window=10, retention_window=20, clock=clock)
        fetch = Mock(return_value='v')
        cache.get('k', fetch)

        clock.advance(15)
        assert cache.get('k', fetch).status == STATUS_STALE
        cache.wait_for_refreshes(2)

        clock.advance(21)
        assert cache.get('k', fetch).status == STATUS_FETCHED

    def test_retention_shorter_than_freshness_rejected(self):
        with pytest.raises(ValueError):
            MetadataCache(freshness_window=100, retention_window=10)


class TestDisabledLookups:

    def test_disabled_never_fetches(self, cache):
        fetch = Mock()
        result = cache.get('k', fetch, enabled=False)

        assert result.status == STATUS_DISABLED
        assert result.value is None
        assert not result.found
        fetch.assert_not_called()


class TestErrorDowngrade:
    """Spotify failures turn into a cached 'no metadata' entry."""

    @pytest.mark.parametrize('error', [SpotifyAuthError('bad creds'), SpotifyLookupError('503')])
    def test_failure_cached_as_none(self, cache, error):
        fetch = Mock(side_effect=error)

        first = cache.get('k', fetch)
        second = cache.get('k', fetch)

        assert first.value is None
        assert first.status == STATUS_FETCHED
        assert second.status == STATUS_FRESH
        assert fetch.call_count == 1
        assert cache.stats['errors'] == 1

    def test_failure_retried_once_stale(self, cache, clock):
        fetch = Mock(side_effect=[SpotifyLookupError('down'), 'recovered'])
        cache.get('k', fetch)

        clock.advance(25 * HOUR)
        assert cache.get('k', fetch).value is None
        cache.wait_for_refreshes(2)

        assert cache.get('k', fetch).value == 'recovered'

    def test_unexpected_errors_propagate(self, cache):
        with pytest.raises(ZeroDivisionError):
            cache.get('k', Mock(side_effect=ZeroDivisionError))

    def test_background_failure_keeps_existing_entry(self, cache, clock):
        fetch = Mock(side_effect=['v1', SpotifyLookupError('down')])
        cache.get('k', fetch)

        clock.advance(30 * HOUR)
        cache.get('k', fetch)
        cache.wait_for_refreshes(2)

        result = cache.get('k', fetch)
        assert result.value == 'v1'
        assert result.status == STATUS_STALE
        cache.wait_for_refreshes(2)


class TestBackgroundRefresh:

    def test_one_refresh_per_key(self, cache, clock):
        release = threading.Event()
        calls = []

        def fetch():
            calls.append(1)
            if len(calls) > 1:
                release.wait(2)
            return f'v{len(calls)}'

        cache.get('k', fetch)
        clock.advance(30 * HOUR)

        cache.get('k', fetch)
        cache.get('k', fetch)
        release.set()
        cache.wait_for_refreshes(2)

        assert len(calls) == 2
        assert cache.stats['background_refreshes'] == 1

    def test_invalidate_and_clear(self, cache):
        fetch = Mock(return_value='v')
        cache.get('a', fetch)
        cache.get('b', fetch)

        cache.invalidate('a')
        assert len(cache) == 1
        cache.clear()
        assert len(cache) == 0

    def test_refresh_thread_started_before_it_is_visible(self, cache, clock):
        started_under_lock = []
        real_thread = threading.Thread

        class RecordingThread(real_thread):
            def start(self):
                started_under_lock.append(cache._lock.locked())
                super().start()

        cache.get('k', Mock(return_value='v1'))
        clock.advance(30 * HOUR)
        with patch('metadata_cache.threading.Thread', RecordingThread):
            cache.get('k', Mock(return_value='v2'))
        cache.wait_for_refreshes(2)

        assert started_under_lock == [True]

    def test_wait_right_after_stale_reads(self, cache, clock):
        errors = []

        for i in range(20):
            cache.get(f'k{i}', Mock(return_value='old'))
        clock.advance(30 * HOUR)

        def reader(i):
            try:
                cache.get(f'k{i}', Mock(return_value='new'))
                cache.wait_for_refreshes(2)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=reader, args=(i,)) for i in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        cache.wait_for_refreshes(2)

        assert errors == []
        assert cache.stats['background_refreshes'] == 20
        assert cache.get('k0', Mock()).value == 'new'


class TestStats:

    def test_hit_counts_exact_under_concurrency(self, cache):
        cache.get('k', Mock(return_value='v'))

        def reader():
            for _ in range(100):
                cache.get('k', Mock())

        threads = [threading.Thread(target=reader) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert cache.stats['fresh_hits'] == 800
        assert cache.stats['fetches'] == 1
