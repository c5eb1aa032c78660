"""Tests for CacheEntry TTL semantics."""

from host_metrics.sensors.cache import CacheEntry


class TestCacheEntry:
    """Freshness window and stale serving."""

    def test_empty_entry_is_not_fresh(self, clock) -> None:
        entry = CacheEntry(1000, clock)
        assert not entry.has_value
        assert not entry.is_fresh()

    def test_value_fresh_within_ttl(self, clock) -> None:
        entry = CacheEntry(1000, clock)
        entry.store(42)
        clock.advance(999)
        assert entry.is_fresh()
        clock.advance(1)
        assert not entry.is_fresh()

    def test_get_or_refresh_serves_fresh_value_without_refresh(self, clock) -> None:
        entry = CacheEntry(1000, clock)
        calls = []

        def refresh():
            calls.append(1)
            return len(calls)

        assert entry.get_or_refresh(refresh) == 1
        clock.advance(500)
        assert entry.get_or_refresh(refresh) == 1
        clock.advance(500)
        assert entry.get_or_refresh(refresh) == 2
        assert len(calls) == 2

    def test_failed_refresh_serves_stale_value_and_retries(self, clock) -> None:
        entry = CacheEntry(1000, clock)
        entry.store("old")
        clock.advance(2000)
        attempts = []

        def failing():
            attempts.append(1)
            return None

        assert entry.get_or_refresh(failing) == "old"
        assert entry.get_or_refresh(failing) == "old"
        assert len(attempts) == 2

    def test_hold_on_failure_restarts_window(self, clock) -> None:
        entry = CacheEntry(1000, clock)
        attempts = []

        def failing():
            attempts.append(1)
            return None

        assert entry.get_or_refresh(failing, hold_on_failure=True) is None
        clock.advance(500)
        assert entry.get_or_refresh(failing, hold_on_failure=True) is None
        assert len(attempts) == 1

    def test_invalidate(self, clock) -> None:
        entry = CacheEntry(1000, clock)
        entry.store(1)
        entry.invalidate()
        assert entry.value is None
        assert not entry.is_fresh()
