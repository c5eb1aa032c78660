"""Time-boxed cache entries shared by the sensor sources.

A ``CacheEntry`` is owned by exactly one source and is only touched while that
source holds its lock; it does no locking of its own.
"""

import time
from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")

Clock = Callable[[], int]


def monotonic_ms() -> int:
    """Milliseconds from a monotonic clock (immune to wall-clock jumps)."""
    return time.monotonic_ns() // 1_000_000


def wall_clock_ms() -> int:
    """Milliseconds since the Unix epoch."""
    return time.time_ns() // 1_000_000


class CacheEntry(Generic[T]):
    """A single cached value with a refresh timestamp and TTL.

    The entry is fresh while ``now - last_refreshed_ms < ttl_ms``. A value,
    once stored, is kept after expiry so callers can serve it when the
    real read fails.

    Attributes:
        value: Last stored value (None until the first store).
        last_refreshed_ms: Clock reading of the last store (None if never).
        ttl_ms: Freshness window in milliseconds.
    """

    def __init__(self, ttl_ms: int, clock: Clock = monotonic_ms) -> None:
        self.ttl_ms = ttl_ms
        self.value: T | None = None
        self.last_refreshed_ms: int | None = None
        self._clock = clock

    @property
    def has_value(self) -> bool:
        return self.last_refreshed_ms is not None

    def is_fresh(self, now_ms: int | None = None) -> bool:
        if self.last_refreshed_ms is None:
            return False
        now = self._clock() if now_ms is None else now_ms
        return now - self.last_refreshed_ms < self.ttl_ms

    def store(self, value: T, now_ms: int | None = None) -> T:
        self.value = value
        self.last_refreshed_ms = self._clock() if now_ms is None else now_ms
        return value

    def get_or_refresh(
        self,
        refresh: Callable[[], T | None],
        now_ms: int | None = None,
        hold_on_failure: bool = False,
    ) -> T | None:
        """Return the fresh value, or refresh it.

        ``refresh`` returns None to signal failure; the stale value (if any)
        is then returned. By default the timestamp is left untouched so the
        next call tries again; with ``hold_on_failure`` the failed attempt
        restarts the TTL window instead (for rarely-changing values where a
        missing counter should not be re-probed on every call).
        """
        now = self._clock() if now_ms is None else now_ms
        if self.is_fresh(now):
            return self.value
        fresh = refresh()
        if fresh is None:
            if hold_on_failure:
                self.last_refreshed_ms = now
            return self.value
        return self.store(fresh, now)

    def invalidate(self) -> None:
        self.value = None
        self.last_refreshed_ms = None
