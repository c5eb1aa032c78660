"""Shared fixtures for sensor source tests."""

from collections.abc import Iterable

import pytest

from host_metrics.config.profiles import DeviceProfile


class FakeCounterReader:
    """Counter reader backed by a dict of path -> content.

    A list value is consumed one element per read; its last element is then
    repeated. Missing paths read as None, like an unreadable counter.
    """

    name = "fake"

    def __init__(self, files: dict | None = None) -> None:
        self.files = dict(files or {})
        self.reads: list[str] = []

    def read_text(self, path: str) -> str | None:
        self.reads.append(path)
        value = self.files.get(path)
        if isinstance(value, list):
            if len(value) > 1:
                return value.pop(0)
            return value[0] if value else None
        return value

    def read_many(self, paths: Iterable[str]) -> dict[str, str | None]:
        return {path: self.read_text(path) for path in paths}

    def read_lines(self, path: str) -> list[str] | None:
        text = self.read_text(path)
        if text is None:
            return None
        return [line for line in text.splitlines() if line.strip()]

    def read_count(self, path: str) -> int:
        return self.reads.count(path)


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start_ms: int = 1_000_000) -> None:
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


@pytest.fixture
def fake_reader() -> FakeCounterReader:
    return FakeCounterReader()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def desktop_profile() -> DeviceProfile:
    return DeviceProfile(
        initial_interval_ms=800,
        fast_interval_ms=800,
        slow_interval_ms=2000,
        ram_ttl_ms=500,
        ram_power_saving_ttl_ms=2000,
        gpu_ttl_ms=2000,
        gpu_power_saving_ttl_ms=5000,
        prefer_os_memory_info=False,
    )
