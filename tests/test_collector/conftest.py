"""Shared fixtures for aggregator and poll controller tests."""

from unittest.mock import MagicMock

import pytest

from host_metrics.collector.aggregator import MetricsAggregator
from host_metrics.config.profiles import DeviceProfile
from host_metrics.config.settings import AppConfig
from host_metrics.device import DeviceSignals
from host_metrics.sensors.models import (
    CpuSnapshot,
    GpuSnapshot,
    ProcessRanking,
    ProcessRecord,
    RamSnapshot,
)

GB = 1024**3


class MutableSignals:
    """Signals provider whose state tests can change between calls."""

    def __init__(self, signals: DeviceSignals | None = None) -> None:
        self.signals = signals or DeviceSignals()

    def __call__(self) -> DeviceSignals:
        return self.signals


@pytest.fixture
def signals() -> MutableSignals:
    return MutableSignals()


@pytest.fixture
def fast_profile() -> DeviceProfile:
    """Profile with short intervals so streams tick quickly under test."""
    return DeviceProfile(
        initial_interval_ms=20,
        fast_interval_ms=10,
        slow_interval_ms=40,
        ram_ttl_ms=0,
        ram_power_saving_ttl_ms=0,
        gpu_ttl_ms=0,
        gpu_power_saving_ttl_ms=0,
    )


@pytest.fixture
def make_settings():
    def factory(**overrides) -> AppConfig:
        options = dict(
            poll_interval_ms=10,
            min_poll_interval_ms=5,
            max_poll_interval_ms=10_000,
            adaptive_polling="never",
            adaptive_initial_delay_seconds=0.0,
            adaptive_check_interval_seconds=0.01,
            adaptive_backoff_seconds=0.01,
        )
        options.update(overrides)
        return AppConfig(**options)

    return factory


@pytest.fixture
def sources():
    cpu = MagicMock()
    cpu.sample.return_value = CpuSnapshot(overall_usage_percent=20.0, core_usage_percent=(10.0, 30.0))
    cpu.is_high_load.return_value = False
    gpu = MagicMock()
    gpu.sample.return_value = GpuSnapshot(usage_percent=40.0, is_available=True)
    gpu.is_available.return_value = True
    ram = MagicMock()
    ram.sample.return_value = RamSnapshot.from_total_and_available(8 * GB, 4 * GB)
    processes = MagicMock()
    processes.top_by_memory.return_value = ProcessRanking(
        processes=(ProcessRecord("firefox", "Firefox", 900, 3.0, 11),),
        total_observed_count=1,
    )
    return cpu, gpu, ram, processes


@pytest.fixture
def aggregator(sources, signals, fast_profile) -> MetricsAggregator:
    cpu, gpu, ram, processes = sources
    return MetricsAggregator(
        cpu,
        gpu,
        ram,
        processes,
        signals_provider=signals,
        device_profile=fast_profile,
        top_process_count=5,
        wall_clock=lambda: 1_700_000_000_000,
    )
