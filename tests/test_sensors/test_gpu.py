"""Tests for GPU discovery, parsing and caching."""

from unittest.mock import MagicMock

import pytest

from host_metrics.device import DeviceClass, DeviceSignals, static_signals
from host_metrics.sensors.gpu import (
    GpuSource,
    GpuVendor,
    parse_gpu_memory,
    parse_gpu_usage,
    parse_temperature,
)

ADRENO = "/fake/kgsl/gpu_busy_percentage"
MALI = "/fake/mali0/utilization"
GENERIC = "/fake/gpu/utilization"
MEMORY = "/fake/kgsl/gpu_memory_usage"
THERMAL = "/fake/thermal_zone1/temp"

CANDIDATES = (
    (GpuVendor.QUALCOMM_ADRENO, (ADRENO,)),
    (GpuVendor.ARM_MALI, (MALI,)),
    (GpuVendor.GENERIC, (GENERIC,)),
)


def make_source(reader, profile, clock, signals=None, **overrides) -> GpuSource:
    options = dict(
        availability_ttl_ms=60_000,
        candidates=CANDIDATES,
        memory_paths=(MEMORY,),
        thermal_paths=(THERMAL,),
        clock=clock,
    )
    options.update(overrides)
    return GpuSource(reader, profile, signals or static_signals(DeviceSignals()), **options)


class TestParsing:
    """Utilization value formats."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("75 25", 75.0),
            ("42", 42.0),
            ("42%", 42.0),
            ("  17 %\n", 17.0),
            ("busy: 75", 75.0),
            ("150", 100.0),
            ("0 0", 0.0),
        ],
    )
    def test_parse_gpu_usage(self, raw: str, expected: float) -> None:
        assert parse_gpu_usage(raw) == pytest.approx(expected)

    @pytest.mark.parametrize("raw", [None, "", "   ", "n/a"])
    def test_unparseable_usage(self, raw) -> None:
        assert parse_gpu_usage(raw) is None

    def test_parse_memory_pair(self) -> None:
        assert parse_gpu_memory("1048576 4194304") == (1048576, 4194304)
        assert parse_gpu_memory("2048") == (2048, 0)
        assert parse_gpu_memory("x y") is None

    def test_parse_temperature_millidegrees(self) -> None:
        assert parse_temperature("52000") == pytest.approx(52.0)
        assert parse_temperature("48") == pytest.approx(48.0)
        assert parse_temperature("hot") is None


class TestDiscovery:
    """Vendor-ordered, one-time discovery."""

    def test_prefers_adreno_over_mali(self, fake_reader, desktop_profile, clock) -> None:
        fake_reader.files.update({ADRENO: "30", MALI: "60"})
        source = make_source(fake_reader, desktop_profile, clock)
        assert source.vendor() is GpuVendor.QUALCOMM_ADRENO
        assert source.sample().usage_percent == pytest.approx(30.0)

    def test_falls_through_to_mali(self, fake_reader, desktop_profile, clock) -> None:
        fake_reader.files[MALI] = "60"
        source = make_source(fake_reader, desktop_profile, clock)
        assert source.is_available()
        assert source.vendor() is GpuVendor.ARM_MALI

    def test_discovery_runs_once(self, fake_reader, desktop_profile, clock) -> None:
        fake_reader.files[MALI] = "60"
        source = make_source(fake_reader, desktop_profile, clock)

        source.is_available()
        clock.advance(60_000)
        source.is_available()
        source.sample()
        source.vendor()

        assert fake_reader.read_count(ADRENO) == 1

    def test_no_gpu(self, fake_reader, desktop_profile, clock) -> None:
        source = make_source(fake_reader, desktop_profile, clock)
        snapshot = source.sample()
        assert not source.is_available()
        assert source.vendor() is GpuVendor.UNKNOWN
        assert not snapshot.is_available
        assert snapshot.usage_percent == 0.0
        assert snapshot.memory_total_bytes == 0


class TestAvailability:
    """Availability probe TTL."""

    def test_cached_within_ttl_then_reprobed(self, fake_reader, desktop_profile, clock) -> None:
        fake_reader.files[ADRENO] = "30"
        source = make_source(fake_reader, desktop_profile, clock)
        assert source.is_available()

        del fake_reader.files[ADRENO]
        clock.advance(59_999)
        assert source.is_available()
        clock.advance(1)
        assert not source.is_available()


class TestSampling:
    """Metrics, best-effort extras and the metrics TTL."""

    def test_full_snapshot(self, fake_reader, desktop_profile, clock) -> None:
        fake_reader.files.update({ADRENO: "75 25", MEMORY: "1048576 4194304", THERMAL: "52000"})
        snapshot = make_source(fake_reader, desktop_profile, clock).sample()
        assert snapshot.is_available
        assert snapshot.usage_percent == pytest.approx(75.0)
        assert snapshot.memory_used_bytes == 1048576
        assert snapshot.memory_total_bytes == 4194304
        assert snapshot.temperature_c == pytest.approx(52.0)

    def test_extras_read_in_one_batch_first_parseable_wins(
        self, fake_reader, desktop_profile, clock
    ) -> None:
        fallback_memory = "/fake/mali0/memory"
        fake_reader.files.update(
            {ADRENO: "40", MEMORY: "garbage", fallback_memory: "2048 8192", THERMAL: "61"}
        )
        fake_reader.read_many = MagicMock(wraps=fake_reader.read_many)
        source = make_source(
            fake_reader, desktop_profile, clock, memory_paths=(MEMORY, fallback_memory)
        )

        snapshot = source.sample()

        fake_reader.read_many.assert_called_once_with((MEMORY, fallback_memory, THERMAL))
        assert (snapshot.memory_used_bytes, snapshot.memory_total_bytes) == (2048, 8192)
        assert snapshot.temperature_c == pytest.approx(61.0)

    def test_usage_alone_makes_gpu_available(self, fake_reader, desktop_profile, clock) -> None:
        fake_reader.files[ADRENO] = "10"
        snapshot = make_source(fake_reader, desktop_profile, clock).sample()
        assert snapshot.is_available
        assert snapshot.memory_used_bytes == 0
        assert snapshot.temperature_c is None

    def test_metrics_cached_for_profile_ttl(self, fake_reader, desktop_profile, clock) -> None:
        fake_reader.files[ADRENO] = "10"
        source = make_source(fake_reader, desktop_profile, clock)
        source.sample()

        fake_reader.files[ADRENO] = "90"
        clock.advance(1999)
        assert source.sample().usage_percent == pytest.approx(10.0)
        clock.advance(1)
        assert source.sample().usage_percent == pytest.approx(90.0)

    def test_power_saving_widens_ttl(self, fake_reader, desktop_profile, clock) -> None:
        signals = static_signals(DeviceSignals(on_battery=True, battery_percent=10))
        fake_reader.files[ADRENO] = "10"
        source = make_source(fake_reader, desktop_profile, clock, signals=signals)
        source.sample()

        fake_reader.files[ADRENO] = "90"
        clock.advance(4999)
        assert source.sample().usage_percent == pytest.approx(10.0)
        clock.advance(1)
        assert source.sample().usage_percent == pytest.approx(90.0)

    def test_tv_uses_wide_ttl(self, fake_reader, desktop_profile, clock) -> None:
        signals = static_signals(DeviceSignals(device_class=DeviceClass.TV))
        fake_reader.files[ADRENO] = "10"
        source = make_source(fake_reader, desktop_profile, clock, signals=signals)
        source.sample()
        fake_reader.files[ADRENO] = "90"
        clock.advance(3000)
        assert source.sample().usage_percent == pytest.approx(10.0)

    def test_lost_path_reports_unavailable(self, fake_reader, desktop_profile, clock) -> None:
        fake_reader.files[ADRENO] = "10"
        source = make_source(fake_reader, desktop_profile, clock)
        assert source.is_available()
        assert source.sample().is_available

        del fake_reader.files[ADRENO]
        clock.advance(2000)
        assert not source.sample().is_available
        assert not source.is_available()

    def test_signal_provider_error_never_raises(self, fake_reader, desktop_profile, clock) -> None:
        def broken():
            raise RuntimeError("no battery service")

        fake_reader.files[ADRENO] = "10"
        source = make_source(fake_reader, desktop_profile, clock, signals=broken)
        assert source.sample().is_available is False
