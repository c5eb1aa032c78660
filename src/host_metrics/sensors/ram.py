"""RAM usage source.

Reads ``/proc/meminfo`` and falls back to psutil's ``virtual_memory()``,
which is always available but coarser. Device classes whose profile sets
``prefer_os_memory_info`` skip the procfs read entirely.
"""

import threading
from collections.abc import Callable
from typing import Any

import psutil

from host_metrics.config.profiles import DeviceProfile
from host_metrics.device import DeviceSignals, DeviceSignalsProvider, static_signals
from host_metrics.sensors import paths
from host_metrics.sensors.cache import CacheEntry, Clock, monotonic_ms
from host_metrics.sensors.models import RamSnapshot
from host_metrics.sensors.reader import CounterReader
from host_metrics.sensors.result import Result, first_success
from host_metrics.telemetry import (
    RAM_INVALID_VALUES,
    RAM_SOURCE_FALLBACK,
    SENSOR_CACHE_HIT,
    SENSOR_READ_FAILED,
    SENSOR_STALE_SERVED,
    get_logger,
)

log = get_logger(__name__)

_MEMINFO_KEYS = ("MemTotal", "MemFree", "MemAvailable", "Buffers", "Cached", "SReclaimable", "Shmem")


def parse_meminfo(lines: list[str]) -> RamSnapshot | None:
    """Build a RAM snapshot from ``/proc/meminfo`` lines.

    When ``MemAvailable`` is missing (kernels before 3.14) it is derived as
    ``MemFree + Buffers + Cached + SReclaimable - Shmem``.

    Returns:
        Snapshot in bytes, or None if the values are missing or implausible.
    """
    values: dict[str, int] = {}
    for line in lines:
        key, sep, rest = line.partition(":")
        if not sep or key not in _MEMINFO_KEYS:
            continue
        fields = rest.split()
        if not fields:
            continue
        try:
            values[key] = int(fields[0])
        except ValueError:
            continue

    total_kb = values.get("MemTotal", 0)
    available_kb = values.get("MemAvailable", 0)
    if available_kb == 0:
        available_kb = (
            values.get("MemFree", 0)
            + values.get("Buffers", 0)
            + values.get("Cached", 0)
            + values.get("SReclaimable", 0)
            - values.get("Shmem", 0)
        )

    if total_kb <= 0 or available_kb < 0 or any(v < 0 for v in values.values()):
        log.warning(RAM_INVALID_VALUES, total_kb=total_kb, available_kb=available_kb)
        return None

    return RamSnapshot.from_total_and_available(total_kb * 1024, available_kb * 1024)


class RamSource:
    """Thread-safe RAM metrics source with a device-dependent cache window."""

    def __init__(
        self,
        reader: CounterReader,
        profile: DeviceProfile,
        signals_provider: DeviceSignalsProvider | None = None,
        *,
        meminfo_path: str = paths.PROC_MEMINFO,
        virtual_memory: Callable[[], Any] = psutil.virtual_memory,
        clock: Clock = monotonic_ms,
    ) -> None:
        self._reader = reader
        self._profile = profile
        self._signals_provider = signals_provider or static_signals(DeviceSignals())
        self._meminfo_path = meminfo_path
        self._virtual_memory = virtual_memory
        self._lock = threading.Lock()
        self._cache: CacheEntry[RamSnapshot] = CacheEntry(profile.ram_ttl_ms, clock)

    def sample(self) -> RamSnapshot:
        """Return the current RAM snapshot. Never raises."""
        with self._lock:
            try:
                self._cache.ttl_ms = self._ttl_ms(self._signals_provider())
                if self._cache.is_fresh():
                    log.debug(SENSOR_CACHE_HIT, source="ram")
                    return self._cache.value or RamSnapshot()

                result, failures = first_success(self._strategies())
                if not result.ok or result.value is None:
                    log.warning(
                        SENSOR_STALE_SERVED,
                        source="ram",
                        failures={f.strategy: f.error for f in failures},
                    )
                    return self._cache.value or RamSnapshot()
                if failures:
                    log.debug(RAM_SOURCE_FALLBACK, served_by=result.strategy)
                return self._cache.store(result.value)
            except Exception as e:
                log.error(
                    SENSOR_READ_FAILED,
                    source="ram",
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                return self._cache.value or RamSnapshot()

    def _ttl_ms(self, signals: DeviceSignals) -> int:
        if signals.should_use_power_saving():
            return self._profile.ram_power_saving_ttl_ms
        return self._profile.ram_ttl_ms

    def _strategies(self) -> list[Callable[[], Result[RamSnapshot]]]:
        if self._profile.prefer_os_memory_info:
            return [self._read_os_memory_info]
        return [self._read_meminfo, self._read_os_memory_info]

    def _read_meminfo(self) -> Result[RamSnapshot]:
        lines = self._reader.read_lines(self._meminfo_path)
        if not lines:
            return Result.failure(f"{self._meminfo_path} unreadable", "meminfo")
        snapshot = parse_meminfo(lines)
        if snapshot is None:
            return Result.failure("invalid meminfo values", "meminfo")
        return Result.success(snapshot, "meminfo")

    def _read_os_memory_info(self) -> Result[RamSnapshot]:
        memory = self._virtual_memory()
        if memory.total <= 0 or memory.available < 0:
            return Result.failure("invalid virtual_memory values", "os_memory_info")
        return Result.success(
            RamSnapshot.from_total_and_available(int(memory.total), int(memory.available)),
            "os_memory_info",
        )
