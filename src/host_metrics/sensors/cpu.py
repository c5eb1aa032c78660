"""CPU utilization source.

Computes overall and per-core usage from successive ``/proc/stat`` snapshots.
Each stat line yields (total, idle) ticks, where idle is the fourth numeric
field and total is the sum of every numeric field after the label. Usage for
a line is ``(Δtotal - Δidle) / Δtotal * 100`` against the previous reading of
that same line.

When no read strategy can produce counters (restrictive platform policy,
missing procfs) the source walks an estimation ladder instead: load average,
then memory pressure, then a low slowly-varying constant. Estimated per-core
values are synthesized from the scalar estimate and carry no real signal.
"""

import os
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import psutil

from host_metrics.sensors import paths
from host_metrics.sensors.cache import CacheEntry, Clock, monotonic_ms, wall_clock_ms
from host_metrics.sensors.models import CpuSnapshot, clamp_percent
from host_metrics.sensors.reader import CounterReader, PortableCounterReader
from host_metrics.sensors.result import Result, first_success
from host_metrics.telemetry import (
    CPU_BASELINE_INITIALIZED,
    CPU_CORES_DETECTED,
    CPU_FALLBACK_USED,
    CPU_HIGH_LOAD,
    SENSOR_READ_FAILED,
    get_logger,
)

log = get_logger(__name__)

DEFAULT_HIGH_LOAD_THRESHOLD = 80.0
DEFAULT_HIGH_LOAD_SAMPLES = 3
DEFAULT_FIRST_READ_DELAY_SECONDS = 0.1
DEFAULT_STATIC_INFO_TTL_MS = 30_000


def _clock_ticks_per_second() -> int:
    try:
        ticks = os.sysconf("SC_CLK_TCK")
    except (AttributeError, ValueError, OSError):
        return 100
    return ticks if ticks > 0 else 100


@dataclass(frozen=True)
class LineCounters:
    """Cumulative (total, idle) ticks of one stat line."""

    total: int
    idle: int


@dataclass
class StatCounters:
    """Counters of one full read: the aggregate line plus cores by index."""

    aggregate: LineCounters
    cores: dict[int, LineCounters] = field(default_factory=dict)


def parse_stat_line(line: str) -> tuple[str, LineCounters] | None:
    """Parse a ``cpu``/``cpuN`` line into its label and counters.

    Returns:
        (label, counters), or None when the line is not a well-formed CPU line.
    """
    parts = line.split()
    if not parts or not parts[0].startswith("cpu"):
        return None
    try:
        values = [int(p) for p in parts[1:]]
    except ValueError:
        return None
    if len(values) < 4:
        return None
    return parts[0], LineCounters(total=sum(values), idle=values[3])


def parse_stat_lines(lines: list[str]) -> StatCounters | None:
    """Parse ``/proc/stat`` lines. Returns None if the aggregate line is missing."""
    aggregate: LineCounters | None = None
    cores: dict[int, LineCounters] = {}
    for line in lines:
        parsed = parse_stat_line(line)
        if parsed is None:
            continue
        label, counters = parsed
        if label == "cpu":
            aggregate = counters
        elif label[3:].isdigit():
            cores[int(label[3:])] = counters
    if aggregate is None:
        return None
    return StatCounters(aggregate=aggregate, cores=cores)


def usage_between(previous: LineCounters | None, current: LineCounters) -> float:
    """Usage percentage between two readings of the same line.

    No previous reading or a non-positive total delta yields 0.
    """
    if previous is None:
        return 0.0
    delta_total = current.total - previous.total
    delta_idle = current.idle - previous.idle
    if delta_total <= 0:
        return 0.0
    return clamp_percent((delta_total - delta_idle) / delta_total * 100.0)


def synthesize_core_usages(core_count: int, estimate: float) -> tuple[float, ...]:
    """Spread a scalar estimate over cores with a bounded deterministic offset."""
    return tuple(
        clamp_percent(estimate + ((index * 13) % 20) - 10) for index in range(core_count)
    )


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


class CpuSource:
    """Thread-safe CPU metrics source.

    Owns the per-line counter baselines, the frequency/temperature caches and
    the sustained-high-load counter. One lock guards all of them for the
    whole read-compute-update sequence.

    Usage:
        >>> source = CpuSource(select_counter_reader())
        >>> snapshot = source.sample()
        >>> snapshot.overall_usage_percent
        12.5
    """

    def __init__(
        self,
        reader: CounterReader,
        *,
        high_load_threshold: float = DEFAULT_HIGH_LOAD_THRESHOLD,
        high_load_samples: int = DEFAULT_HIGH_LOAD_SAMPLES,
        first_read_delay_seconds: float = DEFAULT_FIRST_READ_DELAY_SECONDS,
        static_info_ttl_ms: int = DEFAULT_STATIC_INFO_TTL_MS,
        stat_path: str = paths.PROC_STAT,
        loadavg_path: str = paths.PROC_LOADAVG,
        frequency_path: str | None = None,
        thermal_paths: tuple[str, ...] = paths.CPU_THERMAL_PATHS,
        cpu_times: Callable[..., Any] | None = psutil.cpu_times,
        memory_info: Callable[[], Any] = psutil.virtual_memory,
        logical_cpu_count: Callable[[], int | None] = os.cpu_count,
        clock: Clock = monotonic_ms,
        wall_clock: Clock = wall_clock_ms,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the CPU source.

        Args:
            reader: Counter reader used for the primary read strategy.
            high_load_threshold: Overall usage counted as "high".
            high_load_samples: High samples that must be exceeded for sustained load.
            first_read_delay_seconds: Pause between the two reads of the first sample.
            static_info_ttl_ms: TTL of the frequency and temperature caches.
            stat_path: System-wide CPU statistics file.
            loadavg_path: Load average file used by the first estimation step.
            frequency_path: Current-frequency file (kHz); core 0 by default.
            thermal_paths: Candidate temperature files in priority order.
            cpu_times: psutil-compatible ``cpu_times``; None disables that strategy.
            memory_info: psutil-compatible ``virtual_memory`` for the pressure estimate.
            logical_cpu_count: Fallback core count provider.
            clock: Monotonic millisecond clock for caches.
            wall_clock: Wall-clock milliseconds, used to step synthetic variance.
            sleep: Sleep function (injected by tests).
        """
        self._reader = reader
        self._portable_reader = PortableCounterReader()
        self._high_load_threshold = high_load_threshold
        self._high_load_samples = high_load_samples
        self._first_read_delay_seconds = first_read_delay_seconds
        self._stat_path = stat_path
        self._loadavg_path = loadavg_path
        self._frequency_path = frequency_path or paths.cpu_frequency_path(0)
        self._thermal_paths = thermal_paths
        self._cpu_times = cpu_times
        self._memory_info = memory_info
        self._logical_cpu_count = logical_cpu_count
        self._wall_clock = wall_clock
        self._sleep = sleep
        self._ticks_per_second = _clock_ticks_per_second()

        self._lock = threading.Lock()
        self._aggregate_baseline: LineCounters | None = None
        self._core_baselines: dict[int, LineCounters] = {}
        self._core_count: int | None = None
        self._last_snapshot: CpuSnapshot | None = None
        self._consecutive_high = 0
        self._frequency: CacheEntry[int] = CacheEntry(static_info_ttl_ms, clock)
        self._temperature: CacheEntry[float] = CacheEntry(static_info_ttl_ms, clock)
        self.last_error: str | None = None

    # ------------------------------------------------------------------ public

    def sample(self) -> CpuSnapshot:
        """Return the current CPU snapshot. Never raises."""
        with self._lock:
            try:
                snapshot = self._sample_locked()
            except Exception as e:
                self.last_error = f"{type(e).__name__}: {e}"
                log.error(
                    SENSOR_READ_FAILED,
                    source="cpu",
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                return self._last_snapshot or CpuSnapshot()
            self._last_snapshot = snapshot
            return snapshot

    def is_high_load(self) -> bool:
        """True once usage exceeded the threshold on more than N consecutive samples."""
        return self._consecutive_high > self._high_load_samples

    def core_count(self) -> int:
        """Number of cores; fixed by the first snapshot."""
        if self._core_count is not None:
            return self._core_count
        return max(1, self._logical_cpu_count() or 1)

    # ---------------------------------------------------------------- sampling

    def _sample_locked(self) -> CpuSnapshot:
        counters = self._read_counters()
        if counters is None:
            return self._track(self._estimate_snapshot())

        if self._aggregate_baseline is None:
            self._store_baseline(counters)
            log.info(
                CPU_BASELINE_INITIALIZED,
                cores=len(counters.cores),
                total=counters.aggregate.total,
                idle=counters.aggregate.idle,
            )
            # Never report a percentage from a single counter sample
            self._sleep(self._first_read_delay_seconds)
            counters = self._read_counters()
            if counters is None:
                return self._track(self._estimate_snapshot())

        self._fix_core_count(max(counters.cores) + 1 if counters.cores else None)

        overall = usage_between(self._aggregate_baseline, counters.aggregate)
        cores = []
        for index in range(self._core_count):
            current = counters.cores.get(index)
            if current is None:
                # offline core: keep the sequence length stable
                cores.append(0.0)
                continue
            cores.append(usage_between(self._core_baselines.get(index), current))
        self._store_baseline(counters)

        snapshot = CpuSnapshot(
            overall_usage_percent=overall,
            core_usage_percent=tuple(cores),
            frequency_hz=self._frequency.get_or_refresh(self._read_frequency, hold_on_failure=True)
            or 0,
            temperature_c=self._temperature.get_or_refresh(
                self._read_temperature, hold_on_failure=True
            ),
        )
        return self._track(snapshot)

    def _fix_core_count(self, detected: int | None) -> int:
        """Fix the core count on the first snapshot, real or estimated.

        Cores are indexed by kernel core number, so a core missing from the
        statistics (hotplugged offline) still occupies its slot.
        """
        if self._core_count is None:
            self._core_count = detected or self.core_count()
            log.info(CPU_CORES_DETECTED, cores=self._core_count)
        return self._core_count

    def _store_baseline(self, counters: StatCounters) -> None:
        self._aggregate_baseline = counters.aggregate
        self._core_baselines.update(counters.cores)

    def _track(self, snapshot: CpuSnapshot) -> CpuSnapshot:
        was_high = self.is_high_load()
        if snapshot.overall_usage_percent > self._high_load_threshold:
            self._consecutive_high += 1
        else:
            self._consecutive_high = 0
        if self.is_high_load() and not was_high:
            log.info(
                CPU_HIGH_LOAD,
                usage=round(snapshot.overall_usage_percent, 1),
                consecutive_samples=self._consecutive_high,
            )
        return snapshot

    # ----------------------------------------------------------- read ladder

    def _read_counters(self) -> StatCounters | None:
        strategies = [self._read_with_reader, self._read_with_portable_reader]
        if self._cpu_times is not None:
            strategies.append(self._read_with_psutil)
        result, failures = first_success(strategies)
        if failures:
            log.debug(
                "cpu_read_strategies_failed",
                failures={f.strategy: f.error for f in failures},
                served_by=result.strategy if result.ok else None,
            )
        return result.value if result.ok else None

    def _parse(self, lines: list[str] | None, strategy: str) -> Result[StatCounters]:
        if not lines:
            return Result.failure(f"{self._stat_path} unreadable", strategy)
        counters = parse_stat_lines(lines)
        if counters is None:
            return Result.failure("no aggregate cpu line", strategy)
        return Result.success(counters, strategy)

    def _read_with_reader(self) -> Result[StatCounters]:
        return self._parse(self._reader.read_lines(self._stat_path), self._reader.name)

    def _read_with_portable_reader(self) -> Result[StatCounters]:
        return self._parse(self._portable_reader.read_lines(self._stat_path), "portable")

    def _read_with_psutil(self) -> Result[StatCounters]:
        assert self._cpu_times is not None
        try:
            aggregate = self._cpu_times()
            per_core = self._cpu_times(percpu=True)
        except (OSError, RuntimeError, psutil.Error) as e:
            return Result.failure(f"{type(e).__name__}: {e}", "psutil")

        def to_counters(times: Any) -> LineCounters:
            # psutil reports seconds; scale back to clock ticks like /proc/stat
            ticks = [int(round(v * self._ticks_per_second)) for v in times]
            return LineCounters(
                total=sum(ticks), idle=int(round(times.idle * self._ticks_per_second))
            )

        return Result.success(
            StatCounters(
                aggregate=to_counters(aggregate),
                cores={i: to_counters(t) for i, t in enumerate(per_core)},
            ),
            "psutil",
        )

    # ------------------------------------------------------- estimation ladder

    def _estimate_snapshot(self) -> CpuSnapshot:
        result, _ = first_success(
            [
                self._estimate_from_load_average,
                self._estimate_from_memory_pressure,
                self._estimate_constant,
            ]
        )
        estimate = result.value if result.ok and result.value is not None else 15.0
        log.info(CPU_FALLBACK_USED, method=result.strategy, usage=round(estimate, 1))
        return CpuSnapshot(
            overall_usage_percent=clamp_percent(estimate),
            core_usage_percent=synthesize_core_usages(self._fix_core_count(None), estimate),
            frequency_hz=0,
            temperature_c=None,
        )

    def _estimate_from_load_average(self) -> Result[float]:
        text = self._reader.read_text(self._loadavg_path)
        if not text or not text.split():
            return Result.failure("loadavg unreadable", "loadavg")
        try:
            load_1min = float(text.split()[0])
        except ValueError:
            return Result.failure("loadavg malformed", "loadavg")
        if load_1min < 0:
            return Result.failure("negative load average", "loadavg")
        estimate = load_1min / self.core_count() * 100.0
        return Result.success(_clamp(estimate, 5.0, 100.0), "loadavg")

    def _estimate_from_memory_pressure(self) -> Result[float]:
        memory = self._memory_info()
        total = getattr(memory, "total", 0)
        available = getattr(memory, "available", 0)
        pressure = (total - available) / total * 100.0 if total > 0 else 50.0
        base = _clamp(pressure * 0.6, 10.0, 60.0)
        # changes every 5 seconds, bounded to +/-7.5
        step = ((self._wall_clock() // 5000) % 10) / 10.0
        variance = step * 15.0 - 7.5
        return Result.success(_clamp(base + variance, 8.0, 85.0), "memory_pressure")

    def _estimate_constant(self) -> Result[float]:
        step = ((self._wall_clock() // 3000) % 10) / 10.0 * 10.0
        return Result.success(_clamp(15.0 + step, 10.0, 30.0), "constant")

    # ------------------------------------------------------------ static info

    def _read_frequency(self) -> int | None:
        text = self._reader.read_text(self._frequency_path)
        if text is None:
            return None
        try:
            khz = int(text.strip())
        except ValueError:
            return None
        return khz * 1000

    def _read_temperature(self) -> float | None:
        for path in self._thermal_paths:
            text = self._reader.read_text(path)
            if text is None:
                continue
            try:
                value = float(text.strip())
            except ValueError:
                continue
            # millidegrees Celsius on most kernels
            return value / 1000.0 if value > 1000 else value
        return None
