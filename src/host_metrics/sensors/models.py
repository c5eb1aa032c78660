"""Snapshot value types produced by the sensor sources.

All snapshots are frozen dataclasses: they are composed once per poll cycle
and never modified afterwards.
"""

from dataclasses import dataclass, field

_MB = 1024 * 1024


@dataclass(frozen=True)
class CpuSnapshot:
    """Overall and per-core CPU utilization.

    Attributes:
        overall_usage_percent: Aggregate usage, clamped to [0, 100].
        core_usage_percent: One clamped value per core, in core order.
        frequency_hz: Current frequency of core 0 in Hz (0 if unknown).
        temperature_c: CPU temperature in Celsius, if readable.
    """

    overall_usage_percent: float = 0.0
    core_usage_percent: tuple[float, ...] = ()
    frequency_hz: int = 0
    temperature_c: float | None = None


@dataclass(frozen=True)
class GpuSnapshot:
    """GPU utilization. Numeric fields are zero when ``is_available`` is False."""

    usage_percent: float = 0.0
    memory_used_bytes: int = 0
    memory_total_bytes: int = 0
    temperature_c: float | None = None
    is_available: bool = False


@dataclass(frozen=True)
class RamSnapshot:
    """Physical memory usage in bytes."""

    used_bytes: int = 0
    total_bytes: int = 0
    available_bytes: int = 0

    @classmethod
    def from_total_and_available(cls, total_bytes: int, available_bytes: int) -> "RamSnapshot":
        """Build a snapshot, deriving used memory as max(0, total - available)."""
        return cls(
            used_bytes=max(0, total_bytes - available_bytes),
            total_bytes=total_bytes,
            available_bytes=available_bytes,
        )

    @property
    def usage_percent(self) -> float:
        if self.total_bytes <= 0:
            return 0.0
        return self.used_bytes / self.total_bytes * 100.0

    @property
    def used_mb(self) -> int:
        return self.used_bytes // _MB

    @property
    def total_mb(self) -> int:
        return self.total_bytes // _MB

    @property
    def available_mb(self) -> int:
        return self.available_bytes // _MB


@dataclass(frozen=True)
class ProcessRecord:
    """Resource usage of one live process.

    Attributes:
        process_identifier: Raw process name as reported by the OS.
        display_name: Human-readable name resolved from package metadata.
        memory_usage_mb: Proportional memory footprint in MB.
        cpu_usage_percent: CPU usage since the previous observation (0 on first sight).
        os_process_id: Operating system pid.
    """

    process_identifier: str
    display_name: str
    memory_usage_mb: int
    cpu_usage_percent: float = 0.0
    os_process_id: int = 0


@dataclass(frozen=True)
class ProcessRanking:
    """Top processes by memory, descending, plus the count that qualified."""

    processes: tuple[ProcessRecord, ...] = ()
    total_observed_count: int = 0

    @classmethod
    def empty(cls) -> "ProcessRanking":
        return cls()

    def __bool__(self) -> bool:
        return bool(self.processes)


@dataclass(frozen=True)
class SystemSnapshot:
    """One consistent reading of all metric classes."""

    cpu: CpuSnapshot = field(default_factory=CpuSnapshot)
    gpu: GpuSnapshot = field(default_factory=GpuSnapshot)
    ram: RamSnapshot = field(default_factory=RamSnapshot)
    process_ranking: ProcessRanking = field(default_factory=ProcessRanking)
    timestamp_ms: int = 0


def clamp_percent(value: float) -> float:
    """Clamp a percentage into [0, 100]."""
    if value != value:  # NaN
        return 0.0
    return min(100.0, max(0.0, value))
