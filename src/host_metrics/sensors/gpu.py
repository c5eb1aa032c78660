"""GPU utilization source.

GPU counters are vendor-specific driver nodes. Discovery walks the known
locations once, in vendor priority order, and remembers the first readable
one for the rest of the process. Hosts without any readable node report the
GPU as unavailable; that is a normal outcome, not an error.
"""

import re
import threading
from enum import Enum

from host_metrics.config.profiles import DeviceProfile
from host_metrics.device import DeviceSignals, DeviceSignalsProvider, static_signals
from host_metrics.sensors import paths
from host_metrics.sensors.cache import CacheEntry, Clock, monotonic_ms
from host_metrics.sensors.models import GpuSnapshot, clamp_percent
from host_metrics.sensors.reader import CounterReader
from host_metrics.telemetry import (
    GPU_DISCOVERED,
    GPU_PATH_LOST,
    GPU_UNAVAILABLE,
    SENSOR_CACHE_HIT,
    SENSOR_READ_FAILED,
    get_logger,
)

log = get_logger(__name__)

DEFAULT_AVAILABILITY_TTL_MS = 60_000

_NON_NUMERIC = re.compile(r"[^0-9.]")


class GpuVendor(str, Enum):
    """GPU family detected from the discovered counter location."""

    QUALCOMM_ADRENO = "qualcomm_adreno"
    ARM_MALI = "arm_mali"
    GENERIC = "generic"
    UNKNOWN = "unknown"


DEFAULT_CANDIDATES: tuple[tuple[GpuVendor, tuple[str, ...]], ...] = (
    (GpuVendor.QUALCOMM_ADRENO, paths.ADRENO_PATHS),
    (GpuVendor.ARM_MALI, paths.MALI_PATHS),
    (GpuVendor.GENERIC, paths.GENERIC_GPU_PATHS),
)


def parse_gpu_usage(text: str | None) -> float | None:
    """Parse a utilization counter into a percentage.

    Accepts a plain number (``"42"``), a percent-suffixed one (``"42%"``), a
    ``"busy idle"`` integer pair and labelled values such as ``"busy: 75"``.

    Returns:
        Usage clamped to [0, 100], or None if nothing numeric is present.
    """
    if text is None:
        return None
    value = text.strip()
    if not value:
        return None

    if " " in value and ":" not in value:
        parts = value.split()
        if len(parts) == 2:
            try:
                busy, idle = int(parts[0]), int(parts[1])
            except ValueError:
                pass
            else:
                total = busy + idle
                return clamp_percent(busy / total * 100.0) if total > 0 else 0.0

    digits = _NON_NUMERIC.sub("", value.replace("%", ""))
    try:
        return clamp_percent(float(digits))
    except ValueError:
        return None


def parse_gpu_memory(text: str | None) -> tuple[int, int] | None:
    """Parse ``"used total"`` (or a single ``used`` value) in bytes."""
    if text is None:
        return None
    parts = text.split()
    try:
        if len(parts) >= 2:
            return int(parts[0]), int(parts[1])
        if len(parts) == 1:
            return int(parts[0]), 0
    except ValueError:
        return None
    return None


def parse_temperature(text: str | None) -> float | None:
    if text is None:
        return None
    try:
        value = float(text.strip())
    except ValueError:
        return None
    return value / 1000.0 if value > 1000 else value


class GpuSource:
    """Thread-safe GPU metrics source.

    The discovered path and vendor are cached for the process lifetime. The
    availability flag is re-probed after ``availability_ttl_ms``; metrics are
    cached for the device profile's GPU TTL, widened while power saving.
    """

    def __init__(
        self,
        reader: CounterReader,
        profile: DeviceProfile,
        signals_provider: DeviceSignalsProvider | None = None,
        *,
        availability_ttl_ms: int = DEFAULT_AVAILABILITY_TTL_MS,
        candidates: tuple[tuple[GpuVendor, tuple[str, ...]], ...] = DEFAULT_CANDIDATES,
        memory_paths: tuple[str, ...] = paths.GPU_MEMORY_PATHS,
        thermal_paths: tuple[str, ...] = paths.GPU_THERMAL_PATHS,
        clock: Clock = monotonic_ms,
    ) -> None:
        self._reader = reader
        self._profile = profile
        self._signals_provider = signals_provider or static_signals(DeviceSignals())
        self._candidates = candidates
        self._memory_paths = memory_paths
        self._thermal_paths = thermal_paths

        self._lock = threading.Lock()
        self._discovery_done = False
        self._gpu_path: str | None = None
        self._vendor = GpuVendor.UNKNOWN
        self._availability: CacheEntry[bool] = CacheEntry(availability_ttl_ms, clock)
        self._metrics: CacheEntry[GpuSnapshot] = CacheEntry(profile.gpu_ttl_ms, clock)

    def is_available(self) -> bool:
        """Whether GPU utilization can currently be read (cached for the TTL window)."""
        with self._lock:
            try:
                return bool(self._availability.get_or_refresh(self._probe_availability))
            except Exception as e:
                log.error(
                    SENSOR_READ_FAILED,
                    source="gpu",
                    operation="availability",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return False

    def vendor(self) -> GpuVendor:
        """GPU family of the discovered counter; UNKNOWN when none was found."""
        with self._lock:
            self._discover()
            return self._vendor

    def sample(self) -> GpuSnapshot:
        """Return the current GPU snapshot. Never raises."""
        with self._lock:
            try:
                self._metrics.ttl_ms = self._metrics_ttl_ms(self._signals_provider())
                if self._metrics.is_fresh():
                    log.debug(SENSOR_CACHE_HIT, source="gpu")
                    return self._metrics.value or GpuSnapshot()
                return self._metrics.store(self._read_snapshot())
            except Exception as e:
                log.error(
                    SENSOR_READ_FAILED,
                    source="gpu",
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                return self._metrics.value or GpuSnapshot()

    def _metrics_ttl_ms(self, signals: DeviceSignals) -> int:
        if signals.should_use_power_saving() or signals.is_tv:
            return self._profile.gpu_power_saving_ttl_ms
        return self._profile.gpu_ttl_ms

    def _discover(self) -> None:
        if self._discovery_done:
            return
        self._discovery_done = True
        for vendor, candidate_paths in self._candidates:
            for path in candidate_paths:
                text = self._reader.read_text(path)
                if text is not None and text.strip():
                    self._gpu_path = path
                    self._vendor = vendor
                    log.info(GPU_DISCOVERED, path=path, vendor=vendor.value)
                    return
        log.info(GPU_UNAVAILABLE, reason="no readable GPU counter")

    def _probe_availability(self) -> bool:
        self._discover()
        if self._gpu_path is None:
            return False
        return parse_gpu_usage(self._reader.read_text(self._gpu_path)) is not None

    def _read_snapshot(self) -> GpuSnapshot:
        self._discover()
        if self._gpu_path is None:
            return GpuSnapshot()

        usage = parse_gpu_usage(self._reader.read_text(self._gpu_path))
        if usage is None:
            if self._availability.value:
                log.warning(GPU_PATH_LOST, path=self._gpu_path, vendor=self._vendor.value)
            self._availability.store(False)
            return GpuSnapshot()

        texts = self._reader.read_many(self._memory_paths + self._thermal_paths)
        memory_used, memory_total = next(
            (m for m in (parse_gpu_memory(texts[p]) for p in self._memory_paths) if m is not None),
            (0, 0),
        )
        temperature = next(
            (t for t in (parse_temperature(texts[p]) for p in self._thermal_paths) if t is not None),
            None,
        )

        return GpuSnapshot(
            usage_percent=usage,
            memory_used_bytes=memory_used,
            memory_total_bytes=memory_total,
            temperature_c=temperature,
            is_available=True,
        )
