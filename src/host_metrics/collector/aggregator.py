"""System snapshot aggregation across all sensor sources.

The aggregator is the single entry point consumers use: it composes one
``SystemSnapshot`` from the four sources, either synchronously or with the
blocking source reads fanned out to worker threads.

Architecture:
    MetricsAggregator
        ├── CpuSource ─┐
        ├── GpuSource ─┤  (shared CounterReader)
        ├── RamSource ─┤
        └── ProcessSource
"""

import asyncio
from collections.abc import AsyncIterator, Callable
from typing import TypeVar

from host_metrics.config.profiles import DeviceProfile, load_device_profiles
from host_metrics.config.settings import AppConfig, get_settings
from host_metrics.device import DeviceSignalsProvider, PsutilSignalsProvider
from host_metrics.sensors.cache import Clock, wall_clock_ms
from host_metrics.sensors.cpu import CpuSource
from host_metrics.sensors.gpu import GpuSource
from host_metrics.sensors.models import (
    CpuSnapshot,
    GpuSnapshot,
    ProcessRanking,
    RamSnapshot,
    SystemSnapshot,
)
from host_metrics.sensors.processes import ProcessSource
from host_metrics.sensors.ram import RamSource
from host_metrics.sensors.reader import CounterReader, select_counter_reader
from host_metrics.telemetry import (
    SENSOR_POLL,
    SENSOR_READ_FAILED,
    SNAPSHOT_STREAM_STARTED,
    SNAPSHOT_STREAM_STOPPED,
    SYSTEM_METRICS_SNAPSHOT,
    get_logger,
)

log = get_logger(__name__)

T = TypeVar("T")


class MetricsAggregator:
    """Compose system snapshots from the CPU, GPU, RAM and process sources.

    Usage:
        >>> aggregator = create_aggregator()
        >>> snapshot = await aggregator.aget_snapshot()
        >>> snapshot.cpu.overall_usage_percent
        23.4

    Attributes:
        cpu: CPU source.
        gpu: GPU source.
        ram: RAM source.
        processes: Process ranking source.
        top_process_count: Processes included in each snapshot's ranking.
    """

    def __init__(
        self,
        cpu: CpuSource,
        gpu: GpuSource,
        ram: RamSource,
        processes: ProcessSource,
        *,
        signals_provider: DeviceSignalsProvider | None = None,
        device_profile: DeviceProfile | None = None,
        top_process_count: int = 5,
        wall_clock: Clock = wall_clock_ms,
    ) -> None:
        self.cpu = cpu
        self.gpu = gpu
        self.ram = ram
        self.processes = processes
        self.signals_provider = signals_provider
        self.device_profile = device_profile
        self.top_process_count = top_process_count
        self._wall_clock = wall_clock

    def is_gpu_available(self) -> bool:
        return self.gpu.is_available()

    def get_snapshot(self) -> SystemSnapshot:
        """Read all sources sequentially on the calling thread.

        Blocks on counter I/O; call from a worker thread or use
        ``aget_snapshot()`` inside an event loop.
        """
        snapshot = SystemSnapshot(
            cpu=self.cpu.sample(),
            gpu=self.gpu.sample(),
            ram=self.ram.sample(),
            process_ranking=self.processes.top_by_memory(self.top_process_count),
            timestamp_ms=self._wall_clock(),
        )
        self._log_snapshot(snapshot, mode="sync")
        return snapshot

    async def aget_snapshot(self) -> SystemSnapshot:
        """Read all sources concurrently, each on its own worker thread."""
        results = await asyncio.gather(
            asyncio.to_thread(self.cpu.sample),
            asyncio.to_thread(self.gpu.sample),
            asyncio.to_thread(self.ram.sample),
            asyncio.to_thread(self.processes.top_by_memory, self.top_process_count),
            return_exceptions=True,
        )
        cpu, gpu, ram, ranking = results
        snapshot = SystemSnapshot(
            cpu=self._or_default(cpu, CpuSnapshot, "cpu"),
            gpu=self._or_default(gpu, GpuSnapshot, "gpu"),
            ram=self._or_default(ram, RamSnapshot, "ram"),
            process_ranking=self._or_default(ranking, ProcessRanking, "processes"),
            timestamp_ms=self._wall_clock(),
        )
        self._log_snapshot(snapshot, mode="async")
        return snapshot

    async def observe_snapshots(self, interval_ms: int) -> AsyncIterator[SystemSnapshot]:
        """Yield a snapshot, then one every ``interval_ms``, until the consumer stops.

        Closing the generator (or cancelling the consuming task) ends the
        stream; no snapshot is produced after that.
        """
        log.info(SNAPSHOT_STREAM_STARTED, interval_ms=interval_ms, adaptive=False)
        emitted = 0
        try:
            while True:
                yield await self.aget_snapshot()
                emitted += 1
                await asyncio.sleep(interval_ms / 1000.0)
        finally:
            log.info(SNAPSHOT_STREAM_STOPPED, interval_ms=interval_ms, emitted=emitted)

    @staticmethod
    def _or_default(
        result: T | BaseException, default_factory: Callable[[], T], source: str
    ) -> T:
        # a raising source contributes its default value
        if isinstance(result, BaseException):
            if isinstance(result, asyncio.CancelledError):
                raise result
            log.error(
                SENSOR_READ_FAILED,
                source=source,
                error=str(result),
                error_type=type(result).__name__,
            )
            return default_factory()
        return result

    @staticmethod
    def _log_snapshot(snapshot: SystemSnapshot, mode: str) -> None:
        log.debug(SENSOR_POLL, mode=mode, timestamp_ms=snapshot.timestamp_ms)
        log.debug(
            SYSTEM_METRICS_SNAPSHOT,
            cpu_load=round(snapshot.cpu.overall_usage_percent, 1),
            memory_used=round(snapshot.ram.usage_percent, 1),
            gpu_load=round(snapshot.gpu.usage_percent, 1) if snapshot.gpu.is_available else None,
            top_processes=len(snapshot.process_ranking.processes),
        )


def create_aggregator(
    settings: AppConfig | None = None,
    signals_provider: DeviceSignalsProvider | None = None,
    reader: CounterReader | None = None,
) -> MetricsAggregator:
    """Build the four sources once, sharing a single counter reader.

    Args:
        settings: Configuration (defaults to the ``get_settings()`` singleton).
        signals_provider: Device power/thermal signals; psutil-backed by default.
        reader: Counter reader; the fastest available one by default.

    Returns:
        Ready-to-use MetricsAggregator.

    Raises:
        ProfileConfigError: If the device profile file is missing or invalid.
    """
    settings = settings or get_settings()
    profile = load_device_profiles(settings.device_profiles_path).for_class(
        settings.device_class
    )
    signals_provider = signals_provider or PsutilSignalsProvider(settings.device_class)
    reader = reader or select_counter_reader()

    cpu = CpuSource(
        reader,
        high_load_threshold=settings.high_cpu_threshold_percent,
        high_load_samples=settings.high_load_consecutive_samples,
        first_read_delay_seconds=settings.cpu_first_read_delay_seconds,
        static_info_ttl_ms=settings.static_info_ttl_ms,
    )
    gpu = GpuSource(
        reader,
        profile,
        signals_provider,
        availability_ttl_ms=settings.gpu_availability_ttl_ms,
    )
    ram = RamSource(reader, profile, signals_provider)
    processes = ProcessSource(
        reader,
        min_memory_mb=settings.process_min_memory_mb,
        cache_ttl_ms=settings.process_cache_ttl_ms,
        baseline_cap=settings.process_baseline_cap,
    )
    log.info(
        "aggregator_created",
        device_class=settings.device_class.value,
        reader=reader.name,
        top_process_count=settings.top_process_count,
    )
    return MetricsAggregator(
        cpu,
        gpu,
        ram,
        processes,
        signals_provider=signals_provider,
        device_profile=profile,
        top_process_count=settings.top_process_count,
    )
