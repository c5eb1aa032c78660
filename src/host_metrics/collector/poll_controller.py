"""Adaptive polling for the snapshot stream.

The controller runs two background tasks:

- the stream task, which takes a snapshot every ``current_interval_ms`` and
  publishes it to the consumer;
- the adaptive task, which after an initial delay periodically re-evaluates
  the optimal interval from system load and device state, and restarts the
  stream task when the interval changes.

Only one stream task exists at a time: the old one is cancelled and awaited
before its replacement starts, so no snapshot is emitted twice or after
cancellation.
"""

import asyncio
from collections.abc import AsyncIterator

from host_metrics.collector.aggregator import MetricsAggregator
from host_metrics.config.profiles import DeviceProfile, load_device_profiles
from host_metrics.config.settings import AppConfig, get_settings
from host_metrics.device import DeviceSignals, DeviceSignalsProvider, PsutilSignalsProvider
from host_metrics.sensors.models import SystemSnapshot
from host_metrics.telemetry import (
    ADAPTIVE_CHECK_FAILED,
    POLL_INTERVAL_CHANGED,
    POLL_INTERVAL_SELECTED,
    SNAPSHOT_STREAM_STARTED,
    SNAPSHOT_STREAM_STOPPED,
    get_logger,
)

log = get_logger(__name__)

_MB = 1024 * 1024


class AdaptivePollController:
    """Snapshot stream whose cadence adapts to load and device state.

    Usage:
        >>> controller = AdaptivePollController(create_aggregator())
        >>> async for snapshot in controller.snapshots():
        ...     render(snapshot)

    Attributes:
        current_interval_ms: Interval of the active stream task.
    """

    def __init__(
        self,
        aggregator: MetricsAggregator,
        *,
        settings: AppConfig | None = None,
        profile: DeviceProfile | None = None,
        signals_provider: DeviceSignalsProvider | None = None,
        requested_interval_ms: int | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            aggregator: Snapshot producer.
            settings: Configuration (defaults to the ``get_settings()`` singleton).
            profile: Device profile; the aggregator's, else loaded from settings.
            signals_provider: Device signals; the aggregator's, else psutil-backed.
            requested_interval_ms: User-requested baseline interval
                (defaults to ``settings.poll_interval_ms``).
        """
        self._aggregator = aggregator
        self._settings = settings or get_settings()
        self._profile = (
            profile
            or aggregator.device_profile
            or load_device_profiles(self._settings.device_profiles_path).for_class(
                self._settings.device_class
            )
        )
        self._signals_provider = (
            signals_provider
            or aggregator.signals_provider
            or PsutilSignalsProvider(self._settings.device_class)
        )
        self._requested_interval_ms = (
            requested_interval_ms
            if requested_interval_ms is not None
            else self._settings.poll_interval_ms
        )

        self.current_interval_ms = self.initial_interval_ms()
        self._queue: asyncio.Queue[SystemSnapshot | None] | None = None
        self._stream_task: asyncio.Task[None] | None = None
        self._adaptive_task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    # -------------------------------------------------------------- policy

    def _clamp(self, interval_ms: int) -> int:
        return max(
            self._settings.min_poll_interval_ms,
            min(self._settings.max_poll_interval_ms, interval_ms),
        )

    def _signals(self) -> DeviceSignals:
        return self._signals_provider()

    def device_optimal_interval_ms(self, signals: DeviceSignals | None = None) -> int:
        """Interval suited to the device's class and power state alone."""
        signals = signals or self._signals()
        if signals.is_tv:
            if signals.low_power_mode:
                return self._profile.slow_interval_ms
            return self._profile.initial_interval_ms
        if signals.is_low_battery:
            return self._profile.slow_interval_ms
        return self._profile.initial_interval_ms

    def initial_interval_ms(self) -> int:
        """Slower of the device-optimal and requested intervals, clamped to the band."""
        optimal = self.device_optimal_interval_ms()
        return self._clamp(max(optimal, self._requested_interval_ms))

    def optimal_interval_ms(self, snapshot: SystemSnapshot) -> int:
        """Interval for the current load: slow under pressure, fast otherwise."""
        signals = self._signals()
        low_memory = (
            snapshot.ram.total_bytes > 0
            and snapshot.ram.available_bytes < self._settings.memory_pressure_floor_mb * _MB
        )
        if (
            self._aggregator.cpu.is_high_load()
            or snapshot.cpu.overall_usage_percent > self._settings.high_cpu_threshold_percent
            or low_memory
            or signals.should_use_power_saving()
            or signals.is_thermal_throttled
        ):
            return self._clamp(self._profile.slow_interval_ms)
        return self._clamp(self._profile.fast_interval_ms)

    def adaptive_enabled(self) -> bool:
        mode = self._settings.adaptive_polling
        if mode == "always":
            return True
        if mode == "never":
            return False
        return self._signals().should_use_adaptive_polling()

    # --------------------------------------------------------------- lifecycle

    async def start(self) -> None:
        """Start the stream task and, when enabled, the adaptive task.

        Raises:
            RuntimeError: If the controller is already running.
        """
        if self._running:
            raise RuntimeError("AdaptivePollController already running")

        self._running = True
        self._queue = asyncio.Queue(maxsize=1)
        self.current_interval_ms = self.initial_interval_ms()
        adaptive = self.adaptive_enabled()
        log.info(
            POLL_INTERVAL_SELECTED,
            interval_ms=self.current_interval_ms,
            requested_ms=self._requested_interval_ms,
            adaptive=adaptive,
        )
        self._stream_task = asyncio.create_task(self._stream_loop(self.current_interval_ms))
        if adaptive:
            self._adaptive_task = asyncio.create_task(self._adaptive_loop())
        log.info(SNAPSHOT_STREAM_STARTED, interval_ms=self.current_interval_ms, adaptive=adaptive)

    async def stop(self) -> None:
        """Cancel both tasks and wake any waiting consumer. Idempotent."""
        if not self._running:
            return
        self._running = False

        tasks = [t for t in (self._adaptive_task, self._stream_task) if t and not t.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._adaptive_task = None
        self._stream_task = None

        if self._queue is not None:
            # drop undelivered snapshots, then unblock the consumer
            while not self._queue.empty():
                self._queue.get_nowait()
            self._queue.put_nowait(None)

        log.info(SNAPSHOT_STREAM_STOPPED, interval_ms=self.current_interval_ms)

    async def snapshots(self) -> AsyncIterator[SystemSnapshot]:
        """Yield snapshots from the adaptive stream until stopped.

        Starts the controller if needed. Leaving the iteration stops it.
        """
        if not self._running:
            await self.start()
        queue = self._queue
        assert queue is not None
        try:
            while True:
                snapshot = await queue.get()
                if snapshot is None or not self._running:
                    return
                yield snapshot
        finally:
            await self.stop()

    # ------------------------------------------------------------------ tasks

    def _publish(self, snapshot: SystemSnapshot) -> None:
        assert self._queue is not None
        # latest value wins when the consumer lags
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(snapshot)

    async def _stream_loop(self, interval_ms: int) -> None:
        try:
            while True:
                snapshot = await self._aggregator.aget_snapshot()
                self._publish(snapshot)
                await asyncio.sleep(interval_ms / 1000.0)
        except asyncio.CancelledError:
            log.debug("stream_loop_cancelled", interval_ms=interval_ms)
            raise

    async def _restart_stream(self, interval_ms: int) -> None:
        old_task = self._stream_task
        if old_task and not old_task.done():
            old_task.cancel()
            await asyncio.gather(old_task, return_exceptions=True)
        if self._running:
            self._stream_task = asyncio.create_task(self._stream_loop(interval_ms))

    async def _check_once(self) -> None:
        snapshot = await self._aggregator.aget_snapshot()
        optimal = self.optimal_interval_ms(snapshot)
        if optimal == self.current_interval_ms:
            return
        log.info(
            POLL_INTERVAL_CHANGED,
            previous_ms=self.current_interval_ms,
            interval_ms=optimal,
            cpu_usage=round(snapshot.cpu.overall_usage_percent, 1),
            available_mb=snapshot.ram.available_mb,
        )
        self.current_interval_ms = optimal
        await self._restart_stream(optimal)

    async def _adaptive_loop(self) -> None:
        settings = self._settings
        try:
            await asyncio.sleep(settings.adaptive_initial_delay_seconds)
            while True:
                try:
                    await self._check_once()
                except Exception as e:
                    log.warning(
                        ADAPTIVE_CHECK_FAILED,
                        error=str(e),
                        error_type=type(e).__name__,
                        backoff_seconds=settings.adaptive_backoff_seconds,
                    )
                    await asyncio.sleep(settings.adaptive_backoff_seconds)
                    continue
                await asyncio.sleep(settings.adaptive_check_interval_seconds)
        except asyncio.CancelledError:
            log.debug("adaptive_loop_cancelled", interval_ms=self.current_interval_ms)
            raise
