"""Telemetry module for structured logging.

This module provides:
- Structured logging via structlog
- Semantic event constants
"""

from host_metrics.telemetry.events import (
    ADAPTIVE_CHECK_FAILED,
    COUNTER_FAST_PATH_FAILED,
    COUNTER_READER_SELECTED,
    CPU_BASELINE_INITIALIZED,
    CPU_CORES_DETECTED,
    CPU_FALLBACK_USED,
    CPU_HIGH_LOAD,
    GPU_DISCOVERED,
    GPU_PATH_LOST,
    GPU_UNAVAILABLE,
    POLL_INTERVAL_CHANGED,
    POLL_INTERVAL_SELECTED,
    PROCESS_ENUMERATION_FAILED,
    PROCESS_RANKING_COMPUTED,
    RAM_INVALID_VALUES,
    RAM_SOURCE_FALLBACK,
    SENSOR_CACHE_HIT,
    SENSOR_POLL,
    SENSOR_READ_FAILED,
    SENSOR_STALE_SERVED,
    SNAPSHOT_STREAM_STARTED,
    SNAPSHOT_STREAM_STOPPED,
    SYSTEM_METRICS_SNAPSHOT,
)
from host_metrics.telemetry.logger import configure_logging, get_logger

__all__ = [
    # Core exports
    "get_logger",
    "configure_logging",
    # Event constants
    "SENSOR_POLL",
    "SENSOR_READ_FAILED",
    "SENSOR_CACHE_HIT",
    "SENSOR_STALE_SERVED",
    "COUNTER_READER_SELECTED",
    "COUNTER_FAST_PATH_FAILED",
    "CPU_BASELINE_INITIALIZED",
    "CPU_CORES_DETECTED",
    "CPU_FALLBACK_USED",
    "CPU_HIGH_LOAD",
    "GPU_DISCOVERED",
    "GPU_UNAVAILABLE",
    "GPU_PATH_LOST",
    "RAM_SOURCE_FALLBACK",
    "RAM_INVALID_VALUES",
    "PROCESS_RANKING_COMPUTED",
    "PROCESS_ENUMERATION_FAILED",
    "SYSTEM_METRICS_SNAPSHOT",
    "SNAPSHOT_STREAM_STARTED",
    "SNAPSHOT_STREAM_STOPPED",
    "POLL_INTERVAL_SELECTED",
    "POLL_INTERVAL_CHANGED",
    "ADAPTIVE_CHECK_FAILED",
]
