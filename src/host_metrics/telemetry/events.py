"""Semantic event constants for structured logging.

All log events should use these constants rather than magic strings to ensure
consistency and enable reliable querying and analysis.
"""

# Sensor events
SENSOR_POLL = "sensor_poll"
SENSOR_READ_FAILED = "sensor_read_failed"
SENSOR_CACHE_HIT = "sensor_cache_hit"
SENSOR_STALE_SERVED = "sensor_stale_served"

# Counter reader events
COUNTER_READER_SELECTED = "counter_reader_selected"
COUNTER_FAST_PATH_FAILED = "counter_fast_path_failed"

# CPU events
CPU_BASELINE_INITIALIZED = "cpu_baseline_initialized"
CPU_CORES_DETECTED = "cpu_cores_detected"
CPU_FALLBACK_USED = "cpu_fallback_used"
CPU_HIGH_LOAD = "cpu_high_load"

# GPU events
GPU_DISCOVERED = "gpu_discovered"
GPU_UNAVAILABLE = "gpu_unavailable"
GPU_PATH_LOST = "gpu_path_lost"

# RAM events
RAM_SOURCE_FALLBACK = "ram_source_fallback"
RAM_INVALID_VALUES = "ram_invalid_values"

# Process events
PROCESS_RANKING_COMPUTED = "process_ranking_computed"
PROCESS_ENUMERATION_FAILED = "process_enumeration_failed"

# Collector events
SYSTEM_METRICS_SNAPSHOT = "system_metrics_snapshot"
SNAPSHOT_STREAM_STARTED = "snapshot_stream_started"
SNAPSHOT_STREAM_STOPPED = "snapshot_stream_stopped"
POLL_INTERVAL_SELECTED = "poll_interval_selected"
POLL_INTERVAL_CHANGED = "poll_interval_changed"
ADAPTIVE_CHECK_FAILED = "adaptive_check_failed"
