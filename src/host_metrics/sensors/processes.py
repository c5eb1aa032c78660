"""Top-N process ranking by memory footprint.

Processes are enumerated with psutil. Memory is the proportional set size
(PSS) where the OS allows it, resident set size otherwise. Per-process CPU
usage is the tick delta of ``/proc/<pid>/stat`` between two observations of
the same process, scaled by the kernel clock tick rate.
"""

import configparser
import os
import threading
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any, Protocol

import psutil

from host_metrics.sensors import paths
from host_metrics.sensors.cache import CacheEntry, Clock, monotonic_ms
from host_metrics.sensors.models import ProcessRanking, ProcessRecord, clamp_percent
from host_metrics.sensors.reader import CounterReader
from host_metrics.telemetry import (
    PROCESS_ENUMERATION_FAILED,
    PROCESS_RANKING_COMPUTED,
    SENSOR_CACHE_HIT,
    get_logger,
)

log = get_logger(__name__)

DEFAULT_TOP_COUNT = 5
DEFAULT_MIN_MEMORY_MB = 10
DEFAULT_CACHE_TTL_MS = 1000
DEFAULT_BASELINE_CAP = 4096

_MB = 1024 * 1024
_PROCESS_ATTRS = ["pid", "name", "create_time", "memory_info"]
_SKIPPED_PROCESS_ERRORS = (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess)


def _clock_ticks_per_second() -> int:
    try:
        ticks = os.sysconf("SC_CLK_TCK")
    except (AttributeError, ValueError, OSError):
        return 100
    return ticks if ticks > 0 else 100


def parse_process_ticks(text: str | None) -> int | None:
    """Return utime + stime (clock ticks) from a ``/proc/<pid>/stat`` line.

    The command name field may contain spaces and parentheses, so fields are
    counted from the last closing parenthesis.
    """
    if not text:
        return None
    end = text.rfind(")")
    if end < 0:
        return None
    fields = text[end + 1 :].split()
    # fields[0] is the state (field 3); utime and stime are fields 14 and 15
    if len(fields) < 13:
        return None
    try:
        return int(fields[11]) + int(fields[12])
    except ValueError:
        return None


def clean_process_name(name: str) -> str:
    """Strip a ``:suffix`` (service/sub-process marker) from a process name."""
    return name.split(":", 1)[0]


class LabelResolver(Protocol):
    """Maps a process name to a human-readable application label."""

    def resolve(self, process_name: str) -> str | None: ...


class DesktopEntryResolver:
    """Resolve labels from freedesktop ``.desktop`` entries.

    Both the entry's ``Exec`` basename and the desktop file id map to its
    ``Name``. Entries are indexed lazily on first use.
    """

    def __init__(self, directories: Iterable[str] = paths.DESKTOP_ENTRY_DIRS) -> None:
        self._directories = tuple(directories)
        self._labels: dict[str, str] | None = None

    def resolve(self, process_name: str) -> str | None:
        if self._labels is None:
            self._labels = self._index()
        return self._labels.get(process_name)

    def _index(self) -> dict[str, str]:
        labels: dict[str, str] = {}
        for directory in self._directories:
            root = Path(directory).expanduser()
            if not root.is_dir():
                continue
            for entry in sorted(root.glob("*.desktop")):
                parsed = parse_desktop_entry(entry)
                if parsed is None:
                    continue
                label, executable = parsed
                labels.setdefault(entry.stem, label)
                if executable:
                    labels.setdefault(executable, label)
        log.debug("desktop_entries_indexed", labels=len(labels))
        return labels


def parse_desktop_entry(path: Path) -> tuple[str, str | None] | None:
    """Return (Name, Exec basename) of a desktop entry, or None if unusable."""
    parser = configparser.ConfigParser(interpolation=None, strict=False, delimiters=("=",))
    try:
        parser.read_string(path.read_text(encoding="utf-8", errors="replace"))
    except (OSError, configparser.Error):
        return None
    if not parser.has_section("Desktop Entry"):
        return None
    section = parser["Desktop Entry"]
    label = section.get("name")
    if not label:
        return None

    executable = None
    for token in section.get("exec", "").split():
        if token == "env" or "=" in token:
            continue
        executable = os.path.basename(token)
        break
    return label, executable


class ProcessSource:
    """Thread-safe ranking of the largest processes by memory.

    Usage:
        >>> source = ProcessSource(select_counter_reader())
        >>> ranking = source.top_by_memory(5)
        >>> [p.display_name for p in ranking.processes]
        ['Firefox', 'Code', ...]
    """

    def __init__(
        self,
        reader: CounterReader,
        *,
        min_memory_mb: int = DEFAULT_MIN_MEMORY_MB,
        cache_ttl_ms: int = DEFAULT_CACHE_TTL_MS,
        baseline_cap: int = DEFAULT_BASELINE_CAP,
        label_resolver: LabelResolver | None = None,
        process_iter: Callable[..., Iterable[Any]] = psutil.process_iter,
        clock: Clock = monotonic_ms,
    ) -> None:
        self._reader = reader
        self._min_memory_mb = min_memory_mb
        self._baseline_cap = baseline_cap
        self._label_resolver = label_resolver or DesktopEntryResolver()
        self._process_iter = process_iter
        self._clock = clock
        self._ticks_per_second = _clock_ticks_per_second()

        self._lock = threading.Lock()
        self._ranked: CacheEntry[tuple[ProcessRecord, ...]] = CacheEntry(cache_ttl_ms, clock)
        self._last_non_empty: tuple[ProcessRecord, ...] = ()
        # (pid, create_time) -> (ticks, observed_at_ms); insertion order is age order
        self._baselines: dict[tuple[int, float], tuple[int, int]] = {}

    def top_by_memory(self, n: int = DEFAULT_TOP_COUNT) -> ProcessRanking:
        """Return up to ``n`` processes above the memory threshold, largest first.

        Never raises. On enumeration failure the previous non-empty ranking
        is returned, otherwise an empty one.
        """
        with self._lock:
            if self._ranked.is_fresh() and self._ranked.value is not None:
                log.debug(SENSOR_CACHE_HIT, source="processes")
                return self._ranking(self._ranked.value, n)

            try:
                records = self._collect()
            except Exception as e:
                log.error(
                    PROCESS_ENUMERATION_FAILED,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                if self._last_non_empty:
                    return self._ranking(self._last_non_empty, n)
                return ProcessRanking.empty()

            self._ranked.store(records)
            if records:
                self._last_non_empty = records
            log.debug(
                PROCESS_RANKING_COMPUTED,
                qualifying=len(records),
                top=[r.process_identifier for r in records[:n]],
            )
            return self._ranking(records, n)

    def clear_cache(self) -> None:
        """Drop the cached ranking and every CPU baseline."""
        with self._lock:
            self._ranked.invalidate()
            self._last_non_empty = ()
            self._baselines.clear()

    @staticmethod
    def _ranking(records: tuple[ProcessRecord, ...], n: int) -> ProcessRanking:
        return ProcessRanking(processes=records[: max(0, n)], total_observed_count=len(records))

    def _collect(self) -> tuple[ProcessRecord, ...]:
        now_ms = self._clock()
        records: list[ProcessRecord] = []
        for proc in self._process_iter(_PROCESS_ATTRS):
            try:
                record = self._observe(proc, now_ms)
            except _SKIPPED_PROCESS_ERRORS:
                continue
            if record is not None:
                records.append(record)
        records.sort(key=lambda r: r.memory_usage_mb, reverse=True)
        return tuple(records)

    def _observe(self, proc: Any, now_ms: int) -> ProcessRecord | None:
        info = proc.info
        rss = getattr(info.get("memory_info"), "rss", 0) or 0
        # PSS never exceeds RSS, so skip the expensive query for small processes
        if rss // _MB <= self._min_memory_mb:
            return None
        memory_mb = self._proportional_memory(proc, rss) // _MB
        if memory_mb <= self._min_memory_mb:
            return None

        pid = info["pid"]
        name = info.get("name") or str(pid)
        clean_name = clean_process_name(name)
        return ProcessRecord(
            process_identifier=name,
            display_name=self._label_resolver.resolve(clean_name) or name,
            memory_usage_mb=memory_mb,
            cpu_usage_percent=self._cpu_percent(proc, (pid, info.get("create_time") or 0.0), now_ms),
            os_process_id=pid,
        )

    @staticmethod
    def _proportional_memory(proc: Any, rss: int) -> int:
        try:
            full = proc.memory_full_info()
        except psutil.AccessDenied:
            return rss
        return getattr(full, "pss", None) or rss

    def _process_ticks(self, proc: Any, pid: int) -> int | None:
        ticks = parse_process_ticks(self._reader.read_text(paths.process_stat_path(pid)))
        if ticks is not None:
            return ticks
        try:
            times = proc.cpu_times()
        except psutil.AccessDenied:
            return None
        return int(round((times.user + times.system) * self._ticks_per_second))

    def _cpu_percent(self, proc: Any, key: tuple[int, float], now_ms: int) -> float:
        ticks = self._process_ticks(proc, key[0])
        if ticks is None:
            return 0.0

        previous = self._baselines.pop(key, None)
        self._baselines[key] = (ticks, now_ms)
        while len(self._baselines) > self._baseline_cap:
            del self._baselines[next(iter(self._baselines))]

        if previous is None:
            return 0.0
        previous_ticks, previous_ms = previous
        elapsed_seconds = (now_ms - previous_ms) / 1000.0
        if elapsed_seconds <= 0:
            return 0.0
        return clamp_percent(
            (ticks - previous_ticks) / (elapsed_seconds * self._ticks_per_second) * 100.0
        )
