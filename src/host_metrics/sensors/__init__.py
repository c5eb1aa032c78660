"""Sensor sources: CPU, GPU, RAM and process ranking.

Each source owns its baselines and caches behind its own lock and never
raises out of its sampling method.
"""

from host_metrics.sensors.cpu import CpuSource
from host_metrics.sensors.gpu import GpuSource, GpuVendor, parse_gpu_usage
from host_metrics.sensors.models import (
    CpuSnapshot,
    GpuSnapshot,
    ProcessRanking,
    ProcessRecord,
    RamSnapshot,
    SystemSnapshot,
)
from host_metrics.sensors.processes import DesktopEntryResolver, LabelResolver, ProcessSource
from host_metrics.sensors.ram import RamSource, parse_meminfo
from host_metrics.sensors.reader import (
    CounterReader,
    FastCounterReader,
    PortableCounterReader,
    select_counter_reader,
)

__all__ = [
    "CounterReader",
    "CpuSnapshot",
    "CpuSource",
    "DesktopEntryResolver",
    "FastCounterReader",
    "GpuSnapshot",
    "GpuSource",
    "GpuVendor",
    "LabelResolver",
    "PortableCounterReader",
    "ProcessRanking",
    "ProcessRecord",
    "ProcessSource",
    "RamSnapshot",
    "RamSource",
    "SystemSnapshot",
    "parse_gpu_usage",
    "parse_meminfo",
    "select_counter_reader",
]
