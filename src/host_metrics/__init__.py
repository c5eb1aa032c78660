"""Host metrics: cross-platform CPU, GPU, RAM and process collection engine.

Typical use from an async host application:

    from host_metrics import AdaptivePollController, create_aggregator

    aggregator = create_aggregator()
    async for snapshot in AdaptivePollController(aggregator).snapshots():
        ...
"""

from host_metrics.collector import AdaptivePollController, MetricsAggregator, create_aggregator
from host_metrics.device import DeviceClass, DeviceSignals, PsutilSignalsProvider, static_signals
from host_metrics.sensors.gpu import GpuVendor
from host_metrics.sensors.models import (
    CpuSnapshot,
    GpuSnapshot,
    ProcessRanking,
    ProcessRecord,
    RamSnapshot,
    SystemSnapshot,
)

__version__ = "0.1.0"

__all__ = [
    "AdaptivePollController",
    "CpuSnapshot",
    "DeviceClass",
    "DeviceSignals",
    "GpuSnapshot",
    "GpuVendor",
    "MetricsAggregator",
    "ProcessRanking",
    "ProcessRecord",
    "PsutilSignalsProvider",
    "RamSnapshot",
    "SystemSnapshot",
    "create_aggregator",
    "static_signals",
]
