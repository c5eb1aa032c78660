"""Snapshot aggregation and adaptive polling."""

from host_metrics.collector.aggregator import MetricsAggregator, create_aggregator
from host_metrics.collector.poll_controller import AdaptivePollController

__all__ = ["AdaptivePollController", "MetricsAggregator", "create_aggregator"]
