"""Pipeline that turns registry snapshots into per-timestamp metric records."""

from .batch import Batch, BatchScheduler
from .cycle import ReportCycle, ScheduledReporter, build_report_cycle
from .metrics import ReporterMetrics
from .record import Leaf, Node, merge
from .registry import (
    Counter,
    Gauge,
    Histogram,
    Meter,
    MetricRegistry,
    RegistrySnapshot,
    Snapshot,
    StatisticsFormatter,
    TimeUnit,
    Timer,
    build_filter,
)
from .routing import RoutingKey, route

__all__ = [
    "Batch",
    "BatchScheduler",
    "Counter",
    "Gauge",
    "Histogram",
    "Leaf",
    "Meter",
    "MetricRegistry",
    "Node",
    "RegistrySnapshot",
    "ReportCycle",
    "ReporterMetrics",
    "RoutingKey",
    "ScheduledReporter",
    "Snapshot",
    "StatisticsFormatter",
    "TimeUnit",
    "Timer",
    "build_filter",
    "build_report_cycle",
    "merge",
    "route",
]
