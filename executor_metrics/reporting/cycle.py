"""Report cycle orchestration and the optional periodic driver."""

from __future__ import annotations

import logging
import threading
from time import time_ns
from typing import Any, Callable, Optional

from executor_metrics.config.schema import ReporterSettings
from executor_metrics.config.store import resolve_hostname

from .batch import BatchScheduler
from .metrics import ReporterMetrics
from .registry import Metric, MetricFilter, MetricRegistry, RegistrySnapshot, StatisticsFormatter, accept_all, build_filter
from .sinks import RecordSink, build_sink

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def system_clock_ms() -> int:
    return time_ns() // 1_000_000


class ReportCycle:
    """Convert a registry snapshot into samples and feed them to the scheduler."""

    def __init__(
        self,
        scheduler: BatchScheduler,
        *,
        formatter: Optional[StatisticsFormatter] = None,
        metric_filter: MetricFilter = accept_all,
        clock: Clock = system_clock_ms,
        include_statistics: bool = False,
    ) -> None:
        self.scheduler = scheduler
        self.formatter = formatter or StatisticsFormatter()
        self.metrics = scheduler.metrics
        self.include_statistics = include_statistics
        self._filter = metric_filter
        self._clock = clock

    def report(self, snapshot: RegistrySnapshot) -> None:
        """Run one report cycle; every sample shares the cycle's timestamp."""

        timestamp = self._clock() // 1000
        for name, metric in snapshot.iter_metrics():
            self.metrics.increment("samples_offered")
            try:
                if not self._filter(name, metric):
                    self.metrics.increment("samples_filtered")
                    continue
                value = self.sample_value(metric)
            except Exception:
                self.metrics.increment("sample_failures")
                logger.warning("Error reporting metric %s", name, exc_info=True)
                continue
            if value is None:
                logger.debug("Tipo de métrica no soportado para %s: %s", name, type(metric).__name__)
                continue
            self.scheduler.offer(name, value, timestamp)

    def sample_value(self, metric: Metric) -> Any:
        bundle = self.formatter.format(metric)
        if bundle is None:
            return None
        if self.include_statistics:
            return bundle
        return next(iter(bundle.values()))

    def stop(self) -> None:
        self.scheduler.stop()
        self.metrics.maybe_log(force=True)


def build_report_cycle(
    settings: ReporterSettings,
    *,
    clock: Clock = system_clock_ms,
    sink_factory: Optional[Callable[[], RecordSink]] = None,
    metrics: Optional[ReporterMetrics] = None,
) -> ReportCycle:
    """Assemble a report cycle from validated settings."""

    hostname = resolve_hostname(settings)
    if sink_factory is None:
        def sink_factory() -> RecordSink:
            return build_sink(settings, hostname)

    scheduler = BatchScheduler(
        sink_factory,
        hostname,
        sync_every=settings.sync_every,
        metrics=metrics or ReporterMetrics(log_interval_s=settings.metrics_log_interval_s),
    )
    return ReportCycle(
        scheduler,
        formatter=StatisticsFormatter(settings.rate_unit, settings.duration_unit),
        metric_filter=build_filter(settings.filter.include, settings.filter.exclude),
        clock=clock,
        include_statistics=settings.include_statistics,
    )


class ScheduledReporter:
    """Invoke a report cycle every ``period_s`` seconds from a daemon thread."""

    def __init__(
        self,
        registry: MetricRegistry,
        cycle: ReportCycle,
        period_s: float,
        *,
        report_on_stop: bool = False,
    ) -> None:
        if period_s <= 0:
            raise ValueError("period_s debe ser > 0")
        self.registry = registry
        self.cycle = cycle
        self.period_s = period_s
        self.report_on_stop = report_on_stop
        self._stop_event = threading.Event()
        self._worker_thread: Optional[threading.Thread] = None
        self._stopped = False

    @classmethod
    def from_settings(cls, registry: MetricRegistry, settings: ReporterSettings, **kwargs: Any) -> "ScheduledReporter":
        cycle = build_report_cycle(settings, **kwargs)
        return cls(registry, cycle, settings.period_s, report_on_stop=settings.report_on_stop)

    def start(self) -> None:
        if self._stopped:
            raise RuntimeError("ScheduledReporter ya fue detenido; cree uno nuevo para volver a reportar")
        if self._worker_thread and self._worker_thread.is_alive():
            return
        self._stop_event.clear()
        self._worker_thread = threading.Thread(target=self._worker, name="metrics-reporter", daemon=True)
        self._worker_thread.start()

    def report_now(self) -> None:
        try:
            snapshot = self.registry.snapshot()
            self.cycle.report(snapshot)
        except Exception:
            logger.exception("Error running report cycle")

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        self._stop_event.set()
        if self._worker_thread:
            self._worker_thread.join()
            self._worker_thread = None
        if self.report_on_stop:
            self.report_now()
        self.cycle.stop()

    def _worker(self) -> None:
        while not self._stop_event.wait(self.period_s):
            self.report_now()
