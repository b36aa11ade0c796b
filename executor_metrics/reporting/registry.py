"""Value types received from the metrics registry and their statistics bundles."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Protocol, Sequence, Tuple, Union, runtime_checkable


class TimeUnit(Enum):
    """Unidades de tiempo con su duración en nanosegundos."""

    NANOSECONDS = 1
    MICROSECONDS = 1_000
    MILLISECONDS = 1_000_000
    SECONDS = 1_000_000_000
    MINUTES = 60 * 1_000_000_000
    HOURS = 3_600 * 1_000_000_000
    DAYS = 86_400 * 1_000_000_000

    @classmethod
    def parse(cls, value: Union[str, "TimeUnit"]) -> "TimeUnit":
        if isinstance(value, TimeUnit):
            return value
        name = str(value).strip().upper()
        if not name.endswith("S"):
            name += "S"
        try:
            return cls[name]
        except KeyError as exc:
            raise ValueError(f"Unidad de tiempo desconocida: {value}") from exc

    @property
    def label(self) -> str:
        return self.name.lower()

    @property
    def singular(self) -> str:
        return self.label[:-1]

    @property
    def seconds(self) -> float:
        return self.value / TimeUnit.SECONDS.value


@dataclass(frozen=True)
class Snapshot:
    """Estadísticas de una distribución ya calculadas por el registro."""

    min: float = 0
    max: float = 0
    mean: float = 0.0
    stddev: float = 0.0
    median: float = 0.0
    p75: float = 0.0
    p95: float = 0.0
    p98: float = 0.0
    p99: float = 0.0
    p999: float = 0.0


@dataclass(frozen=True)
class Gauge:
    value: Any


@dataclass(frozen=True)
class Counter:
    count: int


@dataclass(frozen=True)
class Histogram:
    count: int
    snapshot: Snapshot = field(default_factory=Snapshot)


@dataclass(frozen=True)
class Meter:
    """Rates are expressed in events per second."""

    count: int
    mean_rate: float = 0.0
    m1_rate: float = 0.0
    m5_rate: float = 0.0
    m15_rate: float = 0.0


@dataclass(frozen=True)
class Timer:
    """Durations in ``snapshot`` are nanoseconds, rates are calls per second."""

    count: int
    snapshot: Snapshot = field(default_factory=Snapshot)
    mean_rate: float = 0.0
    m1_rate: float = 0.0
    m5_rate: float = 0.0
    m15_rate: float = 0.0


Metric = Union[Gauge, Counter, Histogram, Meter, Timer]
MetricFilter = Callable[[str, Any], bool]


def accept_all(name: str, metric: Any) -> bool:
    return True


class RegexMetricFilter:
    """Filtro por expresiones regulares sobre el nombre de la métrica.

    Una métrica es elegible si coincide con algún patrón de ``include`` (o si
    no hay ninguno) y con ninguno de ``exclude``.
    """

    def __init__(self, include: Sequence[str] = (), exclude: Sequence[str] = ()) -> None:
        self._include = [re.compile(pattern) for pattern in include]
        self._exclude = [re.compile(pattern) for pattern in exclude]

    def __call__(self, name: str, metric: Any) -> bool:
        if self._include and not any(p.search(name) for p in self._include):
            return False
        return not any(p.search(name) for p in self._exclude)


def build_filter(include: Sequence[str] = (), exclude: Sequence[str] = ()) -> MetricFilter:
    if not include and not exclude:
        return accept_all
    return RegexMetricFilter(include, exclude)


@dataclass(frozen=True)
class RegistrySnapshot:
    """Métricas de un ciclo, agrupadas por tipo y ordenadas por nombre."""

    gauges: Mapping[str, Gauge] = field(default_factory=dict)
    counters: Mapping[str, Counter] = field(default_factory=dict)
    histograms: Mapping[str, Histogram] = field(default_factory=dict)
    meters: Mapping[str, Meter] = field(default_factory=dict)
    timers: Mapping[str, Timer] = field(default_factory=dict)

    def iter_metrics(self) -> Iterator[Tuple[str, Metric]]:
        for group in (self.gauges, self.counters, self.histograms, self.meters, self.timers):
            for name in sorted(group):
                yield name, group[name]


@runtime_checkable
class MetricRegistry(Protocol):
    def snapshot(self) -> RegistrySnapshot:
        """Return the current value of every registered metric."""


class StatisticsFormatter:
    """Convierte cada tipo de métrica en un diccionario ordenado de estadísticas."""

    def __init__(
        self,
        rate_unit: Union[str, TimeUnit] = TimeUnit.SECONDS,
        duration_unit: Union[str, TimeUnit] = TimeUnit.MILLISECONDS,
    ) -> None:
        self.rate_unit = TimeUnit.parse(rate_unit)
        self.duration_unit = TimeUnit.parse(duration_unit)
        self._rate_factor = self.rate_unit.seconds
        self._duration_factor = 1.0 / self.duration_unit.value

    def convert_rate(self, rate: float) -> float:
        return rate * self._rate_factor

    def convert_duration(self, duration: float) -> float:
        return duration * self._duration_factor

    def format(self, metric: Metric) -> Optional[Dict[str, Any]]:
        if isinstance(metric, Gauge):
            return {"value": metric.value}
        if isinstance(metric, Counter):
            return {"count": metric.count}
        if isinstance(metric, Histogram):
            return self._format_histogram(metric)
        if isinstance(metric, Meter):
            return self._format_meter(metric)
        if isinstance(metric, Timer):
            return self._format_timer(metric)
        return None

    def _format_histogram(self, histogram: Histogram) -> Dict[str, Any]:
        snap = histogram.snapshot
        return {
            "count": histogram.count,
            "max": snap.max,
            "mean": snap.mean,
            "min": snap.min,
            "stddev": snap.stddev,
            "p50": snap.median,
            "p75": snap.p75,
            "p95": snap.p95,
            "p98": snap.p98,
            "p99": snap.p99,
            "p999": snap.p999,
        }

    def _format_meter(self, meter: Meter) -> Dict[str, Any]:
        return {
            "count": meter.count,
            "mean_rate": self.convert_rate(meter.mean_rate),
            "m1_rate": self.convert_rate(meter.m1_rate),
            "m5_rate": self.convert_rate(meter.m5_rate),
            "m15_rate": self.convert_rate(meter.m15_rate),
            "rate_unit": f"events/{self.rate_unit.singular}",
        }

    def _format_timer(self, timer: Timer) -> Dict[str, Any]:
        snap = timer.snapshot
        d = self.convert_duration
        r = self.convert_rate
        return {
            "count": timer.count,
            "max": d(snap.max),
            "mean": d(snap.mean),
            "min": d(snap.min),
            "stddev": d(snap.stddev),
            "p50": d(snap.median),
            "p75": d(snap.p75),
            "p95": d(snap.p95),
            "p98": d(snap.p98),
            "p99": d(snap.p99),
            "p999": d(snap.p999),
            "mean_rate": r(timer.mean_rate),
            "m1_rate": r(timer.m1_rate),
            "m5_rate": r(timer.m5_rate),
            "m15_rate": r(timer.m15_rate),
            "rate_unit": f"calls/{self.rate_unit.singular}",
            "duration_unit": self.duration_unit.label,
        }
