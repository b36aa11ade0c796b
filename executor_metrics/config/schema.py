"""Typed configuration models implemented with dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

SINK_DRIVERS = {"file", "mqtt"}
TIME_UNITS = {
    "nanoseconds",
    "microseconds",
    "milliseconds",
    "seconds",
    "minutes",
    "hours",
    "days",
}


def _as_str(value: Any, field_name: str, *, optional: bool = False) -> Optional[str]:
    if value is None:
        if optional:
            return None
        raise ValueError(f"'{field_name}' es obligatorio")
    text = str(value).strip()
    if not text and not optional:
        raise ValueError(f"'{field_name}' no puede estar vacío")
    return text or None


def _as_int(value: Any, field_name: str) -> int:
    if value is None:
        raise ValueError(f"'{field_name}' es obligatorio")
    try:
        result = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"'{field_name}' debe ser un entero válido") from exc
    return result


def _as_float(value: Any, field_name: str) -> float:
    if value is None:
        raise ValueError(f"'{field_name}' es obligatorio")
    try:
        result = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"'{field_name}' debe ser numérico") from exc
    return result


def _as_bool(value: Any, default: bool = True) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "si", "sí"}:
        return True
    if text in {"0", "false", "no"}:
        return False
    return default


def _as_str_list(value: Any, field_name: str) -> List[str]:
    if value in (None, ""):
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, Sequence):
        return [str(item).strip() for item in value if str(item).strip()]
    raise ValueError(f"'{field_name}' debe ser una lista o cadena")


def _as_time_unit(value: Any, field_name: str, default: str) -> str:
    unit = (_as_str(value if value not in (None, "") else default, field_name) or default).lower()
    if not unit.endswith("s"):
        unit = f"{unit}s"
    if unit not in TIME_UNITS:
        raise ValueError(f"'{field_name}' debe ser una de: {', '.join(sorted(TIME_UNITS))}")
    return unit


@dataclass
class FilterSettings:
    """Regular expressions deciding which metric names reach the router."""

    include: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "FilterSettings":
        if not data:
            return cls()
        include = _as_str_list(data.get("include"), "filter.include")
        exclude = _as_str_list(data.get("exclude"), "filter.exclude")
        return cls(include=include, exclude=exclude)

    def to_dict(self) -> Dict[str, Any]:
        return {"include": list(self.include), "exclude": list(self.exclude)}


@dataclass
class FileSinkSettings:
    directory: str = "./metrics"
    encoding: str = "utf-8"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "FileSinkSettings":
        if not data:
            return cls()
        directory = _as_str(data.get("directory", "./metrics"), "file.directory") or "./metrics"
        if directory.startswith("file://"):
            directory = directory[len("file://"):]
        encoding = _as_str(data.get("encoding", "utf-8"), "file.encoding") or "utf-8"
        return cls(directory=directory, encoding=encoding)

    def to_dict(self) -> Dict[str, Any]:
        return {"directory": self.directory, "encoding": self.encoding}


@dataclass
class MQTTSinkSettings:
    host: Optional[str] = None
    port: int = 1883
    qos: int = 2
    keepalive_s: int = 60
    topic_prefix: str = "metrics-"
    publish_timeout_s: float = 10.0

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "MQTTSinkSettings":
        if not data:
            return cls()
        host_raw = data.get("host")
        host = _as_str(host_raw, "mqtt.host", optional=True) if host_raw is not None else None
        port = _as_int(data.get("port", 1883), "mqtt.port")
        if not 0 < port < 65536:
            raise ValueError("mqtt.port debe estar entre 1 y 65535")
        qos = _as_int(data.get("qos", 2), "mqtt.qos")
        if qos not in {0, 1, 2}:
            raise ValueError("mqtt.qos debe ser 0, 1 o 2")
        keepalive = _as_int(data.get("keepalive_s", 60), "mqtt.keepalive_s")
        if keepalive < 0:
            raise ValueError("mqtt.keepalive_s debe ser >= 0")
        topic_prefix = str(data.get("topic_prefix", "metrics-"))
        timeout = _as_float(data.get("publish_timeout_s", 10.0), "mqtt.publish_timeout_s")
        if timeout <= 0:
            raise ValueError("mqtt.publish_timeout_s debe ser > 0")
        return cls(
            host=host,
            port=port,
            qos=qos,
            keepalive_s=keepalive,
            topic_prefix=topic_prefix,
            publish_timeout_s=timeout,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "qos": self.qos,
            "keepalive_s": self.keepalive_s,
            "topic_prefix": self.topic_prefix,
            "publish_timeout_s": self.publish_timeout_s,
        }


@dataclass
class ReporterSettings:
    sink: str = "file"
    hostname: Optional[str] = None
    rate_unit: str = "seconds"
    duration_unit: str = "milliseconds"
    include_statistics: bool = False
    sync_every: int = 20
    period_s: float = 10.0
    report_on_stop: bool = False
    metrics_log_interval_s: float = 60.0
    filter: FilterSettings = field(default_factory=FilterSettings)
    file: FileSinkSettings = field(default_factory=FileSinkSettings)
    mqtt: MQTTSinkSettings = field(default_factory=MQTTSinkSettings)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "ReporterSettings":
        data = data or {}
        sink = (_as_str(data.get("sink", "file"), "sink") or "file").lower()
        if sink in {"hdfs", "log"}:
            sink = "file"
        if sink not in SINK_DRIVERS:
            raise ValueError("sink debe ser 'file' o 'mqtt'")
        hostname_raw = data.get("hostname")
        hostname = _as_str(hostname_raw, "hostname", optional=True) if hostname_raw is not None else None
        rate_unit = _as_time_unit(data.get("rate_unit"), "rate_unit", "seconds")
        duration_unit = _as_time_unit(data.get("duration_unit"), "duration_unit", "milliseconds")
        include_statistics = _as_bool(data.get("include_statistics"), False)
        sync_every = _as_int(data.get("sync_every", 20), "sync_every")
        if sync_every < 1:
            raise ValueError("sync_every debe ser >= 1")
        period = _as_float(data.get("period_s", 10.0), "period_s")
        if period <= 0:
            raise ValueError("period_s debe ser > 0")
        report_on_stop = _as_bool(data.get("report_on_stop"), False)
        log_interval = _as_float(data.get("metrics_log_interval_s", 60.0), "metrics_log_interval_s")
        if log_interval < 0:
            raise ValueError("metrics_log_interval_s debe ser >= 0")
        mqtt = MQTTSinkSettings.from_mapping(data.get("mqtt"))
        if sink == "mqtt" and not mqtt.host:
            raise ValueError("mqtt.host es obligatorio cuando sink es 'mqtt'")
        return cls(
            sink=sink,
            hostname=hostname,
            rate_unit=rate_unit,
            duration_unit=duration_unit,
            include_statistics=include_statistics,
            sync_every=sync_every,
            period_s=period,
            report_on_stop=report_on_stop,
            metrics_log_interval_s=log_interval,
            filter=FilterSettings.from_mapping(data.get("filter")),
            file=FileSinkSettings.from_mapping(data.get("file")),
            mqtt=mqtt,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sink": self.sink,
            "hostname": self.hostname,
            "rate_unit": self.rate_unit,
            "duration_unit": self.duration_unit,
            "include_statistics": self.include_statistics,
            "sync_every": self.sync_every,
            "period_s": self.period_s,
            "report_on_stop": self.report_on_stop,
            "metrics_log_interval_s": self.metrics_log_interval_s,
            "filter": self.filter.to_dict(),
            "file": self.file.to_dict(),
            "mqtt": self.mqtt.to_dict(),
        }
