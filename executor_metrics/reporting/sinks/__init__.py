"""Registro de sinks disponibles y utilidades de construcción."""

from __future__ import annotations

from executor_metrics.config.schema import ReporterSettings

from .base import RecordSink
from .file import FileSink
from .mqtt import MQTTSink

__all__ = [
    "RecordSink",
    "FileSink",
    "MQTTSink",
    "build_sink",
]


def build_sink(settings: ReporterSettings, hostname: str) -> RecordSink:
    """Crea el sink indicado en la configuración, sin abrirlo."""

    driver = settings.sink.lower()
    if driver == "mqtt":
        return MQTTSink(settings.mqtt, hostname)
    if driver == "file":
        return FileSink(settings.file, hostname)
    raise ValueError(f"Sink '{settings.sink}' no está soportado")
