"""Configuration schemas and persistence helpers for the metrics reporter."""

from .schema import FileSinkSettings, FilterSettings, MQTTSinkSettings, ReporterSettings
from .store import (
    default_reporter_settings,
    load_env_file,
    load_reporter_settings,
    reporter_settings_from_env,
    resolve_hostname,
    save_reporter_settings,
)

__all__ = [
    "FileSinkSettings",
    "FilterSettings",
    "MQTTSinkSettings",
    "ReporterSettings",
    "default_reporter_settings",
    "load_env_file",
    "load_reporter_settings",
    "reporter_settings_from_env",
    "resolve_hostname",
    "save_reporter_settings",
]
