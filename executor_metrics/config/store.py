"""Helpers to load, validate and persist reporter configuration files."""

from __future__ import annotations

import os
import socket
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import dotenv_values

from .schema import ReporterSettings

CONFIG_DIR = Path(__file__).resolve().parent


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping at {path}, found {type(data).__name__}")
    return data


def _write_yaml(path: Path, payload: Mapping[str, Any]):
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        yaml.safe_dump(payload, fh, sort_keys=False, allow_unicode=True)


def load_reporter_settings(path: Optional[Path] = None) -> ReporterSettings:
    """Read and validate reporter settings from reporter.yaml."""

    cfg_path = path or CONFIG_DIR / "reporter.yaml"
    raw = _read_yaml(cfg_path)
    return ReporterSettings.from_mapping(raw)


def save_reporter_settings(settings: ReporterSettings, path: Optional[Path] = None):
    """Persist the reporter settings to reporter.yaml."""

    cfg_path = path or CONFIG_DIR / "reporter.yaml"
    _write_yaml(cfg_path, settings.to_dict())


def reporter_settings_from_env(env: Mapping[str, Any]) -> ReporterSettings:
    """Create reporter settings from ``REPORTER_*`` environment variables."""

    def _get(name: str, default: Any = None) -> Any:
        value = env.get(name)
        return default if value in (None, "") else value

    payload = {
        "sink": _get("REPORTER_SINK", "file"),
        "hostname": _get("REPORTER_HOSTNAME"),
        "rate_unit": _get("REPORTER_RATE_UNIT"),
        "duration_unit": _get("REPORTER_DURATION_UNIT"),
        "include_statistics": _get("REPORTER_INCLUDE_STATISTICS"),
        "sync_every": _get("REPORTER_SYNC_EVERY", 20),
        "period_s": _get("REPORTER_PERIOD_S", 10.0),
        "report_on_stop": _get("REPORTER_REPORT_ON_STOP"),
        "metrics_log_interval_s": _get("REPORTER_METRICS_LOG_INTERVAL_S", 60.0),
        "filter": {
            "include": _get("REPORTER_FILTER_INCLUDE"),
            "exclude": _get("REPORTER_FILTER_EXCLUDE"),
        },
        "file": {
            "directory": _get("REPORTER_FILE_DIRECTORY", "./metrics"),
            "encoding": _get("REPORTER_FILE_ENCODING", "utf-8"),
        },
        "mqtt": {
            "host": _get("REPORTER_MQTT_HOST"),
            "port": _get("REPORTER_MQTT_PORT", 1883),
            "qos": _get("REPORTER_MQTT_QOS", 2),
            "keepalive_s": _get("REPORTER_MQTT_KEEPALIVE_S", 60),
            "topic_prefix": _get("REPORTER_MQTT_TOPIC_PREFIX", "metrics-"),
            "publish_timeout_s": _get("REPORTER_MQTT_PUBLISH_TIMEOUT_S", 10.0),
        },
    }
    return ReporterSettings.from_mapping(payload)


def default_reporter_settings() -> ReporterSettings:
    """Return a template configuration writing to a local metrics directory."""

    payload = {
        "sink": "file",
        "rate_unit": "seconds",
        "duration_unit": "milliseconds",
        "sync_every": 20,
        "period_s": 10.0,
        "file": {"directory": "./metrics"},
        "mqtt": {"host": "localhost", "port": 1883},
    }
    return ReporterSettings.from_mapping(payload)


def load_env_file(path: Path) -> Mapping[str, str]:
    """Load key/value pairs from a dotenv file."""

    values = dotenv_values(str(path))
    return {k: v for k, v in values.items() if v is not None}


def resolve_hostname(settings: ReporterSettings, env: Optional[Mapping[str, str]] = None) -> str:
    """Return the host name used in file names, client ids and records."""

    if settings.hostname:
        return settings.hostname
    env = os.environ if env is None else env
    override = env.get("SPARK_LOCAL_HOSTNAME")
    if override:
        return override
    return socket.gethostname()
