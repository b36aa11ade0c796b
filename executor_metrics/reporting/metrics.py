import json
import logging
import threading
import time
from typing import Dict


class ReporterMetrics:
    """Thread-safe counters describing what the reporter did with each sample."""

    def __init__(self, log_interval_s: float = 60.0, logger: logging.Logger | None = None) -> None:
        self.log_interval_s = max(0.0, float(log_interval_s))
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._start_time = time.time()
        self._last_log_time = self._start_time
        self._counters = self._initial_counters()
        self._last_snapshot = self._counters.copy()

    @staticmethod
    def _initial_counters() -> Dict[str, int]:
        return {
            "samples_offered": 0,
            "samples_filtered": 0,
            "unroutable_samples": 0,
            "foreign_samples": 0,
            "merge_conflicts": 0,
            "rows_emitted": 0,
            "final_flushes": 0,
            "syncs": 0,
            "sample_failures": 0,
            "emit_failures": 0,
            "sink_init_failures": 0,
        }

    def increment(self, counter: str, count: int = 1) -> None:
        if count <= 0:
            return
        with self._lock:
            self._counters[counter] += count
        self.maybe_log()

    def get(self, counter: str) -> int:
        with self._lock:
            return self._counters[counter]

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return self._counters.copy()

    def maybe_log(self, force: bool = False) -> None:
        now = time.time()
        with self._lock:
            interval = now - self._last_log_time
            if not force and self.log_interval_s > 0.0 and interval < self.log_interval_s:
                return

            payload = self._build_payload(now, interval)
            self._last_log_time = now
            self._last_snapshot = self._counters.copy()

        self._logger.info("reporter_metrics %s", json.dumps(payload, sort_keys=True))

    def _build_payload(self, now: float, interval: float) -> Dict[str, object]:
        delta = {
            key: self._counters[key] - self._last_snapshot.get(key, 0)
            for key in self._counters
        }
        return {
            "type": "reporter_metrics",
            "uptime_s": round(now - self._start_time, 3),
            "interval_s": round(interval, 3),
            "counters": self._counters.copy(),
            "delta": delta,
        }
