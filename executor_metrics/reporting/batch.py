"""Batching of routed samples into one record per timestamp."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Tuple

from .metrics import ReporterMetrics
from .record import Node
from .routing import RoutingKey, route
from .sinks.base import RecordSink

logger = logging.getLogger(__name__)

SYNC_EVERY = 20


def _json_safe(value: Any) -> Any:
    # NaN e Infinity no son JSON válido; se escriben como null
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {key: _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    return value


@dataclass
class Batch:
    """Registro acumulado, aún sin emitir, de un único timestamp."""

    timestamp: int
    host: str
    record: Node = field(default_factory=Node)

    def to_json(self) -> str:
        payload = {
            "timestamp": self.timestamp,
            "values": _json_safe(self.record.to_plain()),
            "host": self.host,
        }
        return json.dumps(payload, separators=(",", ":"), default=str, allow_nan=False)


class BatchScheduler:
    """Acumula muestras del mismo timestamp y emite el lote al cambiar de timestamp.

    El sink se crea y se abre con la primera muestra enrutable. Mientras no hay
    sink el planificador está inactivo (``previous_timestamp == 0``). Cada
    ``sync_every`` registros emitidos se fuerza la durabilidad del sink.
    Ningún fallo se propaga al llamador.
    """

    def __init__(
        self,
        sink_factory: Callable[[], RecordSink],
        hostname: str,
        *,
        sync_every: int = SYNC_EVERY,
        metrics: Optional[ReporterMetrics] = None,
    ) -> None:
        if sync_every < 1:
            raise ValueError("sync_every debe ser >= 1")
        self.hostname = hostname
        self.sync_every = sync_every
        self.metrics = metrics or ReporterMetrics()
        self.previous_timestamp = 0
        self.rows_emitted = 0
        self._sink_factory = sink_factory
        self._sink: Optional[RecordSink] = None
        self._stream: Optional[Tuple[str, str]] = None
        self._batch: Optional[Batch] = None
        self._failed_init_timestamp: Optional[int] = None
        self._stopped = False

    @property
    def sink(self) -> Optional[RecordSink]:
        return self._sink

    @property
    def open_batch(self) -> Optional[Batch]:
        return self._batch

    def offer(self, name: str, value: Any, timestamp: int) -> None:
        """Enruta ``name`` y añade ``value`` al lote de ``timestamp``."""

        key = route(name)
        if key is None:
            self.metrics.increment("unroutable_samples")
            return
        if self._stopped:
            logger.debug("Reporter detenido; se descarta %s", name)
            return
        try:
            self._accept(name, key, value, timestamp)
        except Exception:
            self.metrics.increment("sample_failures")
            logger.warning("Error reporting metric %s", name, exc_info=True)

    def stop(self) -> None:
        """Emite el lote abierto, si lo hay, y cierra el sink."""

        if self._stopped:
            return
        self._stopped = True
        sink, self._sink = self._sink, None
        batch, self._batch = self._batch, None
        self.previous_timestamp = 0
        if sink is None:
            return
        if batch is not None and batch.record:
            try:
                sink.emit(batch.to_json())
                self.metrics.increment("final_flushes")
            except Exception:
                logger.error("Error flushing last batch (timestamp %d)", batch.timestamp, exc_info=True)
        try:
            sink.close()
        except Exception:
            logger.error("Error closing sink", exc_info=True)

    # Métodos internos --------------------------------------------------------
    def _accept(self, name: str, key: RoutingKey, value: Any, timestamp: int) -> None:
        if self._sink is None:
            if not self._open_sink(key, timestamp):
                return
        elif key.stream != self._stream:
            self.metrics.increment("foreign_samples")
            logger.debug("Se descarta %s: el reporter sirve a %s/%s", name, *self._stream)
            return

        if self._batch is not None and timestamp != self.previous_timestamp:
            self._close_batch(name)
        if self._batch is None:
            self._batch = Batch(timestamp=timestamp, host=f"{self.hostname}_{key.executor_id}")
        if not self._batch.record.merge(key.path, value):
            self.metrics.increment("merge_conflicts")
            logger.debug("Conflicto estructural en %s; se descarta la escritura", name)
        self.previous_timestamp = timestamp

    def _open_sink(self, key: RoutingKey, timestamp: int) -> bool:
        if self._failed_init_timestamp == timestamp:
            return False
        try:
            sink = self._sink_factory()
            sink.open(key.application_id, key.executor_id)
        except Exception:
            self._failed_init_timestamp = timestamp
            self.metrics.increment("sink_init_failures")
            logger.error(
                "Exception when trying to open sink for %s/%s",
                key.application_id,
                key.executor_id,
                exc_info=True,
            )
            return False
        self._failed_init_timestamp = None
        self._sink = sink
        self._stream = key.stream
        return True

    def _close_batch(self, name: str) -> None:
        batch, self._batch = self._batch, None
        try:
            self._sink.emit(batch.to_json())
        except Exception:
            self.metrics.increment("emit_failures")
            logger.warning(
                "Error writing batch %d while reporting %s; batch dropped",
                batch.timestamp,
                name,
                exc_info=True,
            )
            return
        self.rows_emitted += 1
        self.metrics.increment("rows_emitted")
        if self.rows_emitted % self.sync_every == 0:
            try:
                self._sink.sync()
                self.metrics.increment("syncs")
            except Exception:
                logger.warning("Error syncing sink after %d rows", self.rows_emitted, exc_info=True)
