"""Sink que publica cada registro en un tópico MQTT por aplicación."""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

import paho.mqtt.client as mqtt

from executor_metrics.config.schema import MQTTSinkSettings

from .base import RecordSink

logger = logging.getLogger(__name__)


def _default_client(client_id: str) -> mqtt.Client:
    return mqtt.Client(
        mqtt.CallbackAPIVersion.VERSION2,
        client_id=client_id,
        clean_session=True,
    )


class MQTTSink(RecordSink):
    """Publica registros con QoS 2 en ``<topic_prefix><application_id>``.

    La publicación no espera el acuse del broker; ``sync`` y ``close`` esperan
    a que terminen los intercambios QoS pendientes, con un único plazo de
    ``publish_timeout_s`` por llamada.
    """

    def __init__(
        self,
        settings: MQTTSinkSettings,
        hostname: str,
        *,
        client_factory: Callable[[str], mqtt.Client] = _default_client,
    ) -> None:
        if not settings.host:
            raise ValueError("MQTTSink requiere mqtt.host")
        self.settings = settings
        self.hostname = hostname
        self._client_factory = client_factory
        self._client: Optional[mqtt.Client] = None
        self._topic: Optional[str] = None
        self._pending: List[mqtt.MQTTMessageInfo] = []
        self.unconfirmed = 0
        self._monotonic = time.monotonic

    @property
    def topic(self) -> Optional[str]:
        return self._topic

    # API del RecordSink ------------------------------------------------------
    def open(self, application_id: str, executor_id: str) -> None:
        if self._client is not None:
            return
        client_id = f"{application_id}-{self.hostname}-{executor_id}"
        client = self._client_factory(client_id)
        logger.info(
            "MQTTSink conectando %s a %s:%d", client_id, self.settings.host, self.settings.port
        )
        rc = client.connect(self.settings.host, self.settings.port, self.settings.keepalive_s)
        if rc != mqtt.MQTT_ERR_SUCCESS:
            raise ConnectionError(f"MQTT connect failed: {mqtt.error_string(rc)}")
        client.loop_start()
        self._client = client
        self._topic = f"{self.settings.topic_prefix}{application_id}"

    def emit(self, record: str) -> None:
        client = self._require_client()
        info = client.publish(self._topic, payload=record.encode("utf-8"), qos=self.settings.qos)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise RuntimeError(f"MQTT publish failed: {mqtt.error_string(info.rc)}")
        self._pending.append(info)

    def sync(self) -> None:
        """Espera los acuses pendientes con un único plazo de ``publish_timeout_s``.

        Los mensajes que siguen sin confirmar al vencer el plazo se descartan
        de la lista de pendientes y se contabilizan en ``unconfirmed``.
        """

        self._require_client()
        deadline = self._monotonic() + self.settings.publish_timeout_s
        unconfirmed = 0
        for info in self._pending:
            if info.is_published():
                continue
            remaining = deadline - self._monotonic()
            if remaining > 0:
                info.wait_for_publish(timeout=remaining)
            if not info.is_published():
                unconfirmed += 1
        self._pending = []
        if unconfirmed:
            self.unconfirmed += unconfirmed
            logger.warning(
                "MQTTSink: %d mensajes sin confirmar tras %.1fs; se dejan de esperar",
                unconfirmed,
                self.settings.publish_timeout_s,
            )

    def close(self) -> None:
        client = self._client
        if client is None:
            return
        try:
            self.sync()
        finally:
            client.disconnect()
            client.loop_stop()
            self._client = None
            self._pending = []

    # Métodos internos --------------------------------------------------------
    def _require_client(self) -> mqtt.Client:
        if self._client is None:
            raise RuntimeError("MQTTSink no está conectado")
        return self._client
