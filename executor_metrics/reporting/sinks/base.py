"""Interfaces comunes para los sinks que reciben registros serializados."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class RecordSink(Protocol):
    """Contrato mínimo para los sinks de registros.

    El planificador de lotes sólo conoce estas cuatro operaciones; la política
    de durabilidad de cada backend queda dentro de su implementación.
    """

    def open(self, application_id: str, executor_id: str) -> None:
        """Prepara el destino del flujo ``(application_id, executor_id)``."""

    def emit(self, record: str) -> None:
        """Entrega un registro serializado."""

    def sync(self) -> None:
        """Fuerza la durabilidad de los registros entregados hasta ahora."""

    def close(self) -> None:
        """Libera los recursos asociados al sink."""
