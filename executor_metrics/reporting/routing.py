"""Parse dotted metric names into the reporter's routing key."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

APP_PREFIX = "app"
# segmento 0: aplicación, 1: executor, 2: nivel descartado, 3+: ruta
PATH_OFFSET = 3


@dataclass(frozen=True)
class RoutingKey:
    """Destino de una muestra: aplicación, executor y ruta dentro del registro."""

    application_id: str
    executor_id: str
    path: Tuple[str, ...]

    @property
    def stream(self) -> Tuple[str, str]:
        return self.application_id, self.executor_id


def route(name: str) -> Optional[RoutingKey]:
    """Devuelve la clave de enrutado de ``name`` o ``None`` si no pertenece al esquema.

    ``app-20150917-0001.3.executor.jvm.heap.used`` produce la aplicación
    ``app-20150917-0001``, el executor ``3`` y la ruta ``("jvm", "heap", "used")``.
    Los nombres que no siguen la convención son frecuentes y no se consideran errores.
    """

    segments = name.split(".")
    if not segments[0].startswith(APP_PREFIX):
        return None
    if len(segments) <= PATH_OFFSET:
        return None
    executor_id = segments[1]
    try:
        int(executor_id)
    except ValueError:
        return None
    return RoutingKey(
        application_id=segments[0],
        executor_id=executor_id,
        path=tuple(segments[PATH_OFFSET:]),
    )
