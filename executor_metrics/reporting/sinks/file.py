"""Sink que añade registros JSON a un archivo por executor."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, TextIO

from executor_metrics.config.schema import FileSinkSettings

from .base import RecordSink

logger = logging.getLogger(__name__)


class FileSink(RecordSink):
    """Escribe un registro por línea en ``<directory>/<app>/<host>_<executor>.json``."""

    def __init__(self, settings: FileSinkSettings, hostname: str) -> None:
        self.settings = settings
        self.hostname = hostname
        self._path: Optional[Path] = None
        self._fh: Optional[TextIO] = None

    @property
    def path(self) -> Optional[Path]:
        return self._path

    # API del RecordSink ------------------------------------------------------
    def open(self, application_id: str, executor_id: str) -> None:
        if self._fh is not None:
            return
        app_dir = Path(self.settings.directory) / application_id
        app_dir.mkdir(parents=True, exist_ok=True)
        path = app_dir / f"{self.hostname}_{executor_id}.json"
        path.touch(exist_ok=True)
        self._fh = path.open("a", encoding=self.settings.encoding)
        self._path = path
        logger.info("FileSink escribiendo métricas en %s", path)

    def emit(self, record: str) -> None:
        fh = self._require_handle()
        fh.write(record)
        fh.write("\n")

    def sync(self) -> None:
        fh = self._require_handle()
        fh.flush()
        os.fsync(fh.fileno())

    def close(self) -> None:
        if self._fh is None:
            return
        try:
            self.sync()
        finally:
            self._fh.close()
            self._fh = None

    # Métodos internos --------------------------------------------------------
    def _require_handle(self) -> TextIO:
        if self._fh is None:
            raise RuntimeError("FileSink no está abierto")
        return self._fh
