"""Registro de listeners con aislamiento de errores.

Cada listener se invoca en orden de registro dentro de su propio
try/except: un listener que falla se loguea y no impide notificar al resto.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ListenerRegistry(Generic[T]):
    """Lista explícita de callbacks que reciben lotes de eventos.

    Uso:
        registry = ListenerRegistry[list]("[AGGREGATOR]")
        registry.add(sink.on_aggregates)
        registry.notify(aggregates)
    """

    def __init__(self, tag: str):
        self._tag = tag
        self._listeners: List[Callable[[T], object]] = []
        self._lock = threading.Lock()
        self.errors = 0

    def add(self, callback: Callable[[T], object]) -> None:
        with self._lock:
            self._listeners.append(callback)

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)

    def notify(self, batch: T) -> int:
        """Entrega el lote a todos los listeners.

        Returns:
            Número de listeners que fallaron
        """
        with self._lock:
            listeners = list(self._listeners)

        failed = 0
        for listener in listeners:
            try:
                listener(batch)
            except Exception:
                failed += 1
                logger.exception("%s Error in listener %r", self._tag, listener)

        if failed:
            with self._lock:
                self.errors += failed
        return failed
