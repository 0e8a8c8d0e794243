"""Cola con backpressure para el despacho de eventos.

Desacopla el camino de agregación/detección del transporte: si el sink
real va lento, la cola se llena y descarta (oldest por defecto) en vez de
frenar la ingesta de lecturas.
"""

from __future__ import annotations

import logging
import os
import threading
from collections import deque
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class BackpressureConfig:
    """Configuración de backpressure."""
    max_queue_size: int = 1000
    drop_oldest: bool = True  # True = drop oldest, False = drop newest

    @classmethod
    def from_env(cls) -> "BackpressureConfig":
        return cls(
            max_queue_size=int(os.getenv("FOG_SINK_QUEUE_MAX_SIZE", "1000")),
            drop_oldest=os.getenv("FOG_SINK_DROP_OLDEST", "true").lower() == "true",
        )


@dataclass
class BackpressureStats:
    """Estadísticas de backpressure."""
    enqueued: int = 0
    dequeued: int = 0
    dropped: int = 0


class BackpressureQueue(Generic[T]):
    """Cola acotada y thread-safe.

    Uso:
        queue = BackpressureQueue[tuple](BackpressureConfig(max_queue_size=100))

        # Productor
        queue.put(item)

        # Consumidor
        item = queue.get(timeout=1.0)
    """

    def __init__(self, config: Optional[BackpressureConfig] = None):
        self._config = config or BackpressureConfig.from_env()
        self._queue: deque[T] = deque()  # límite manejado a mano
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._all_done = threading.Condition(self._lock)
        self._unfinished = 0
        self._stats = BackpressureStats()

    def put(self, item: T) -> bool:
        """Agrega un item.

        Returns:
            True si se encoló, False si se descartó el propio item (drop newest)
        """
        with self._lock:
            if len(self._queue) >= self._config.max_queue_size:
                self._stats.dropped += 1
                if not self._config.drop_oldest:
                    logger.warning("[BACKPRESSURE] Queue full, dropped newest item")
                    return False
                self._queue.popleft()
                self._unfinished -= 1
                logger.warning("[BACKPRESSURE] Queue full, dropped oldest item")
                if self._unfinished == 0:
                    self._all_done.notify_all()

            self._queue.append(item)
            self._unfinished += 1
            self._stats.enqueued += 1
            self._not_empty.notify()
            return True

    def get(self, timeout: Optional[float] = None) -> Optional[T]:
        """Obtiene un item o None si vence el timeout."""
        with self._not_empty:
            if not self._queue:
                self._not_empty.wait(timeout)
            if not self._queue:
                return None
            self._stats.dequeued += 1
            return self._queue.popleft()

    def task_done(self) -> None:
        with self._lock:
            self._unfinished = max(0, self._unfinished - 1)
            if self._unfinished == 0:
                self._all_done.notify_all()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Espera a que todo lo encolado se procese. False si vence el timeout."""
        with self._all_done:
            if self._unfinished == 0:
                return True
            self._all_done.wait_for(lambda: self._unfinished == 0, timeout)
            return self._unfinished == 0

    def wake_all(self) -> None:
        with self._lock:
            self._not_empty.notify_all()

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._queue)

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "enqueued": self._stats.enqueued,
                "dequeued": self._stats.dequeued,
                "dropped": self._stats.dropped,
                "current_size": len(self._queue),
                "max_size": self._config.max_queue_size,
                "utilization_pct": (len(self._queue) / self._config.max_queue_size * 100)
                    if self._config.max_queue_size > 0 else 0,
            }
