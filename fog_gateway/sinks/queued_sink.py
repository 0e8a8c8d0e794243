"""Sink asíncrono: encola lotes y los entrega en un hilo worker.

El detector y el agregador llaman a `on_alerts` / `on_aggregates` y vuelven
de inmediato; la entrega al sink real (MQTT, etc.) ocurre fuera del camino
crítico de procesamiento.
"""

from __future__ import annotations

import logging
import threading
from typing import List, Optional, Tuple

from ..core.domain.events import Aggregate, Alert, EventType
from ..core.domain.sink_interface import IEventSink
from .backpressure import BackpressureConfig, BackpressureQueue

logger = logging.getLogger(__name__)

_Batch = Tuple[EventType, list]


class QueuedSink(IEventSink):
    """Envuelve otro sink con una cola con backpressure y un worker."""

    def __init__(
        self,
        inner: IEventSink,
        config: Optional[BackpressureConfig] = None,
        poll_interval: float = 0.5,
    ):
        self._inner = inner
        self._queue: BackpressureQueue[_Batch] = BackpressureQueue(config)
        self._poll_interval = poll_interval
        self._stopped = threading.Event()
        self._delivered = 0
        self._failed = 0
        self._worker = threading.Thread(target=self._run, name="queued-sink", daemon=True)
        self._worker.start()

    @property
    def inner(self) -> IEventSink:
        return self._inner

    def on_aggregates(self, aggregates: List[Aggregate]) -> bool:
        return self._enqueue(EventType.AGGREGATE, aggregates)

    def on_alerts(self, alerts: List[Alert]) -> bool:
        return self._enqueue(EventType.ALERT, alerts)

    def _enqueue(self, event_type: EventType, batch: list) -> bool:
        if self._stopped.is_set():
            logger.warning("[QUEUED_SINK] Closed, rejecting %s batch", event_type.value)
            return False
        return self._queue.put((event_type, list(batch)))

    def _run(self) -> None:
        while not (self._stopped.is_set() and self._queue.size == 0):
            item = self._queue.get(timeout=self._poll_interval)
            if item is None:
                continue
            try:
                self._deliver(*item)
            finally:
                self._queue.task_done()

    def _deliver(self, event_type: EventType, batch: list) -> None:
        try:
            if event_type == EventType.AGGREGATE:
                accepted = self._inner.on_aggregates(batch)
            else:
                accepted = self._inner.on_alerts(batch)
        except Exception:
            self._failed += 1
            logger.exception("[QUEUED_SINK] Inner sink failed on %s batch", event_type.value)
            return

        if accepted:
            self._delivered += 1
        else:
            self._failed += 1
            logger.warning("[QUEUED_SINK] Inner sink did not accept %s batch", event_type.value)

    def flush(self, timeout: Optional[float] = 5.0) -> bool:
        """Espera a que la cola se vacíe."""
        return self._queue.join(timeout)

    def close(self, timeout: Optional[float] = 5.0) -> None:
        """Drena la cola, para el worker y cierra el sink interno."""
        self.flush(timeout)
        self._stopped.set()
        self._queue.wake_all()
        self._worker.join(timeout)
        self._inner.close()

    def get_stats(self) -> dict:
        return {
            "type": type(self).__name__,
            "delivered_batches": self._delivered,
            "failed_batches": self._failed,
            "queue": self._queue.get_stats(),
            "inner": self._inner.get_stats(),
        }
