"""Sinks en proceso: memoria y log."""

from __future__ import annotations

import json
import logging
import threading
from typing import List

from ..core.domain.events import Aggregate, Alert
from ..core.domain.sink_interface import IEventSink

logger = logging.getLogger(__name__)


class RecordingSink(IEventSink):
    """Guarda cada lote recibido. Útil en tests y para inspección."""

    def __init__(self):
        self._lock = threading.Lock()
        self.aggregate_batches: List[List[Aggregate]] = []
        self.alert_batches: List[List[Alert]] = []

    def on_aggregates(self, aggregates: List[Aggregate]) -> bool:
        with self._lock:
            self.aggregate_batches.append(list(aggregates))
        return True

    def on_alerts(self, alerts: List[Alert]) -> bool:
        with self._lock:
            self.alert_batches.append(list(alerts))
        return True

    @property
    def aggregates(self) -> List[Aggregate]:
        with self._lock:
            return [a for batch in self.aggregate_batches for a in batch]

    @property
    def alerts(self) -> List[Alert]:
        with self._lock:
            return [a for batch in self.alert_batches for a in batch]

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "type": type(self).__name__,
                "aggregate_batches": len(self.aggregate_batches),
                "alert_batches": len(self.alert_batches),
            }


class LoggingSink(IEventSink):
    """Loguea cada evento en formato de cable. Modo sin broker (--no-mqtt)."""

    def __init__(self, level: int = logging.INFO):
        self._level = level
        self.events_logged = 0

    def on_aggregates(self, aggregates: List[Aggregate]) -> bool:
        for aggregate in aggregates:
            logger.log(self._level, "[SINK] AGGREGATE %s", json.dumps(aggregate.to_payload()))
        self.events_logged += len(aggregates)
        return True

    def on_alerts(self, alerts: List[Alert]) -> bool:
        for alert in alerts:
            logger.log(self._level, "[SINK] ALERT %s", json.dumps(alert.to_payload()))
        self.events_logged += len(alerts)
        return True

    def get_stats(self) -> dict:
        return {"type": type(self).__name__, "events_logged": self.events_logged}
