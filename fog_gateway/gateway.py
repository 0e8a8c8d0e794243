"""Fog Gateway - orquestación.

Simulador -> {Agregador, Detector} -> sink. Mantiene estadísticas de
ejecución y gestiona el ciclo de vida de los timers.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

from .aggregation.aggregator import WindowAggregator
from .config.models import GatewayConfig
from .core.domain.events import Aggregate, Alert
from .core.domain.reading import Reading
from .core.domain.sink_interface import IEventSink
from .core.timer import PeriodicTimer
from .core.validation.reading_validator import parse_readings
from .detection.detector import AnomalyDetector
from .simulator.sensors import SensorSimulator

logger = logging.getLogger(__name__)

STATS_INTERVAL_SEC = 60.0


@dataclass
class GatewayStats:
    """Contadores de ejecución del gateway."""
    start_time: float = field(default_factory=time.time)
    readings_generated: int = 0
    aggregates_published: int = 0
    alerts_generated: int = 0


class FogGateway:
    """Cablea los componentes y controla su ciclo de vida.

    Uso:
        gateway = FogGateway(config, sink=QueuedSink(LoggingSink()))
        gateway.start()
        ...
        gateway.stop()
    """

    def __init__(
        self,
        config: GatewayConfig,
        sink: IEventSink,
        clock: Callable[[], float] = time.time,
        simulator: Optional[SensorSimulator] = None,
    ):
        self.config = config
        self.sink = sink
        self._clock = clock

        self.aggregator = WindowAggregator(config, clock=clock)
        self.detector = AnomalyDetector(config, clock=clock)
        self.simulator = simulator or SensorSimulator(config, clock=clock)

        self._stats = GatewayStats(start_time=clock())
        self._stats_lock = threading.Lock()
        self._stats_timer: Optional[PeriodicTimer] = None
        self._running = False

        self._wire()
        logger.info(
            "[GATEWAY] Loaded config for greenhouse %s, zones: %s",
            config.greenhouse_id, ", ".join(config.zones),
        )

    def _wire(self) -> None:
        self.simulator.on_readings(self.ingest)
        self.aggregator.on_aggregates(self._on_aggregates)
        self.detector.on_alerts(self._on_alerts)

    def ingest(self, readings: Iterable[Reading]) -> List[Alert]:
        """Entrada de lecturas: ambos componentes consumen el mismo lote."""
        batch = list(readings)
        with self._stats_lock:
            self._stats.readings_generated += len(batch)
        self.aggregator.process_readings(batch)
        return self.detector.process_readings(batch)

    def ingest_payloads(self, items: Iterable[dict]) -> List[Alert]:
        """Valida payloads externos (dict/JSON) e ingesta los válidos."""
        readings, errors = parse_readings(items)
        for error in errors:
            logger.warning("[GATEWAY] Rejected reading %s", error)
        return self.ingest(readings)

    def _on_aggregates(self, aggregates: List[Aggregate]) -> None:
        with self._stats_lock:
            self._stats.aggregates_published += len(aggregates)
        self.sink.on_aggregates(aggregates)

    def _on_alerts(self, alerts: List[Alert]) -> None:
        with self._stats_lock:
            self._stats.alerts_generated += len(alerts)
        for alert in alerts:
            if alert.action_taken:
                logger.info("[GATEWAY] ACTION: zone %s -> %s", alert.zone, alert.action_taken)
        self.sink.on_alerts(alerts)

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            return
        logger.info("[GATEWAY] Starting")
        self.aggregator.start()
        self.simulator.start()
        self._stats_timer = PeriodicTimer("gateway-stats", STATS_INTERVAL_SEC, self.log_stats)
        self._stats_timer.start()
        self._running = True
        logger.info("[GATEWAY] All systems operational")

    def stop(self) -> None:
        """Para timers, deja terminar el procesamiento en curso y cierra el sink."""
        if not self._running:
            self.sink.close()
            return
        logger.info("[GATEWAY] Shutting down...")
        self.simulator.stop()
        self.aggregator.stop()
        if self._stats_timer is not None:
            self._stats_timer.stop()
            self._stats_timer = None
        self._running = False
        self.log_stats()
        self.sink.close()
        logger.info("[GATEWAY] Stopped")

    def inject_anomaly(self, zone: str, metric: str, value: float) -> None:
        self.simulator.inject_anomaly(zone, metric, value)

    def get_status(self) -> dict:
        with self._stats_lock:
            stats = GatewayStats(**vars(self._stats))
        return {
            "greenhouse_id": self.config.greenhouse_id,
            "running": self._running,
            "uptime_seconds": round(self._clock() - stats.start_time, 2),
            "readings_generated": stats.readings_generated,
            "aggregates_published": stats.aggregates_published,
            "alerts_generated": stats.alerts_generated,
            "actuators": self.detector.get_actuator_states(),
            "aggregator": self.aggregator.get_stats(),
            "detector": self.detector.get_stats(),
            "sink": self.sink.get_stats(),
        }

    def log_stats(self) -> None:
        status = self.get_status()
        logger.info(
            "[GATEWAY] STATS uptime=%ss readings=%d aggregates=%d alerts=%d",
            status["uptime_seconds"],
            status["readings_generated"],
            status["aggregates_published"],
            status["alerts_generated"],
        )
        for zone, states in status["actuators"].items():
            logger.info("[GATEWAY] Zone %s actuators: %s", zone, states)
