"""Simulador de sensores: random walk con retorno a la normalidad."""

from __future__ import annotations

import logging
import random
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from ..config.models import GatewayConfig, MetricConfig
from ..core.domain.reading import Reading, SeriesKey
from ..core.listeners import ListenerRegistry
from ..core.timer import PeriodicTimer
from ..utils.numeric_precision import round_for_display

logger = logging.getLogger(__name__)


class SensorSimulator:
    """Genera lecturas realistas para todas las zonas y métricas.

    - Primer valor: normal +/- 10% del rango
    - Siguientes: último valor + paseo aleatorio (5% del rango) + 10% de
      retorno hacia el valor normal
    - Acotado a [min, max] y redondeado a los decimales de la métrica
    """

    def __init__(
        self,
        config: GatewayConfig,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._zones = list(config.zones)
        self._metrics = list(config.sensors.metrics)
        self._interval_sec = config.reading_interval_sec
        self._rng = rng or random.Random()
        self._clock = clock
        self._last: Dict[SeriesKey, float] = {}
        self._lock = threading.Lock()
        self._listeners: ListenerRegistry[List[Reading]] = ListenerRegistry("[SENSORS]")
        self._timer: Optional[PeriodicTimer] = None

    def generate_reading(self, metric: MetricConfig, zone: str) -> float:
        key = SeriesKey(zone, metric.name)
        span = metric.max - metric.min

        with self._lock:
            last = self._last.get(key)
            if last is None:
                value = metric.normal + (self._rng.random() - 0.5) * (span * 0.2)
            else:
                random_walk = (self._rng.random() - 0.5) * (span * 0.05)
                return_to_normal = (metric.normal - last) * 0.1
                value = last + random_walk + return_to_normal

            value = max(metric.min, min(metric.max, value))
            value = round_for_display(value, metric.decimals)
            self._last[key] = value
        return value

    def generate_all_readings(self) -> List[Reading]:
        timestamp = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        return [
            Reading(
                zone=zone,
                metric=metric.name,
                value=self.generate_reading(metric, zone),
                unit=metric.unit,
                timestamp=timestamp,
            )
            for zone in self._zones
            for metric in self._metrics
        ]

    def inject_anomaly(self, zone: str, metric: str, value: float) -> None:
        """Fija el estado del paseo; la próxima lectura parte de `value`."""
        with self._lock:
            self._last[SeriesKey(zone, metric)] = float(value)
        logger.info("[SENSORS] Injected anomaly: %s %s=%s", zone, metric, value)

    def on_readings(self, callback: Callable[[List[Reading]], object]) -> None:
        self._listeners.add(callback)

    def tick(self) -> List[Reading]:
        readings = self.generate_all_readings()
        self._listeners.notify(readings)
        return readings

    def start(self) -> None:
        if self._timer is not None and self._timer.running:
            return
        logger.info(
            "[SENSORS] Simulator started: %d zones x %d metrics every %.1fs",
            len(self._zones), len(self._metrics), self._interval_sec,
        )
        self._timer = PeriodicTimer("sensors", self._interval_sec, self.tick)
        self._timer.start()
        # Primera tanda inmediata
        self.tick()

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.stop()
            self._timer = None
            logger.info("[SENSORS] Simulator stopped")
