"""Agregador por ventanas fijas.

Acumula lecturas por zona/métrica y, cada `window_duration_sec`, publica un
`Aggregate` por zona con datos y resetea todas las ventanas.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from ..config.models import GatewayConfig
from ..core.domain.events import Aggregate
from ..core.domain.reading import Reading, is_well_formed
from ..core.listeners import ListenerRegistry
from ..core.timer import PeriodicTimer
from ..utils.numeric_precision import decimals_for
from .window_stats import MetricWindowStats, WindowSnapshot, ZoneWindows

logger = logging.getLogger(__name__)


class WindowAggregator:
    """Calcula estadísticos sobre ventanas de tiempo fijas.

    Reglas:
    - Sin deduplicación: el llamador no debe reenviar lecturas
    - Reset total al publicar (todas las zonas y métricas)
    - Zonas sin lecturas en la ventana no generan agregado
    - Si ninguna zona tiene datos no se notifica (ni siquiera un lote vacío)

    Thread-safe: un lock protege las ventanas; los consumidores se
    notifican fuera del lock.
    """

    def __init__(self, config: GatewayConfig, clock: Callable[[], float] = time.time):
        self._config = config
        self._clock = clock
        self._window_duration_sec = config.window_duration_sec
        self._rounding = config.rounding_policy()

        self._windows: ZoneWindows = {}
        self._lock = threading.Lock()
        self._listeners: ListenerRegistry[List[Aggregate]] = ListenerRegistry("[AGGREGATOR]")
        self._timer: Optional[PeriodicTimer] = None

        self.readings_processed = 0
        self.readings_rejected = 0
        self.windows_published = 0

    @property
    def window_duration_sec(self) -> float:
        return self._window_duration_sec

    def start(self) -> None:
        """Arranca el timer de publicación (no toca el estado acumulado)."""
        if self._timer is not None and self._timer.running:
            return
        logger.info("[AGGREGATOR] Starting with window duration %.1fs", self._window_duration_sec)
        self._timer = PeriodicTimer("aggregator", self._window_duration_sec, self.publish_windows)
        self._timer.start()

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.stop()
            self._timer = None
            logger.info("[AGGREGATOR] Stopped")

    def on_aggregates(self, callback: Callable[[List[Aggregate]], object]) -> None:
        self._listeners.add(callback)

    def process_readings(self, readings: Iterable[Reading]) -> int:
        """Incorpora un lote de lecturas a las ventanas en curso.

        Returns:
            Número de lecturas aceptadas
        """
        accepted = 0
        with self._lock:
            for reading in readings:
                if not is_well_formed(reading):
                    self.readings_rejected += 1
                    logger.warning("[AGGREGATOR] Skipping malformed reading: %r", reading)
                    continue

                zone_window = self._windows.get(reading.zone)
                if zone_window is None:
                    zone_window = self._windows[reading.zone] = {}

                stats = zone_window.get(reading.metric)
                if stats is None:
                    stats = zone_window[reading.metric] = MetricWindowStats()

                stats.add(float(reading.value))
                accepted += 1

            self.readings_processed += accepted
        return accepted

    def publish_windows(self) -> List[Aggregate]:
        """Cierra la ventana: construye agregados, resetea y notifica."""
        with self._lock:
            aggregates = self._build_aggregates()
            self._windows.clear()
            if aggregates:
                self.windows_published += 1

        if aggregates:
            logger.debug("[AGGREGATOR] Publishing %d aggregates", len(aggregates))
            self._listeners.notify(aggregates)
        return aggregates

    def _build_aggregates(self) -> List[Aggregate]:
        """Construye los agregados de la ventana (must hold lock)."""
        now = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        aggregates = []

        for zone, metrics in self._windows.items():
            summaries = {}
            for metric_name, stats in metrics.items():
                summary = stats.summarize(decimals_for(metric_name, self._rounding))
                if summary is not None:
                    summaries[metric_name] = summary

            if not summaries:
                continue

            aggregates.append(
                Aggregate(
                    zone=zone,
                    timestamp=now,
                    window_duration_sec=self._window_duration_sec,
                    metrics=summaries,
                    greenhouse_id=self._config.greenhouse_id,
                    device_id=self._config.device_id,
                )
            )

        return aggregates

    def get_current_stats(self, zone: str, metric: str) -> Optional[WindowSnapshot]:
        """Stats de la ventana en curso, o None si no hay datos este periodo."""
        with self._lock:
            stats = self._windows.get(zone, {}).get(metric)
            return stats.snapshot() if stats is not None else None

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "zones_in_window": len(self._windows),
                "readings_processed": self.readings_processed,
                "readings_rejected": self.readings_rejected,
                "windows_published": self.windows_published,
                "listener_errors": self._listeners.errors,
                "running": self._timer is not None and self._timer.running,
            }
