"""Detector de anomalías basado en reglas.

Por cada llamada a `process_readings`:
1. Por lectura: actualiza last-seen, chequeo de sensor atascado, reglas
2. Tras el lote: chequeo de silencio sobre TODAS las series conocidas
3. Ejecuta las acciones de las alertas y notifica el lote completo
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from ..config.models import GatewayConfig
from ..core.domain.events import Alert, AlertType, Severity
from ..core.domain.reading import Reading, SeriesKey, is_well_formed
from ..core.listeners import ListenerRegistry
from .actuators import ActuatorRegistry
from .rules import RuleEvaluator
from .trackers import SilentTracker, StuckTracker

logger = logging.getLogger(__name__)


class AnomalyDetector:
    """Evaluador de reglas en streaming con actuación simulada.

    Una instancia por invernadero/proceso. Todo el estado (trackers y
    actuadores) pertenece a la instancia y se protege con un único lock;
    los listeners se invocan fuera del lock.
    """

    def __init__(self, config: GatewayConfig, clock: Callable[[], float] = time.time):
        detection = config.anomaly_detection
        self._config = config
        self._clock = clock
        self._stuck_threshold = detection.stuck_threshold
        self._silent_threshold_sec = detection.silent_threshold_sec

        self._rules = RuleEvaluator(
            detection.rules,
            reading_interval_sec=config.reading_interval_sec,
            greenhouse_id=config.greenhouse_id,
            device_id=config.device_id,
        )
        self._stuck = StuckTracker()
        self._silent = SilentTracker()
        self._actuators = ActuatorRegistry()

        self._lock = threading.Lock()
        self._listeners: ListenerRegistry[List[Alert]] = ListenerRegistry("[DETECTOR]")

        self.readings_processed = 0
        self.readings_rejected = 0
        self.alerts_emitted = 0

    def on_alerts(self, callback: Callable[[List[Alert]], object]) -> None:
        self._listeners.add(callback)

    def process_readings(self, readings: Iterable[Reading]) -> List[Alert]:
        """Procesa un lote y entrega las alertas resultantes.

        Returns:
            Alertas entregadas (con action_taken ya adjunto)
        """
        with self._lock:
            now_ts = self._clock()
            now = datetime.fromtimestamp(now_ts, tz=timezone.utc)
            alerts: List[Alert] = []

            for reading in readings:
                if not is_well_formed(reading):
                    self.readings_rejected += 1
                    logger.warning("[DETECTOR] Skipping malformed reading: %r", reading)
                    continue

                key = reading.key
                self._silent.touch(key, now_ts)

                stuck_alert = self._check_stuck(key, reading, now)
                if stuck_alert is not None:
                    alerts.append(stuck_alert)

                alerts.extend(self._rules.evaluate(reading, now))
                self.readings_processed += 1

            alerts.extend(self._check_silent(now_ts, now))

            delivered = [self._execute_action(alert) for alert in alerts]
            self.alerts_emitted += len(delivered)

        if delivered:
            for alert in delivered:
                logger.info("[DETECTOR] ALERT %s %s: %s", alert.alert_type.value, alert.severity.value, alert.message)
            self._listeners.notify(delivered)
        return delivered

    def _check_stuck(self, key: SeriesKey, reading: Reading, now: datetime) -> Optional[Alert]:
        """Dispara en cada lectura repetida una vez alcanzado el umbral."""
        count = self._stuck.update(key, reading.value)
        if count < self._stuck_threshold:
            return None

        return Alert(
            zone=key.zone,
            timestamp=now,
            alert_type=AlertType.SENSOR_STUCK,
            severity=Severity.MEDIUM,
            metric=key.metric,
            value=reading.value,
            message=f"Sensor {key.metric} stuck at {reading.value} in zone {key.zone}",
            greenhouse_id=self._config.greenhouse_id,
            device_id=self._config.device_id,
        )

    def _check_silent(self, now_ts: float, now: datetime) -> List[Alert]:
        alerts = []
        for key, gap in self._silent.pop_silent(now_ts, self._silent_threshold_sec):
            alerts.append(
                Alert(
                    zone=key.zone,
                    timestamp=now,
                    alert_type=AlertType.SENSOR_SILENT,
                    severity=Severity.HIGH,
                    metric=key.metric,
                    duration=round(gap, 3),
                    message=f"Sensor {key.metric} silent for {round(gap)}s in zone {key.zone}",
                    greenhouse_id=self._config.greenhouse_id,
                    device_id=self._config.device_id,
                )
            )
        return alerts

    def _execute_action(self, alert: Alert) -> Alert:
        """Aplica la acción al estado de actuadores (must hold lock)."""
        if not alert.action:
            return alert
        if not self._actuators.apply(alert.zone, alert.action):
            return alert
        return alert.with_action_taken(alert.action)

    def check_silent(self) -> List[Alert]:
        """Chequeo de silencio fuera de un lote (p.ej. desde un timer).

        Mantiene la semántica de una alerta por episodio.
        """
        return self.process_readings(())

    def get_actuator_states(self) -> Dict[str, Dict[str, str]]:
        with self._lock:
            return self._actuators.snapshot()

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "readings_processed": self.readings_processed,
                "readings_rejected": self.readings_rejected,
                "alerts_emitted": self.alerts_emitted,
                "tracked_series": len(self._silent),
                "listener_errors": self._listeners.errors,
            }
