"""Eventos de salida del gateway: agregados y alertas.

Ambos se entregan a los sinks como lotes. `to_payload()` produce el formato
de cable (camelCase) que esperan los consumidores en la nube.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Dict, Optional


class EventType(str, Enum):
    AGGREGATE = "AGGREGATE"
    ALERT = "ALERT"


class AlertType(str, Enum):
    """Tipos de alerta emitidos por el detector."""
    THRESHOLD_HIGH = "THRESHOLD_HIGH"
    THRESHOLD_LOW = "THRESHOLD_LOW"
    THRESHOLD_HIGH_SUSTAINED = "THRESHOLD_HIGH_SUSTAINED"
    SENSOR_STUCK = "SENSOR_STUCK"
    SENSOR_SILENT = "SENSOR_SILENT"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class MetricSummary:
    """Resumen redondeado de una métrica en una ventana cerrada."""
    avg: float
    min: float
    max: float
    count: int

    def to_dict(self) -> dict:
        return {"avg": self.avg, "min": self.min, "max": self.max, "count": self.count}


@dataclass(frozen=True)
class Aggregate:
    """Agregado de una zona para una ventana publicada."""
    zone: str
    timestamp: datetime
    window_duration_sec: float
    metrics: Dict[str, MetricSummary] = field(default_factory=dict)
    greenhouse_id: Optional[str] = None
    device_id: Optional[str] = None

    event_type = EventType.AGGREGATE

    def to_payload(self) -> dict:
        return {
            "eventType": self.event_type.value,
            "greenhouseId": self.greenhouse_id,
            "zone": self.zone,
            "timestamp": self.timestamp.isoformat(),
            "windowDurationSec": self.window_duration_sec,
            "metrics": {name: summary.to_dict() for name, summary in self.metrics.items()},
            "deviceId": self.device_id,
        }


@dataclass(frozen=True)
class Alert:
    """Alerta emitida por el detector.

    Inmutable una vez emitida. `action_taken` se adjunta una sola vez, antes
    de entregarla a los listeners, vía `with_action_taken()`.
    """
    zone: str
    timestamp: datetime
    alert_type: AlertType
    severity: Severity
    metric: str
    message: str
    value: Optional[float] = None
    threshold: Optional[float] = None
    duration: Optional[float] = None
    action: Optional[str] = None
    action_taken: Optional[str] = None
    greenhouse_id: Optional[str] = None
    device_id: Optional[str] = None

    event_type = EventType.ALERT

    def with_action_taken(self, action: str) -> "Alert":
        if self.action_taken is not None:
            raise ValueError(f"action_taken already set on {self.alert_type.value} alert")
        return replace(self, action_taken=action)

    def to_payload(self) -> dict:
        payload = {
            "eventType": self.event_type.value,
            "greenhouseId": self.greenhouse_id,
            "zone": self.zone,
            "timestamp": self.timestamp.isoformat(),
            "alertType": self.alert_type.value,
            "severity": self.severity.value,
            "metric": self.metric,
            "message": self.message,
            "deviceId": self.device_id,
        }
        # Campos opcionales: solo si aplican al tipo de alerta
        optional = {
            "value": self.value,
            "threshold": self.threshold,
            "duration": self.duration,
            "action": self.action,
            "actionTaken": self.action_taken,
        }
        payload.update({k: v for k, v in optional.items() if v is not None})
        return payload
