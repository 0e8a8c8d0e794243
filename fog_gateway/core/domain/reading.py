"""Modelo de dominio para lecturas de sensores."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import NamedTuple

from ...utils.numeric_precision import is_valid_sensor_value


class SeriesKey(NamedTuple):
    """Identifica una serie (zona, métrica).

    Sustituye a las claves concatenadas tipo "A-temperature": una métrica
    con guion no puede colisionar con otra zona.
    """
    zone: str
    metric: str


@dataclass(frozen=True)
class Reading:
    """Lectura de sensor - modelo canónico de dominio.

    Inmutable: la consumen el agregador y el detector sin modificarla.
    """
    zone: str
    metric: str
    value: float
    unit: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def key(self) -> SeriesKey:
        return SeriesKey(self.zone, self.metric)

    def to_dict(self) -> dict:
        return {
            "zone": self.zone,
            "metric": self.metric,
            "value": self.value,
            "unit": self.unit,
            "timestamp": self.timestamp.isoformat(),
        }


def is_well_formed(reading) -> bool:
    """Precondición mínima para que una lectura toque estado compartido."""
    if not isinstance(reading, Reading):
        return False
    if not isinstance(reading.zone, str) or not reading.zone:
        return False
    if not isinstance(reading.metric, str) or not reading.metric:
        return False
    return is_valid_sensor_value(reading.value)
