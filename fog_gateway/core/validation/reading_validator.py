"""Validadores de payloads de lecturas.

Valida y transforma lecturas externas (dict/JSON) al modelo `Reading`.
Una lectura inválida se rechaza sola; el resto del lote sigue su curso.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..domain.reading import Reading

logger = logging.getLogger(__name__)

MAX_ABS_VALUE = 1e12


class ReadingPayload(BaseModel):
    """Schema de validación para lecturas entrantes.

    Formato esperado:
    {
        "zone": "A",
        "metric": "temperature",
        "value": 23.4,
        "unit": "C",
        "timestamp": "2026-01-31T08:00:00.123456Z"
    }
    """

    model_config = ConfigDict(populate_by_name=True)

    zone: str
    metric: str
    value: float
    unit: str = ""
    timestamp: Optional[Union[str, float]] = Field(default=None, alias="ts")

    @field_validator("zone", "metric")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must be a non-empty string")
        return v.strip()

    @field_validator("value")
    @classmethod
    def validate_value(cls, v: float) -> float:
        if math.isnan(v):
            raise ValueError("Value is NaN")
        if math.isinf(v):
            raise ValueError("Value is infinite")
        if not (-MAX_ABS_VALUE < v < MAX_ABS_VALUE):
            raise ValueError("Value out of range")
        return v

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, v):
        if v is None or isinstance(v, (int, float)):
            return v
        try:
            datetime.fromisoformat(v.replace("Z", "+00:00"))
        except ValueError as e:
            raise ValueError(f"Invalid timestamp format: {e}")
        return v

    @property
    def timestamp_datetime(self) -> datetime:
        """Timestamp como datetime aware (UTC si no trae zona)."""
        if self.timestamp is None:
            return datetime.now(timezone.utc)
        if isinstance(self.timestamp, (int, float)):
            return datetime.fromtimestamp(float(self.timestamp), tz=timezone.utc)
        dt = datetime.fromisoformat(self.timestamp.replace("Z", "+00:00"))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt

    def to_reading(self) -> Reading:
        return Reading(
            zone=self.zone,
            metric=self.metric,
            value=float(self.value),
            unit=self.unit,
            timestamp=self.timestamp_datetime,
        )


@dataclass
class ValidationResult:
    """Resultado de validación."""

    valid: bool
    reading: Optional[Reading] = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


def validate_reading(data: Any) -> ValidationResult:
    """Valida el payload de una lectura.

    Args:
        data: Diccionario con la lectura

    Returns:
        ValidationResult con la lectura o el error
    """
    if isinstance(data, Reading):
        return ValidationResult(valid=True, reading=data)
    if not isinstance(data, dict):
        return ValidationResult(valid=False, error=f"Expected object, got {type(data).__name__}")

    warnings = []
    if "timestamp" not in data and "ts" not in data:
        warnings.append("Missing timestamp, using ingestion time")

    try:
        payload = ReadingPayload(**data)
    except ValidationError as e:
        logger.warning("[VALIDATOR] Reading rejected: %s", e.errors()[0].get("msg"))
        return ValidationResult(valid=False, error=str(e))

    return ValidationResult(valid=True, reading=payload.to_reading(), warnings=warnings)


def parse_readings(items: Iterable[Any]) -> Tuple[List[Reading], List[str]]:
    """Valida un lote; devuelve (lecturas válidas, errores)."""
    readings: List[Reading] = []
    errors: List[str] = []
    for index, item in enumerate(items):
        result = validate_reading(item)
        if result.valid:
            readings.append(result.reading)
        else:
            errors.append(f"[{index}] {result.error}")
    return readings, errors
