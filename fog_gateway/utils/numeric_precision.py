"""Funciones canónicas de precisión numérica.

Política de precisión:
- Acumulación interna: Python float (IEEE 754 double), sin redondeo
- Redondeo: SOLO en frontera (agregados publicados)
- Decimales por métrica: 1 por defecto, configurable (p.ej. lightIntensity = 0)
"""

from __future__ import annotations

import math
import numbers
from typing import Mapping

DEFAULT_DECIMALS = 1


def is_valid_sensor_value(value) -> bool:
    """Verifica si un valor es un número real finito.

    Strings numéricos ("31") y bool no cuentan: la coerción es trabajo del
    validador de payloads, no del pipeline.
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return False
    return math.isfinite(value)


def round_for_display(value: float, decimals: int = DEFAULT_DECIMALS) -> float:
    """Redondea un valor a `decimals` posiciones, mitades hacia arriba.

    25.25 -> 25.3 y 600.5 -> 601 (no banker's rounding como `round()`).
    USAR SOLO en frontera, nunca en cálculos intermedios.
    """
    if not math.isfinite(value):
        return value
    factor = 10 ** max(decimals, 0)
    return math.floor(value * factor + 0.5) / factor


def decimals_for(metric: str, policy: Mapping[str, int]) -> int:
    """Decimales a usar para una métrica según la política configurada."""
    return policy.get(metric, DEFAULT_DECIMALS)
