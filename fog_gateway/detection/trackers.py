"""Trackers de estado por serie para el detector.

Tres contadores independientes evaluados en cada lectura:
- StuckTracker: repeticiones consecutivas del mismo valor
- SustainedTracker: violaciones consecutivas por regla sostenida
- SilentTracker: último instante visto por serie
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, NamedTuple, Optional, Tuple

from ..config.models import RuleType
from ..core.domain.reading import SeriesKey


class RuleKey(NamedTuple):
    """Contador sostenido de una regla concreta sobre una serie."""
    # threshold distingue dos reglas del mismo tipo sobre la misma métrica
    zone: str
    metric: str
    rule_type: RuleType
    threshold: float


@dataclass
class StuckState:
    """Último valor y número de repeticiones consecutivas."""
    last_value: float
    repeat_count: int = 1


class StuckTracker:
    """Rastrea valores repetidos consecutivos.

    Reglas:
    - Primera lectura de la serie: repeat_count = 1
    - Mismo valor que la anterior: incrementa
    - Valor distinto: resetea a 1
    """

    def __init__(self):
        self._cache: Dict[SeriesKey, StuckState] = {}

    def update(self, key: SeriesKey, value: float) -> int:
        """Actualiza y retorna el número de repeticiones consecutivas."""
        state = self._cache.get(key)
        if state is not None and state.last_value == value:
            state.repeat_count += 1
            return state.repeat_count

        self._cache[key] = StuckState(last_value=value)
        return 1

    def get_count(self, key: SeriesKey) -> int:
        state = self._cache.get(key)
        return state.repeat_count if state else 0

    def reset(self, key: SeriesKey) -> None:
        self._cache.pop(key, None)

    def __len__(self) -> int:
        return len(self._cache)


class SustainedTracker:
    """Rastrea violaciones consecutivas por regla sostenida.

    Sin crédito parcial ni decaimiento: cualquier lectura que no viole
    el umbral deja el contador en 0.
    """

    def __init__(self):
        self._counts: Dict[RuleKey, int] = {}

    def record_violation(self, key: RuleKey) -> int:
        count = self._counts.get(key, 0) + 1
        self._counts[key] = count
        return count

    def clear(self, key: RuleKey) -> None:
        self._counts[key] = 0

    def get_count(self, key: RuleKey) -> int:
        return self._counts.get(key, 0)


class SilentTracker:
    """Último instante visto por serie (epoch seconds).

    Una entrada se elimina al disparar su alerta de silencio: una alerta
    por episodio, y el seguimiento se reanuda con la siguiente lectura.
    """

    def __init__(self):
        self._last_seen: Dict[SeriesKey, float] = {}

    def touch(self, key: SeriesKey, now: float) -> None:
        self._last_seen[key] = now

    def last_seen(self, key: SeriesKey) -> Optional[float]:
        return self._last_seen.get(key)

    def pop_silent(self, now: float, threshold_sec: float) -> List[Tuple[SeriesKey, float]]:
        """Retira y devuelve las series con hueco > threshold_sec.

        Returns:
            Lista de (serie, segundos en silencio)
        """
        silent = [
            (key, now - seen)
            for key, seen in self._last_seen.items()
            if now - seen > threshold_sec
        ]
        for key, _ in silent:
            del self._last_seen[key]
        return silent

    def __len__(self) -> int:
        return len(self._last_seen)
