from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Optional

from ..core.domain.events import MetricSummary
from ..utils.numeric_precision import round_for_display


@dataclass(frozen=True)
class WindowSnapshot:
    """Estadísticos de la ventana en curso (aún no publicada).

    Sin redondear: es una lectura intra-ventana para consumidores que
    necesitan visibilidad antes del cierre.
    """

    avg: float
    min: float
    max: float
    count: int
    latest: float


@dataclass
class MetricWindowStats:
    """Acumulador de una métrica dentro de una ventana.

    Invariante: count == 0 <=> min = +inf y max = -inf (centinela sin datos).
    Con count > 0 se cumple min <= avg <= max.
    """

    sum: float = 0.0
    count: int = 0
    min: float = math.inf
    max: float = -math.inf
    last_value: Optional[float] = None

    def add(self, value: float) -> None:
        self.sum += value
        self.count += 1
        if value < self.min:
            self.min = value
        if value > self.max:
            self.max = value
        self.last_value = value

    @property
    def avg(self) -> Optional[float]:
        if self.count == 0:
            return None
        # Acota el error de punto flotante para no romper min <= avg <= max
        return min(max(self.sum / self.count, self.min), self.max)

    def snapshot(self) -> Optional[WindowSnapshot]:
        if self.count == 0:
            return None
        return WindowSnapshot(
            avg=self.avg,
            min=self.min,
            max=self.max,
            count=self.count,
            latest=self.last_value,
        )

    def summarize(self, decimals: int) -> Optional[MetricSummary]:
        if self.count == 0:
            return None
        return MetricSummary(
            avg=round_for_display(self.avg, decimals),
            min=round_for_display(self.min, decimals),
            max=round_for_display(self.max, decimals),
            count=self.count,
        )


# zone -> metric -> stats
ZoneWindows = Dict[str, Dict[str, MetricWindowStats]]
