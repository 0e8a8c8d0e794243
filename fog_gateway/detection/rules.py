"""Evaluación de reglas de umbral.

- THRESHOLD_HIGH: value > threshold => alerta inmediata
- THRESHOLD_LOW: value < threshold => alerta inmediata
- THRESHOLD_HIGH_SUSTAINED: N lecturas consecutivas > threshold => alerta,
  con duration = N * intervalo de lectura, y el contador vuelve a 0
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from ..config.models import RuleConfig, RuleType
from ..core.domain.events import Alert, AlertType
from ..core.domain.reading import Reading
from .trackers import RuleKey, SustainedTracker


class RuleEvaluator:
    """Aplica las reglas estáticas a cada lectura.

    Una lectura puede casar con varias reglas de la misma métrica; cada una
    se evalúa por separado. Reglas de métricas desconocidas simplemente
    nunca casan.
    """

    def __init__(
        self,
        rules: Sequence[RuleConfig],
        reading_interval_sec: float,
        greenhouse_id: Optional[str] = None,
        device_id: Optional[str] = None,
    ):
        self._rules_by_metric: Dict[str, List[RuleConfig]] = defaultdict(list)
        for rule in rules:
            self._rules_by_metric[rule.metric].append(rule)
        self._reading_interval_sec = reading_interval_sec
        self._greenhouse_id = greenhouse_id
        self._device_id = device_id
        self.sustained = SustainedTracker()

    def evaluate(self, reading: Reading, now: datetime) -> List[Alert]:
        alerts = []
        for rule in self._rules_by_metric.get(reading.metric, ()):
            alert = self._evaluate_rule(rule, reading, now)
            if alert is not None:
                alerts.append(alert)
        return alerts

    def _evaluate_rule(self, rule: RuleConfig, reading: Reading, now: datetime) -> Optional[Alert]:
        value = reading.value

        if rule.type == RuleType.THRESHOLD_HIGH:
            if value > rule.threshold:
                return self._alert(
                    rule, reading, now, AlertType.THRESHOLD_HIGH,
                    f"{reading.metric} above threshold ({value} > {rule.threshold}) in zone {reading.zone}",
                )
            return None

        if rule.type == RuleType.THRESHOLD_LOW:
            if value < rule.threshold:
                return self._alert(
                    rule, reading, now, AlertType.THRESHOLD_LOW,
                    f"{reading.metric} below threshold ({value} < {rule.threshold}) in zone {reading.zone}",
                )
            return None

        if rule.type == RuleType.THRESHOLD_HIGH_SUSTAINED:
            return self._evaluate_sustained(rule, reading, now)

        return None

    def _evaluate_sustained(self, rule: RuleConfig, reading: Reading, now: datetime) -> Optional[Alert]:
        key = RuleKey(reading.zone, reading.metric, rule.type, rule.threshold)

        if rule.sustained_count is None or reading.value <= rule.threshold:
            self.sustained.clear(key)
            return None

        count = self.sustained.record_violation(key)
        if count < rule.sustained_count:
            return None

        self.sustained.clear(key)
        return self._alert(
            rule, reading, now, AlertType.THRESHOLD_HIGH_SUSTAINED,
            (
                f"{reading.metric} sustained above threshold ({reading.value} > {rule.threshold}) "
                f"for {count} readings in zone {reading.zone}"
            ),
            duration=count * self._reading_interval_sec,
        )

    def _alert(
        self,
        rule: RuleConfig,
        reading: Reading,
        now: datetime,
        alert_type: AlertType,
        message: str,
        duration: Optional[float] = None,
    ) -> Alert:
        return Alert(
            zone=reading.zone,
            timestamp=now,
            alert_type=alert_type,
            severity=rule.severity,
            metric=reading.metric,
            message=message,
            value=reading.value,
            threshold=rule.threshold,
            duration=duration,
            action=rule.action,
            greenhouse_id=self._greenhouse_id,
            device_id=self._device_id,
        )
