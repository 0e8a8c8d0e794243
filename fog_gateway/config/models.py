"""Modelos de configuración del gateway.

Se cargan una vez desde JSON (claves camelCase) y son inmutables en runtime.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..core.domain.events import Severity


class ConfigurationError(Exception):
    """Configuración ilegible, estructuralmente inválida o con reglas rotas."""

    def __init__(self, message: str, issues: Optional[List[str]] = None):
        self.issues = list(issues or [])
        if self.issues:
            message = f"{message}: " + "; ".join(self.issues)
        super().__init__(message)


class RuleType(str, Enum):
    THRESHOLD_HIGH = "THRESHOLD_HIGH"
    THRESHOLD_LOW = "THRESHOLD_LOW"
    THRESHOLD_HIGH_SUSTAINED = "THRESHOLD_HIGH_SUSTAINED"


class _FrozenModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class RuleConfig(_FrozenModel):
    """Regla estática de detección."""

    metric: str
    type: RuleType
    threshold: float
    severity: Severity = Severity.MEDIUM
    action: Optional[str] = None
    # Lecturas consecutivas requeridas (solo THRESHOLD_HIGH_SUSTAINED).
    # `duration` se acepta como nombre legacy.
    sustained_count: Optional[int] = Field(default=None, alias="sustainedCount", ge=1)

    @model_validator(mode="before")
    @classmethod
    def accept_legacy_duration(cls, data):
        if isinstance(data, dict) and "sustainedCount" not in data and "sustained_count" not in data:
            if "duration" in data:
                data = {**data, "sustainedCount": data["duration"]}
        return data

    def issues(self, known_metrics: Optional[set] = None) -> List[str]:
        """Problemas de la regla que harían que nunca dispare bien."""
        found = []
        label = f"rule {self.type.value}/{self.metric}"
        if known_metrics and self.metric not in known_metrics:
            found.append(f"{label} references unknown metric '{self.metric}'")
        if self.type == RuleType.THRESHOLD_HIGH_SUSTAINED and self.sustained_count is None:
            found.append(f"{label} requires sustainedCount")
        if self.action is not None:
            actuator, sep, state = self.action.partition("=")
            if not sep or not actuator.strip() or not state.strip():
                found.append(f"{label} has malformed action '{self.action}' (expected actuator=STATE)")
        return found


class MetricConfig(_FrozenModel):
    """Métrica simulada/medida por zona."""

    name: str
    unit: str = ""
    min: float
    max: float
    normal: float
    decimals: int = Field(default=1, ge=0, le=6)

    @model_validator(mode="after")
    def check_range(self):
        if self.min > self.max:
            raise ValueError(f"metric {self.name}: min > max")
        if not (self.min <= self.normal <= self.max):
            raise ValueError(f"metric {self.name}: normal outside [min, max]")
        return self


class SensorsConfig(_FrozenModel):
    reading_interval_ms: int = Field(default=5000, alias="readingIntervalMs", gt=0)
    metrics: Tuple[MetricConfig, ...] = ()


class AggregationConfig(_FrozenModel):
    window_duration_sec: float = Field(default=60.0, alias="windowDurationSec", gt=0)
    # Decimales por métrica; tiene prioridad sobre MetricConfig.decimals
    rounding: Dict[str, int] = Field(default_factory=dict)


class AnomalyDetectionConfig(_FrozenModel):
    stuck_threshold: int = Field(default=5, alias="stuckThreshold", ge=1)
    silent_threshold_sec: float = Field(default=30.0, alias="silentThresholdSec", gt=0)
    rules: Tuple[RuleConfig, ...] = ()


class MQTTConfig(_FrozenModel):
    host: str = "localhost"
    port: int = 1883
    client_id: str = Field(default="fog-gateway", alias="clientId")
    username: Optional[str] = None
    password: Optional[str] = None
    topic_telemetry: str = Field(
        default="greenhouse/{greenhouseId}/telemetry", alias="topicTelemetry"
    )
    topic_alerts: str = Field(default="greenhouse/{greenhouseId}/alerts", alias="topicAlerts")
    qos: int = Field(default=1, ge=0, le=2)
    retry_interval_sec: float = Field(default=30.0, alias="retryIntervalSec", gt=0)


class BufferConfig(_FrozenModel):
    path: str = "buffer.db"
    max_retries: int = Field(default=5, alias="maxRetries", ge=0)
    retry_delay_ms: Tuple[int, ...] = Field(
        default=(1000, 5000, 15000, 60000), alias="retryDelayMs"
    )
    max_buffer_size: int = Field(default=10000, alias="maxBufferSize", gt=0)

    @field_validator("retry_delay_ms")
    @classmethod
    def non_empty_delays(cls, v: Tuple[int, ...]) -> Tuple[int, ...]:
        if not v:
            raise ValueError("retryDelayMs must have at least one delay")
        if any(d < 0 for d in v):
            raise ValueError("retryDelayMs must be >= 0")
        return v


class GatewayConfig(_FrozenModel):
    """Configuración completa del gateway (struct inmutable)."""

    greenhouse_id: str = Field(default="GH01", alias="greenhouseId")
    zones: Tuple[str, ...] = ()
    sensors: SensorsConfig = Field(default_factory=SensorsConfig)
    aggregation: AggregationConfig = Field(default_factory=AggregationConfig)
    anomaly_detection: AnomalyDetectionConfig = Field(
        default_factory=AnomalyDetectionConfig, alias="anomalyDetection"
    )
    mqtt: MQTTConfig = Field(default_factory=MQTTConfig)
    buffer: BufferConfig = Field(default_factory=BufferConfig)

    @property
    def window_duration_sec(self) -> float:
        return self.aggregation.window_duration_sec

    @property
    def reading_interval_sec(self) -> float:
        return self.sensors.reading_interval_ms / 1000.0

    @property
    def rules(self) -> Tuple[RuleConfig, ...]:
        return self.anomaly_detection.rules

    @property
    def device_id(self) -> str:
        return self.mqtt.client_id

    def rounding_policy(self) -> Dict[str, int]:
        """Decimales por métrica: los de cada MetricConfig, pisados por aggregation.rounding."""
        policy = {m.name: m.decimals for m in self.sensors.metrics}
        policy.update(self.aggregation.rounding)
        return policy

    def rule_issues(self) -> List[str]:
        known = {m.name for m in self.sensors.metrics}
        issues: List[str] = []
        for rule in self.rules:
            issues.extend(rule.issues(known))
        return issues
