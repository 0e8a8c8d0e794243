from .loader import load_config, parse_config
from .models import (
    AggregationConfig,
    AnomalyDetectionConfig,
    BufferConfig,
    ConfigurationError,
    GatewayConfig,
    MetricConfig,
    MQTTConfig,
    RuleConfig,
    RuleType,
    SensorsConfig,
)

__all__ = [
    "load_config",
    "parse_config",
    "AggregationConfig",
    "AnomalyDetectionConfig",
    "BufferConfig",
    "ConfigurationError",
    "GatewayConfig",
    "MetricConfig",
    "MQTTConfig",
    "RuleConfig",
    "RuleType",
    "SensorsConfig",
]
