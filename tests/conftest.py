"""Fixtures compartidas para los tests del fog gateway."""

from datetime import datetime, timezone
from typing import Any, Dict

import pytest

from fog_gateway.config import GatewayConfig, parse_config
from fog_gateway.core.domain.reading import Reading


class FakeClock:
    """Reloj controlable (epoch seconds) para timers y silencio."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


def make_reading(zone: str, metric: str, value: float, unit: str = "") -> Reading:
    return Reading(
        zone=zone,
        metric=metric,
        value=value,
        unit=unit,
        timestamp=datetime(2026, 1, 31, 8, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def raw_config() -> Dict[str, Any]:
    """Config.json equivalente al del invernadero GH01."""
    return {
        "greenhouseId": "GH01",
        "zones": ["A", "B", "C"],
        "sensors": {
            "readingIntervalMs": 6000,
            "metrics": [
                {"name": "temperature", "unit": "celsius", "min": 15, "max": 35, "normal": 24},
                {"name": "humidity", "unit": "percent", "min": 40, "max": 90, "normal": 65},
                {"name": "lightIntensity", "unit": "lux", "min": 0, "max": 1000, "normal": 600,
                 "decimals": 0},
            ],
        },
        "aggregation": {"windowDurationSec": 60},
        "anomalyDetection": {
            "stuckThreshold": 5,
            "silentThresholdSec": 30,
            "rules": [
                {"metric": "temperature", "type": "THRESHOLD_HIGH", "threshold": 32,
                 "severity": "MEDIUM", "action": "fan=ON"},
                {"metric": "temperature", "type": "THRESHOLD_LOW", "threshold": 18,
                 "severity": "MEDIUM", "action": "heater=ON"},
                {"metric": "humidity", "type": "THRESHOLD_LOW", "threshold": 45},
            ],
        },
        "mqtt": {"clientId": "fog-gateway-GH01"},
        "buffer": {"path": ":memory:", "maxRetries": 2, "retryDelayMs": [1000, 5000]},
    }


@pytest.fixture
def config(raw_config) -> GatewayConfig:
    return parse_config(raw_config)


@pytest.fixture
def sustained_config(raw_config) -> GatewayConfig:
    """Solo la regla sostenida 30/3/HIGH/fan=ON."""
    raw = dict(raw_config)
    raw["anomalyDetection"] = {
        "stuckThreshold": 5,
        "silentThresholdSec": 30,
        "rules": [
            {"metric": "temperature", "type": "THRESHOLD_HIGH_SUSTAINED", "threshold": 30,
             "sustainedCount": 3, "severity": "HIGH", "action": "fan=ON"},
        ],
    }
    return parse_config(raw)
