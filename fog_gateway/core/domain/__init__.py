"""Domain layer - Modelos y contratos."""

from .reading import Reading, SeriesKey, is_well_formed
from .events import (
    Aggregate,
    Alert,
    AlertType,
    EventType,
    MetricSummary,
    Severity,
)
from .sink_interface import IEventSink, NullSink

__all__ = [
    "Reading",
    "SeriesKey",
    "is_well_formed",
    "Aggregate",
    "Alert",
    "AlertType",
    "EventType",
    "MetricSummary",
    "Severity",
    "IEventSink",
    "NullSink",
]
