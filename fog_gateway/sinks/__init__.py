"""Sinks de eventos: destino de agregados y alertas."""

from .backpressure import BackpressureConfig, BackpressureQueue
from .event_buffer import BufferedEvent, EventBuffer
from .memory_sink import LoggingSink, RecordingSink
from .mqtt_sink import MQTTEventSink
from .queued_sink import QueuedSink

__all__ = [
    "BackpressureConfig",
    "BackpressureQueue",
    "BufferedEvent",
    "EventBuffer",
    "LoggingSink",
    "RecordingSink",
    "MQTTEventSink",
    "QueuedSink",
]
