"""Abstract interface for event sinks.

This decouples the core (aggregation + detection) from transport details.
Any sink implementation (MQTT, logging, in-memory, queued) implements it;
serialization, offline buffering and retries live behind this boundary.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from .events import Aggregate, Alert


class IEventSink(ABC):
    """Abstract interface for event sinks.

    Implementations:
    - MQTTEventSink: Publishes to an MQTT broker, buffers offline
    - QueuedSink: Hands batches to a worker thread
    - LoggingSink / RecordingSink: logs or keeps events in memory
    - NullSink: No-op for testing
    """

    @abstractmethod
    def on_aggregates(self, aggregates: List[Aggregate]) -> bool:
        """Accept a batch of aggregates.

        Returns:
            True if the batch was accepted, False otherwise
        """
        pass

    @abstractmethod
    def on_alerts(self, alerts: List[Alert]) -> bool:
        """Accept a batch of alerts.

        Returns:
            True if the batch was accepted, False otherwise
        """
        pass

    def close(self) -> None:
        """Release resources. Default: nothing to release."""

    def get_stats(self) -> dict:
        return {"type": type(self).__name__}


class NullSink(IEventSink):
    """No-op sink for testing or when publishing is disabled."""

    def on_aggregates(self, aggregates: List[Aggregate]) -> bool:
        return True

    def on_alerts(self, alerts: List[Alert]) -> bool:
        return True
