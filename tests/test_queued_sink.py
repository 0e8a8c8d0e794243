"""Tests de la cola con backpressure y del sink encolado."""

import logging
import threading
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from fog_gateway.core.domain.events import Aggregate, Alert, AlertType, MetricSummary, Severity
from fog_gateway.core.domain.sink_interface import IEventSink, NullSink
from fog_gateway.sinks import BackpressureConfig, BackpressureQueue, LoggingSink, QueuedSink, RecordingSink

TS = datetime(2026, 1, 31, 8, 0, tzinfo=timezone.utc)


def _aggregate(zone: str = "A") -> Aggregate:
    return Aggregate(
        zone=zone,
        timestamp=TS,
        window_duration_sec=60,
        metrics={"temperature": MetricSummary(avg=24.0, min=23.0, max=25.0, count=12)},
        greenhouse_id="GH01",
        device_id="fog-gateway-GH01",
    )


def _alert(zone: str = "A") -> Alert:
    return Alert(
        zone=zone,
        timestamp=TS,
        alert_type=AlertType.THRESHOLD_HIGH,
        severity=Severity.MEDIUM,
        metric="temperature",
        message="temperature above threshold (35 > 32.0) in zone A",
        value=35.0,
        threshold=32.0,
        action="fan=ON",
        action_taken="fan=ON",
    )


# =============================================================================
# COLA
# =============================================================================

class TestBackpressureQueue:

    def test_fifo(self):
        queue = BackpressureQueue(BackpressureConfig(max_queue_size=10))
        for i in range(3):
            queue.put(i)

        assert [queue.get(timeout=0.1) for _ in range(3)] == [0, 1, 2]
        assert queue.get(timeout=0.01) is None

    def test_drop_oldest(self):
        queue = BackpressureQueue(BackpressureConfig(max_queue_size=2, drop_oldest=True))

        assert queue.put(1)
        assert queue.put(2)
        assert queue.put(3)

        assert queue.size == 2
        assert queue.get(timeout=0.1) == 2
        assert queue.get_stats()["dropped"] == 1

    def test_drop_newest(self):
        queue = BackpressureQueue(BackpressureConfig(max_queue_size=2, drop_oldest=False))
        queue.put(1)
        queue.put(2)

        assert queue.put(3) is False
        assert queue.get(timeout=0.1) == 1

    def test_join_waits_for_task_done(self):
        queue = BackpressureQueue(BackpressureConfig(max_queue_size=10))
        queue.put("x")
        assert queue.join(timeout=0.01) is False

        queue.get(timeout=0.1)
        queue.task_done()

        assert queue.join(timeout=0.1) is True

    def test_config_from_env(self, monkeypatch):
        monkeypatch.setenv("FOG_SINK_QUEUE_MAX_SIZE", "7")
        monkeypatch.setenv("FOG_SINK_DROP_OLDEST", "false")

        config = BackpressureConfig.from_env()

        assert config.max_queue_size == 7
        assert config.drop_oldest is False


# =============================================================================
# SINK ENCOLADO
# =============================================================================

class TestQueuedSink:

    @pytest.fixture
    def recording(self) -> RecordingSink:
        return RecordingSink()

    @pytest.fixture
    def sink(self, recording):
        queued = QueuedSink(recording, BackpressureConfig(max_queue_size=100), poll_interval=0.05)
        yield queued
        queued.close(timeout=1.0)

    def test_flush_delivers_in_order(self, sink, recording):
        assert sink.on_aggregates([_aggregate("A"), _aggregate("B")])
        assert sink.on_alerts([_alert()])

        assert sink.flush(timeout=2.0)

        assert [a.zone for a in recording.aggregates] == ["A", "B"]
        assert recording.alerts == [_alert()]
        assert sink.get_stats()["delivered_batches"] == 2

    def test_caller_batch_is_copied(self, sink, recording):
        batch = [_aggregate("A")]
        sink.on_aggregates(batch)
        batch.append(_aggregate("B"))

        sink.flush(timeout=2.0)

        assert len(recording.aggregates) == 1

    def test_does_not_block_caller(self):
        release = threading.Event()
        inner = MagicMock(spec=IEventSink)
        inner.on_alerts.side_effect = lambda batch: release.wait(2.0)
        queued = QueuedSink(inner, BackpressureConfig(max_queue_size=10), poll_interval=0.05)

        try:
            assert queued.on_alerts([_alert()]) is True
            assert queued.on_alerts([_alert("B")]) is True
        finally:
            release.set()
            queued.close(timeout=2.0)

        assert inner.on_alerts.call_count == 2

    def test_inner_failure_is_isolated(self):
        inner = MagicMock(spec=IEventSink)
        inner.on_alerts.side_effect = [RuntimeError("broker exploded"), True]
        queued = QueuedSink(inner, BackpressureConfig(max_queue_size=10), poll_interval=0.05)

        queued.on_alerts([_alert("A")])
        queued.on_alerts([_alert("B")])
        queued.close(timeout=2.0)

        stats = queued.get_stats()
        assert stats["failed_batches"] == 1
        assert stats["delivered_batches"] == 1
        assert inner.on_alerts.call_count == 2

    def test_close_rejects_new_batches(self, recording):
        queued = QueuedSink(recording, BackpressureConfig(max_queue_size=10), poll_interval=0.05)
        queued.close(timeout=1.0)

        assert queued.on_alerts([_alert()]) is False

    def test_close_drains_and_closes_inner(self):
        inner = MagicMock(spec=IEventSink)
        inner.on_aggregates.return_value = True
        queued = QueuedSink(inner, BackpressureConfig(max_queue_size=10), poll_interval=0.05)

        queued.on_aggregates([_aggregate()])
        queued.close(timeout=2.0)

        inner.on_aggregates.assert_called_once()
        inner.close.assert_called_once()


class TestLoggingSink:

    def test_logs_wire_payload(self, caplog):
        sink = LoggingSink()
        with caplog.at_level(logging.INFO, logger="fog_gateway.sinks.memory_sink"):
            sink.on_alerts([_alert()])
            sink.on_aggregates([_aggregate()])

        assert '"actionTaken": "fan=ON"' in caplog.text
        assert '"eventType": "AGGREGATE"' in caplog.text
        assert sink.get_stats()["events_logged"] == 2


class TestNullSink:

    def test_accepts_everything(self):
        sink = NullSink()
        assert sink.on_aggregates([_aggregate()]) is True
        assert sink.on_alerts([]) is True
        sink.close()
        assert sink.get_stats() == {"type": "NullSink"}
