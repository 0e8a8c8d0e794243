"""Tests del buffer local de eventos (SQLite en memoria)."""

import pytest

from conftest import FakeClock
from fog_gateway.config import BufferConfig
from fog_gateway.sinks import EventBuffer


@pytest.fixture
def buffer_clock() -> FakeClock:
    return FakeClock(start=1000.0)


@pytest.fixture
def buffer(buffer_clock):
    config = BufferConfig(path=":memory:", max_retries=2, retry_delay_ms=[1000, 5000], max_buffer_size=5)
    buf = EventBuffer(config, clock=buffer_clock)
    yield buf
    buf.close()


# =============================================================================
# ALTA Y LECTURA
# =============================================================================

class TestAddAndRead:

    def test_new_event_is_ready_immediately(self, buffer):
        assert buffer.add("ALERT", {"zone": "A", "severity": "HIGH"})

        events = buffer.get_ready_events()

        assert len(events) == 1
        assert events[0].event_type == "ALERT"
        assert events[0].payload == {"zone": "A", "severity": "HIGH"}
        assert events[0].retry_count == 0

    def test_events_returned_oldest_first(self, buffer, buffer_clock):
        buffer.add("AGGREGATE", {"n": 1})
        buffer_clock.advance(1)
        buffer.add("AGGREGATE", {"n": 2})
        buffer.add("ALERT", {"n": 3})

        assert [e.payload["n"] for e in buffer.get_ready_events()] == [1, 2, 3]

    def test_limit(self, buffer):
        for i in range(4):
            buffer.add("AGGREGATE", {"n": i})
        assert len(buffer.get_ready_events(limit=2)) == 2

    def test_stats(self, buffer):
        buffer.add("AGGREGATE", {"n": 1})
        buffer.add("ALERT", {"n": 2})
        buffer.add("ALERT", {"n": 3})

        stats = buffer.get_stats()

        assert stats["total"] == 3
        assert stats["oldest_timestamp"] == 1_000_000
        assert stats["by_type"] == {"AGGREGATE": 1, "ALERT": 2}

    def test_eviction_keeps_newest(self, buffer):
        for i in range(7):
            buffer.add("AGGREGATE", {"n": i})

        assert buffer.count() == 5
        assert [e.payload["n"] for e in buffer.get_ready_events()] == [2, 3, 4, 5, 6]

    def test_delete_oldest(self, buffer, buffer_clock):
        for i in range(3):
            buffer.add("AGGREGATE", {"n": i})
            buffer_clock.advance(1)

        buffer.delete_oldest(2)

        assert [e.payload["n"] for e in buffer.get_ready_events()] == [2]

    def test_clear(self, buffer):
        buffer.add("ALERT", {})
        buffer.clear()
        assert buffer.count() == 0


# =============================================================================
# REINTENTOS
# =============================================================================

class TestRetry:

    def test_mark_success_removes(self, buffer):
        buffer.add("ALERT", {"n": 1})
        event = buffer.get_ready_events()[0]

        assert buffer.mark_success(event.id)
        assert buffer.count() == 0

    def test_mark_failed_backs_off(self, buffer, buffer_clock):
        buffer.add("ALERT", {"n": 1})
        event = buffer.get_ready_events()[0]

        assert buffer.mark_failed(event.id, "broker unavailable") is True
        assert buffer.get_ready_events() == []

        buffer_clock.advance(0.5)
        assert buffer.get_ready_events() == []

        buffer_clock.advance(0.5)
        retried = buffer.get_ready_events()
        assert len(retried) == 1
        assert retried[0].retry_count == 1

    def test_delay_follows_schedule(self, buffer, buffer_clock):
        buffer.add("ALERT", {"n": 1})
        event_id = buffer.get_ready_events()[0].id

        buffer.mark_failed(event_id, "e1")   # +1s
        buffer_clock.advance(1)
        buffer.mark_failed(event_id, "e2")   # +5s
        buffer_clock.advance(4)
        assert buffer.get_ready_events() == []
        buffer_clock.advance(1)
        assert buffer.get_ready_events()[0].retry_count == 2

    def test_dropped_after_max_retries(self, buffer, buffer_clock):
        buffer.add("ALERT", {"n": 1})
        event_id = buffer.get_ready_events()[0].id

        assert buffer.mark_failed(event_id, "e1") is True
        assert buffer.mark_failed(event_id, "e2") is True
        assert buffer.mark_failed(event_id, "e3") is False
        assert buffer.count() == 0

    def test_mark_failed_unknown_id(self, buffer):
        assert buffer.mark_failed(12345, "gone") is False


class TestFileBackedBuffer:

    def test_survives_reopen(self, tmp_path, buffer_clock):
        config = BufferConfig(path=str(tmp_path / "buffer.db"))

        first = EventBuffer(config, clock=buffer_clock)
        first.add("ALERT", {"zone": "B"})
        first.close()

        second = EventBuffer(config, clock=buffer_clock)
        try:
            assert [e.payload for e in second.get_ready_events()] == [{"zone": "B"}]
        finally:
            second.close()
