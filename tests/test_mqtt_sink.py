"""Tests del sink MQTT.

El cliente paho se sustituye por un MagicMock vía `client_factory`; el
buffer es SQLite en memoria.

Ejecutar:
    pytest tests/test_mqtt_sink.py -v
"""

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import paho.mqtt.client as mqtt
import pytest

from fog_gateway.core.domain.events import Alert, AlertType, Severity
from fog_gateway.sinks import EventBuffer, MQTTEventSink


def _alert(zone: str = "B") -> Alert:
    return Alert(
        zone=zone,
        timestamp=datetime(2026, 1, 31, 8, 0, tzinfo=timezone.utc),
        alert_type=AlertType.THRESHOLD_HIGH_SUSTAINED,
        severity=Severity.HIGH,
        metric="temperature",
        message="temperature sustained above threshold (31 > 30.0) for 3 readings in zone B",
        value=31.0,
        threshold=30.0,
        duration=18.0,
        action="fan=ON",
        action_taken="fan=ON",
        greenhouse_id="GH01",
        device_id="fog-gateway-GH01",
    )


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def mock_client():
    """Mock del cliente paho."""
    client = MagicMock()
    client.publish.return_value = MagicMock(rc=mqtt.MQTT_ERR_SUCCESS)
    return client


@pytest.fixture
def buffer(config, clock):
    buf = EventBuffer(config.buffer, clock=clock)
    yield buf
    buf.close()


@pytest.fixture
def sink(config, buffer, mock_client):
    mqtt_sink = MQTTEventSink(config, buffer, client_factory=lambda client_id: mock_client)
    yield mqtt_sink
    mqtt_sink.disconnect()


def _go_online(sink, client):
    """Conecta simulando el CONNACK del broker."""
    client.connect_async.side_effect = lambda *a, **kw: sink._on_connect(client, None, {}, 0)
    assert sink.connect(timeout=1.0)


# =============================================================================
# CONEXIÓN
# =============================================================================

class TestConnection:

    def test_connect_configures_client(self, sink, mock_client):
        _go_online(sink, mock_client)

        mock_client.connect_async.assert_called_once_with("localhost", 1883, keepalive=60)
        mock_client.loop_start.assert_called_once()
        assert sink.is_connected

    def test_connect_timeout_is_offline(self, sink, mock_client):
        assert sink.connect(timeout=0.01) is False
        assert not sink.is_connected

    def test_connect_setup_error_is_offline(self, sink, mock_client):
        mock_client.connect_async.side_effect = OSError("no route to host")

        assert sink.connect(timeout=0.01) is False

    def test_credentials(self, raw_config, clock, mock_client):
        from fog_gateway.config import parse_config

        raw_config["mqtt"].update({"username": "gw", "password": "secret"})
        config = parse_config(raw_config)
        buffer = EventBuffer(config.buffer, clock=clock)
        sink = MQTTEventSink(config, buffer, client_factory=lambda client_id: mock_client)

        sink.connect(timeout=0.01)

        mock_client.username_pw_set.assert_called_once_with("gw", "secret")
        sink.close()

    def test_refused_connection(self, sink, mock_client):
        sink.connect(timeout=0.01)
        sink._on_connect(mock_client, None, {}, 5)
        assert not sink.is_connected

    def test_disconnect_callback(self, sink, mock_client):
        _go_online(sink, mock_client)
        sink._on_disconnect(mock_client, None, {}, 7)
        assert not sink.is_connected


# =============================================================================
# PUBLICACIÓN
# =============================================================================

class TestPublish:

    def test_topics(self, sink):
        assert sink.topic_for("AGGREGATE") == "greenhouse/GH01/telemetry"
        assert sink.topic_for("ALERT") == "greenhouse/GH01/alerts"
        assert sink.topic_for("OTHER") == "greenhouse/GH01/unknown"

    def test_offline_events_are_buffered(self, sink, buffer, mock_client):
        assert sink.on_alerts([_alert()]) is False

        mock_client.publish.assert_not_called()
        events = buffer.get_ready_events()
        assert len(events) == 1
        assert events[0].event_type == "ALERT"
        assert events[0].payload["actionTaken"] == "fan=ON"
        assert sink.get_stats()["buffered"] == 1

    def test_online_publish(self, sink, buffer, mock_client):
        _go_online(sink, mock_client)

        assert sink.on_alerts([_alert()]) is True

        topic, body = mock_client.publish.call_args.args
        assert topic == "greenhouse/GH01/alerts"
        assert mock_client.publish.call_args.kwargs == {"qos": 1}
        payload = json.loads(body)
        assert payload["alertType"] == "THRESHOLD_HIGH_SUSTAINED"
        assert payload["duration"] == 18.0
        assert buffer.count() == 0
        assert sink.get_stats()["published"] == 1

    def test_publish_error_goes_to_buffer(self, sink, buffer, mock_client):
        _go_online(sink, mock_client)
        mock_client.publish.return_value = MagicMock(rc=mqtt.MQTT_ERR_NO_CONN)

        assert sink.on_alerts([_alert()]) is False
        assert buffer.count() == 1

    def test_publish_exception_goes_to_buffer(self, sink, buffer, mock_client):
        _go_online(sink, mock_client)
        mock_client.publish.side_effect = RuntimeError("socket closed")

        assert sink.on_alerts([_alert("A"), _alert("B")]) is False
        assert buffer.count() == 2


# =============================================================================
# REINTENTO DEL BUFFER
# =============================================================================

class TestBufferedRetry:

    def test_buffer_flushed_on_connect(self, sink, buffer, mock_client):
        sink.on_alerts([_alert("A"), _alert("B")])
        assert buffer.count() == 2

        _go_online(sink, mock_client)

        assert buffer.count() == 0
        zones = [json.loads(call.args[1])["zone"] for call in mock_client.publish.call_args_list]
        assert zones == ["A", "B"]

    def test_failed_retry_is_rescheduled(self, sink, buffer, mock_client, clock):
        sink.on_alerts([_alert()])
        mock_client.publish.return_value = MagicMock(rc=mqtt.MQTT_ERR_NO_CONN)

        _go_online(sink, mock_client)

        assert buffer.count() == 1
        assert buffer.get_ready_events() == []

        mock_client.publish.return_value = MagicMock(rc=mqtt.MQTT_ERR_SUCCESS)
        clock.advance(1)
        assert sink.process_buffered_events() == 1
        assert buffer.count() == 0

    def test_no_retry_while_offline(self, sink, buffer, mock_client):
        sink.on_alerts([_alert()])

        assert sink.process_buffered_events() == 0
        mock_client.publish.assert_not_called()

    def test_close_releases_buffer(self, sink, buffer, mock_client):
        _go_online(sink, mock_client)
        sink.close()

        mock_client.loop_stop.assert_called_once()
        mock_client.disconnect.assert_called_once()
        assert not sink.is_connected
