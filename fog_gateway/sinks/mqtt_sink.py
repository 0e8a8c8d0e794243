"""Sink MQTT: publica agregados y alertas al broker.

Si no hay conexión, o la publicación falla, el evento va al EventBuffer y
se reintenta periódicamente mientras haya conexión.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Callable, List, Optional

import paho.mqtt.client as mqtt

from ..config.models import GatewayConfig
from ..core.domain.events import Aggregate, Alert, EventType
from ..core.domain.sink_interface import IEventSink
from ..core.timer import PeriodicTimer
from .event_buffer import EventBuffer

logger = logging.getLogger(__name__)

RETRY_BATCH_SIZE = 50


def _default_client_factory(client_id: str) -> mqtt.Client:
    return mqtt.Client(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        client_id=client_id,
        protocol=mqtt.MQTTv311,
    )


class MQTTEventSink(IEventSink):
    """Publicador MQTT con buffer offline.

    Responsabilidades:
    - Conexión/desconexión al broker (paho gestiona las reconexiones)
    - Resolución de topics por tipo de evento
    - Buffer + reintento de lo que no se pudo publicar
    """

    def __init__(
        self,
        config: GatewayConfig,
        buffer: EventBuffer,
        client_factory: Callable[[str], mqtt.Client] = _default_client_factory,
    ):
        self._config = config
        self._mqtt = config.mqtt
        self._buffer = buffer
        self._client_factory = client_factory

        self._client: Optional[mqtt.Client] = None
        self._connected = threading.Event()
        self._retry_timer: Optional[PeriodicTimer] = None
        self._retry_lock = threading.Lock()

        self.published = 0
        self.buffered = 0

    # ------------------------------------------------------------------
    # Conexión
    # ------------------------------------------------------------------

    def connect(self, timeout: float = 5.0) -> bool:
        """Conecta al broker. Si no llega a conectar, queda en modo offline.

        Returns:
            True si la conexión se estableció dentro del timeout
        """
        try:
            self._client = self._client_factory(self._mqtt.client_id)
            self._client.on_connect = self._on_connect
            self._client.on_disconnect = self._on_disconnect

            if self._mqtt.username and self._mqtt.password:
                self._client.username_pw_set(self._mqtt.username, self._mqtt.password)

            logger.info("[MQTT] Connecting to %s:%d", self._mqtt.host, self._mqtt.port)
            self._client.reconnect_delay_set(min_delay=1, max_delay=60)
            self._client.connect_async(self._mqtt.host, self._mqtt.port, keepalive=60)
            self._client.loop_start()
        except Exception as e:
            logger.error("[MQTT] Connection setup failed: %s. Running in OFFLINE mode", e)
            return False

        if self._connected.wait(timeout):
            return True

        logger.warning("[MQTT] Not connected after %.1fs, events will be buffered locally", timeout)
        return False

    def disconnect(self) -> None:
        self._stop_retry_timer()
        if self._client is not None:
            try:
                self._client.loop_stop()
                self._client.disconnect()
            except Exception as e:
                logger.warning("[MQTT] Disconnect error: %s", e)
            self._client = None
        self._connected.clear()
        logger.info("[MQTT] Disconnected")

    def close(self) -> None:
        self.disconnect()
        self._buffer.close()

    @property
    def is_connected(self) -> bool:
        return self._connected.is_set()

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code == 0:
            self._connected.set()
            logger.info("[MQTT] Connected to broker")
            self.process_buffered_events()
            self._start_retry_timer()
        else:
            self._connected.clear()
            logger.error("[MQTT] Connection refused: %s", reason_code)

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        self._connected.clear()
        logger.warning("[MQTT] Disconnected (%s)", reason_code)

    # ------------------------------------------------------------------
    # Publicación
    # ------------------------------------------------------------------

    def topic_for(self, event_type: str) -> str:
        greenhouse_id = self._config.greenhouse_id
        if event_type == EventType.AGGREGATE.value:
            template = self._mqtt.topic_telemetry
        elif event_type == EventType.ALERT.value:
            template = self._mqtt.topic_alerts
        else:
            return f"greenhouse/{greenhouse_id}/unknown"
        return template.replace("{greenhouseId}", greenhouse_id)

    def on_aggregates(self, aggregates: List[Aggregate]) -> bool:
        return self._publish_all(EventType.AGGREGATE.value, [a.to_payload() for a in aggregates])

    def on_alerts(self, alerts: List[Alert]) -> bool:
        return self._publish_all(EventType.ALERT.value, [a.to_payload() for a in alerts])

    def _publish_all(self, event_type: str, payloads: List[dict]) -> bool:
        """Publica cada evento; lo que falle queda en buffer.

        Returns:
            True si todos salieron al broker
        """
        ok = True
        for payload in payloads:
            if not self.publish(event_type, payload):
                ok = False
        return ok

    def publish(self, event_type: str, payload: dict) -> bool:
        if not self.is_connected:
            logger.debug("[MQTT] Offline - buffering %s event", event_type)
            self._buffer_event(event_type, payload)
            return False

        error = self._try_publish(event_type, payload)
        if error is None:
            self.published += 1
            logger.debug("[MQTT] Published %s to %s", event_type, self.topic_for(event_type))
            return True

        logger.error("[MQTT] Publish failed: %s", error)
        self._buffer_event(event_type, payload)
        return False

    def _try_publish(self, event_type: str, payload: dict) -> Optional[str]:
        """Devuelve None si paho aceptó el mensaje, o el error."""
        client = self._client
        if client is None:
            return "client not initialized"
        try:
            info = client.publish(
                self.topic_for(event_type), json.dumps(payload), qos=self._mqtt.qos
            )
        except Exception as e:
            return str(e)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            return mqtt.error_string(info.rc)
        return None

    def _buffer_event(self, event_type: str, payload: dict) -> None:
        if self._buffer.add(event_type, payload):
            self.buffered += 1

    # ------------------------------------------------------------------
    # Reintento
    # ------------------------------------------------------------------

    def process_buffered_events(self) -> int:
        """Reintenta los eventos listos del buffer.

        Returns:
            Número de eventos reenviados con éxito
        """
        if not self.is_connected:
            return 0
        if not self._retry_lock.acquire(blocking=False):
            return 0  # ya hay un reintento en curso
        try:
            events = self._buffer.get_ready_events(RETRY_BATCH_SIZE)
            if not events:
                return 0

            logger.info("[MQTT] Processing %d buffered events...", len(events))
            sent = 0
            for event in events:
                error = self._try_publish(event.event_type, event.payload)
                if error is None:
                    self._buffer.mark_success(event.id)
                    sent += 1
                else:
                    logger.error("[MQTT] Retry failed: %s (id=%s)", error, event.id)
                    self._buffer.mark_failed(event.id, error)

            remaining = self._buffer.count()
            if remaining:
                logger.info("[MQTT] Buffer status: %d events remaining", remaining)
            return sent
        finally:
            self._retry_lock.release()

    def _start_retry_timer(self) -> None:
        if self._retry_timer is not None:
            return
        self._retry_timer = PeriodicTimer(
            "mqtt-retry", self._mqtt.retry_interval_sec, self.process_buffered_events
        )
        self._retry_timer.start()

    def _stop_retry_timer(self) -> None:
        if self._retry_timer is not None:
            self._retry_timer.stop()
            self._retry_timer = None

    def get_stats(self) -> dict:
        return {
            "type": type(self).__name__,
            "connected": self.is_connected,
            "published": self.published,
            "buffered": self.buffered,
            "buffer": self._buffer.get_stats(),
        }
