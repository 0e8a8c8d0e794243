"""CLI entry point for the fog gateway."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from typing import Optional

from .common.settings import get_settings
from .config import ConfigurationError, GatewayConfig, load_config
from .core.domain.sink_interface import IEventSink
from .gateway import FogGateway
from .sinks import EventBuffer, LoggingSink, MQTTEventSink, QueuedSink
from .sinks.backpressure import BackpressureConfig

logger = logging.getLogger(__name__)


def build_sink(config: GatewayConfig, use_mqtt: bool = True) -> IEventSink:
    """Sink de producción: MQTT + buffer local, o log si no hay broker."""
    if not use_mqtt:
        logger.info("[MAIN] MQTT disabled, events will be logged only")
        return QueuedSink(LoggingSink(), BackpressureConfig.from_env())

    buffer = EventBuffer(config.buffer)
    mqtt_sink = MQTTEventSink(config, buffer)
    if not mqtt_sink.connect():
        logger.warning("[MAIN] Broker not reachable, buffering events until it is")
    return QueuedSink(mqtt_sink, BackpressureConfig.from_env())


def _start_status_server(gateway: FogGateway, port: int) -> threading.Thread:
    import uvicorn

    from .api import create_status_app

    server = uvicorn.Server(
        uvicorn.Config(create_status_app(gateway), host="0.0.0.0", port=port, log_level="warning")
    )
    thread = threading.Thread(target=server.run, name="status-api", daemon=True)
    thread.start()
    logger.info("[MAIN] Status API listening on :%d", port)
    return thread


def main(argv: Optional[list] = None) -> int:
    settings = get_settings()

    p = argparse.ArgumentParser(description="Fog gateway: aggregation + anomaly detection at the edge")
    p.add_argument("--config", default=settings.config_path, help="path to config.json")
    p.add_argument("--duration", type=float, default=None, help="run for N seconds then exit")
    p.add_argument("--log-level", default=settings.log_level)
    p.add_argument("--no-mqtt", action="store_true", help="log events instead of publishing")
    p.add_argument("--status-port", type=int, default=settings.status_port)
    p.add_argument("--strict", action="store_true", help="fail on invalid anomaly rules")
    args = p.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    try:
        config = load_config(args.config, strict=args.strict, settings=settings)
    except ConfigurationError as e:
        logger.error("[MAIN] %s", e)
        return 1

    gateway = FogGateway(config, build_sink(config, use_mqtt=not args.no_mqtt))

    stop_event = threading.Event()

    def _handle_signal(signum, _frame):
        logger.info("[MAIN] Received signal %s", signal.Signals(signum).name)
        stop_event.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    gateway.start()
    if args.status_port:
        _start_status_server(gateway, args.status_port)

    try:
        stop_event.wait(timeout=args.duration)
    finally:
        gateway.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
