"""Timer periódico sobre un hilo daemon.

Sustituye a setInterval: ejecuta `callback` cada `interval_seconds` hasta
que se llama a `stop()`. Los errores del callback se loguean y el timer
sigue corriendo.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTimer:
    """Ejecuta un callback a intervalo fijo en un hilo propio."""

    def __init__(self, name: str, interval_seconds: float, callback: Callable[[], object]):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be > 0, got {interval_seconds}")
        self.name = name
        self.interval_seconds = float(interval_seconds)
        self._callback = callback
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self.ticks = 0

    @property
    def running(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run, name=f"timer-{self.name}", daemon=True
            )
            self._thread.start()
        logger.debug("[TIMER] %s started (%.2fs)", self.name, self.interval_seconds)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Detiene el timer y espera a que termine el tick en curso."""
        with self._lock:
            thread = self._thread
            self._thread = None
        self._stop_event.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        logger.debug("[TIMER] %s stopped", self.name)

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            self.ticks += 1
            try:
                self._callback()
            except Exception:
                logger.exception("[TIMER] %s callback failed", self.name)
