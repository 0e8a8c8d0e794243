"""Núcleo compartido: dominio, validación, listeners y timers."""

from .listeners import ListenerRegistry
from .timer import PeriodicTimer

__all__ = ["ListenerRegistry", "PeriodicTimer"]
