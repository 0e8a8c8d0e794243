"""Fog gateway: agregación por ventanas y detección de anomalías en el borde."""

__version__ = "0.1.0"
