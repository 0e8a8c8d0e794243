from .sensors import SensorSimulator

__all__ = ["SensorSimulator"]
