from .aggregator import WindowAggregator
from .window_stats import MetricWindowStats, WindowSnapshot

__all__ = ["WindowAggregator", "MetricWindowStats", "WindowSnapshot"]
