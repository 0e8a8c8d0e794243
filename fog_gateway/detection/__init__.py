from .actuators import ActuatorRegistry, parse_action
from .detector import AnomalyDetector
from .rules import RuleEvaluator
from .trackers import RuleKey, SilentTracker, StuckTracker, SustainedTracker

__all__ = [
    "ActuatorRegistry",
    "parse_action",
    "AnomalyDetector",
    "RuleEvaluator",
    "RuleKey",
    "SilentTracker",
    "StuckTracker",
    "SustainedTracker",
]
