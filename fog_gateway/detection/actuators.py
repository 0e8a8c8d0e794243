"""Estado simulado de actuadores (fan, irrigation, vent, shade...)."""

from __future__ import annotations

import copy
import logging
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)


def parse_action(action: str) -> Optional[Tuple[str, str]]:
    """Parsea "actuador=ESTADO". Devuelve None si el formato no es válido."""
    actuator, sep, state = action.partition("=")
    actuator, state = actuator.strip(), state.strip()
    if not sep or not actuator or not state:
        return None
    return actuator, state


class ActuatorRegistry:
    """zona -> actuador -> estado. Vive lo que vive el proceso."""

    def __init__(self):
        self._states: Dict[str, Dict[str, str]] = {}

    def apply(self, zone: str, action: str) -> bool:
        """Aplica una acción; False si la acción está mal formada."""
        parsed = parse_action(action)
        if parsed is None:
            logger.warning("[ACTUATORS] Malformed action %r for zone %s", action, zone)
            return False

        actuator, state = parsed
        self._states.setdefault(zone, {})[actuator] = state
        logger.info("[ACTUATORS] ACTION TAKEN: zone %s -> %s", zone, action)
        return True

    def get(self, zone: str, actuator: str) -> Optional[str]:
        return self._states.get(zone, {}).get(actuator)

    def snapshot(self) -> Dict[str, Dict[str, str]]:
        return copy.deepcopy(self._states)
