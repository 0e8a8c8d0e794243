"""Carga de configuración del gateway desde JSON + overrides de entorno."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from ..common.settings import Settings
from .models import ConfigurationError, GatewayConfig

logger = logging.getLogger(__name__)


def _apply_settings(raw: Dict[str, Any], settings: Optional[Settings]) -> Dict[str, Any]:
    """Las variables de entorno pisan al fichero (host MQTT, credenciales, ruta del buffer)."""
    if settings is None:
        return raw

    mqtt = dict(raw.get("mqtt") or {})
    if settings.mqtt_host:
        mqtt["host"] = settings.mqtt_host
    if settings.mqtt_port:
        mqtt["port"] = settings.mqtt_port
    if settings.mqtt_username:
        mqtt["username"] = settings.mqtt_username
    if settings.mqtt_password:
        mqtt["password"] = settings.mqtt_password

    buffer = dict(raw.get("buffer") or {})
    if settings.buffer_path:
        buffer["path"] = settings.buffer_path

    return {**raw, "mqtt": mqtt, "buffer": buffer}


def parse_config(
    raw: Dict[str, Any],
    *,
    strict: bool = False,
    settings: Optional[Settings] = None,
) -> GatewayConfig:
    """Valida un dict de configuración.

    Args:
        raw: Contenido del config.json ya decodificado
        strict: Si True, las reglas con problemas abortan la carga
        settings: Overrides de entorno opcionales

    Raises:
        ConfigurationError: estructura inválida o (strict) reglas inválidas
    """
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config root must be an object, got {type(raw).__name__}")

    try:
        config = GatewayConfig.model_validate(_apply_settings(raw, settings))
    except ValidationError as e:
        issues = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        ]
        raise ConfigurationError("Invalid gateway configuration", issues) from e

    issues = config.rule_issues()
    if issues:
        if strict:
            raise ConfigurationError("Invalid anomaly rules", issues)
        for issue in issues:
            logger.warning("[CONFIG] %s (rule will never match correctly)", issue)

    return config


def load_config(
    path: Union[str, Path],
    *,
    strict: bool = False,
    settings: Optional[Settings] = None,
) -> GatewayConfig:
    """Lee y valida el fichero de configuración."""
    config_path = Path(path)
    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigurationError(f"Config file not found: {config_path}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Config file is not valid JSON: {config_path} ({e})") from e

    config = parse_config(raw, strict=strict, settings=settings)
    logger.info(
        "[CONFIG] Loaded greenhouse=%s zones=%s rules=%d window=%.0fs",
        config.greenhouse_id,
        ",".join(config.zones),
        len(config.rules),
        config.window_duration_sec,
    )
    return config
