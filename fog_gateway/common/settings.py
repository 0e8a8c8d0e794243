from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def _default_env_file() -> str:
    # .env junto a la raíz del repo, compartido con los scripts de despliegue.
    repo_root = Path(__file__).resolve().parents[2]
    return str(repo_root / ".env")


def _default_config_file() -> str:
    repo_root = Path(__file__).resolve().parents[2]
    return str(repo_root / "config.json")


@dataclass(frozen=True)
class Settings:
    config_path: str
    log_level: str

    buffer_path: Optional[str]

    mqtt_host: Optional[str]
    mqtt_port: Optional[int]
    mqtt_username: Optional[str]
    mqtt_password: Optional[str]

    status_port: Optional[int]


def _optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else None


def get_settings() -> Settings:
    # Carga el .env (si existe) sin pisar variables reales del entorno.
    env_file = os.getenv("FOG_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    return Settings(
        config_path=os.getenv("FOG_CONFIG_PATH", _default_config_file()),
        log_level=os.getenv("FOG_LOG_LEVEL", "INFO").upper(),
        buffer_path=os.getenv("FOG_BUFFER_PATH") or None,
        mqtt_host=os.getenv("MQTT_HOST") or None,
        mqtt_port=_optional_int("MQTT_PORT"),
        mqtt_username=os.getenv("MQTT_USERNAME") or None,
        mqtt_password=os.getenv("MQTT_PASSWORD") or None,
        status_port=_optional_int("FOG_STATUS_PORT"),
    )
