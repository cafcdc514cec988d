"""Runtime configuration for the tracker.

Settings come from three layers, lowest priority first: the defaults on
:class:`Settings`, an optional YAML file and ``PARTSTRACKER_*`` environment
variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Final

import yaml
from pydantic import BaseModel, ConfigDict

BASE_DIR: Final[Path] = Path(__file__).resolve().parent.parent
CONFIG_ENV_FLAG: Final[str] = "PARTSTRACKER_CONFIG"

DEFAULT_CURRENCY: Final[str] = "PHP"
DEFAULT_USERNAME: Final[str] = "Anonymous User"
LOCAL_REGISTER_CURRENCY: Final[str] = "USD"

_ENV_OVERRIDES: Final[dict[str, str]] = {
    "PARTSTRACKER_DB_URL": "database_url",
    "PARTSTRACKER_LOCAL_STORE": "local_store_path",
    "PARTSTRACKER_DEFAULT_CURRENCY": "default_currency",
    "PARTSTRACKER_LOG_LEVEL": "log_level",
    "PARTSTRACKER_JSON_LOGS": "json_logs",
    "PARTSTRACKER_HOST": "host",
    "PARTSTRACKER_PORT": "port",
}


class Settings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    database_url: str = f"sqlite:///{BASE_DIR / 'partstracker.db'}"
    local_store_path: Path | None = BASE_DIR / "local_storage.json"
    default_currency: str = DEFAULT_CURRENCY
    default_username: str = DEFAULT_USERNAME
    log_level: str = "INFO"
    json_logs: bool = False
    host: str = "127.0.0.1"
    port: int = 8000


def _read_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        payload = yaml.safe_load(handle)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    return payload


def load_settings(path: str | Path | None = None) -> Settings:
    """Build :class:`Settings` from an optional YAML file and the environment."""

    values: dict[str, Any] = {}
    config_path = path or os.environ.get(CONFIG_ENV_FLAG)
    if config_path:
        values.update(_read_yaml(Path(config_path)))
    for env_name, field_name in _ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if raw is not None and raw.strip() != "":
            values[field_name] = raw.strip()
    return Settings.model_validate(values)


__all__ = [
    "DEFAULT_CURRENCY",
    "DEFAULT_USERNAME",
    "LOCAL_REGISTER_CURRENCY",
    "Settings",
    "load_settings",
]
