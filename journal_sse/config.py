"""Server configuration: defaults <- YAML file <- env vars <- CLI args."""

import logging
import os
from dataclasses import dataclass, fields

import yaml

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Config:
    host: str = "0.0.0.0"
    port: int = 8080
    default_unit: str = "wsprrypi.service"
    journalctl_path: str | None = None
    spawn_grace: float = 0.15      # seconds before the liveness check
    poll_timeout: float = 1.0      # select() bound; heartbeats depend on it
    restart_delay: float = 1.0     # wait after a failed follow spawn
    source_tag: str = "journal-sse"
    log_level: str = "INFO"


_ENV_VARS = {
    "host": "HOST",
    "port": "PORT",
    "default_unit": "DEFAULT_UNIT",
    "journalctl_path": "JOURNALCTL_PATH",
    "spawn_grace": "SPAWN_GRACE",
    "poll_timeout": "POLL_TIMEOUT",
    "restart_delay": "RESTART_DELAY",
    "source_tag": "SOURCE_TAG",
    "log_level": "LOG_LEVEL",
}

_CASTS = {
    "port": int,
    "spawn_grace": float,
    "poll_timeout": float,
    "restart_delay": float,
}


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    if not isinstance(data, dict):
        logger.warning("Config file %s is not a mapping, ignoring it", path)
        return {}
    logger.info("Loaded YAML config from %s", path)
    return data


def load_config(yaml_data: dict | None = None, overrides: dict | None = None, environ=None) -> Config:
    """Build Config, each layer overriding the previous one."""
    if environ is None:
        environ = os.environ
    known = {f.name for f in fields(Config)}
    kwargs: dict = {}

    for key, value in (yaml_data or {}).items():
        if key in known:
            kwargs[key] = value
        else:
            logger.warning("Ignoring unknown config key %r", key)

    for key, var in _ENV_VARS.items():
        if var in environ:
            kwargs[key] = environ[var]

    for key, value in (overrides or {}).items():
        if key in known and value is not None:
            kwargs[key] = value

    for key, cast in _CASTS.items():
        if key in kwargs:
            kwargs[key] = cast(kwargs[key])

    return Config(**kwargs)
