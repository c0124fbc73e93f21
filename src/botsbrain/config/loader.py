# src/botsbrain/config/loader.py
"""
Configuration loading for botsbrain.

Configuration is loaded and merged in order:
    1. Default values (the pydantic model defaults)
    2. TOML config file
    3. Environment variables
    4. Runtime overrides

Environment variables use the ``BOTSBRAIN_`` prefix with ``__`` between
nesting levels::

    BOTSBRAIN_STORAGE__WARM__URL=redis://cache:6379/0
    BOTSBRAIN_STORAGE__COLD__DSN=postgresql://bot:secret@db/bot
    BOTSBRAIN_STORAGE__HOT__DEFAULT_TTL_SECONDS=3600

The bot's conventional variables are honoured when the prefixed form is
absent: ``PLATFORM_REDIS_URL`` for the warm tier and ``POSTGRES_URL`` (or
``DATABASE_URL``) for the cold tier.
"""

import logging
import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..exceptions import ConfigError
from .models import BotsBrainConfig

logger = logging.getLogger(__name__)

ENV_PREFIX = "BOTSBRAIN_"
ENV_CONFIG_PATH = "BOTSBRAIN_CONFIG_PATH"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "botsbrain" / "config.toml"

# (environment variable, config path) pairs, checked in order
LEGACY_ENV_VARS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("PLATFORM_REDIS_URL", ("storage", "warm", "url")),
    ("POSTGRES_URL", ("storage", "cold", "dsn")),
    ("DATABASE_URL", ("storage", "cold", "dsn")),
)


def _deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Merge *override* into a copy of *base*, recursing into nested dicts."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, Mapping):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _set_path(config: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    node = config
    for part in path[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[path[-1]] = value


def _get_path(config: Mapping[str, Any], path: tuple[str, ...]) -> Any:
    node: Any = config
    for part in path:
        if not isinstance(node, Mapping) or part not in node:
            return None
        node = node[part]
    return node


def _parse_env_value(value: str) -> Any:
    """
    Parse an environment variable value.

    Booleans and ``none``/``null`` are recognised; everything else is left
    as a string for pydantic to coerce against the field type.
    """
    lowered = value.strip().lower()
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False
    if lowered in ("none", "null"):
        return None
    return value.strip()


def load_toml_config(config_path: Path | None = None) -> dict[str, Any]:
    """
    Load configuration from a TOML file.

    A missing file yields an empty dict; an unreadable or malformed one is a
    :class:`ConfigError`.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if not config_path.exists():
        logger.debug("Config file not found: %s", config_path)
        return {}

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Failed to load config from {config_path}: {e}") from e

    logger.debug("Loaded config from %s", config_path)
    return data


def env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """Collect configuration overrides from environment variables."""
    overrides: dict[str, Any] = {}

    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX) or key == ENV_CONFIG_PATH:
            continue
        parts = tuple(p for p in key[len(ENV_PREFIX):].lower().split("__") if p)
        if parts:
            _set_path(overrides, parts, _parse_env_value(value))

    for var, path in LEGACY_ENV_VARS:
        value = environ.get(var)
        if value and _get_path(overrides, path) is None:
            _set_path(overrides, path, value.strip())

    return overrides


def load_config(
    config_path: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> BotsBrainConfig:
    """
    Load the complete botsbrain configuration.

    Args:
        config_path: TOML file to read. Defaults to ``$BOTSBRAIN_CONFIG_PATH``
            or ``~/.config/botsbrain/config.toml``.
        overrides: Runtime overrides, applied last.
        environ: Environment mapping (defaults to ``os.environ``).

    Returns:
        Validated BotsBrainConfig.

    Raises:
        ConfigError: If the file cannot be parsed or any value is invalid.
    """
    environ = os.environ if environ is None else environ

    if config_path is None and environ.get(ENV_CONFIG_PATH):
        config_path = environ[ENV_CONFIG_PATH]
    path = Path(config_path).expanduser() if config_path is not None else None

    config: dict[str, Any] = {}
    config = _deep_merge(config, load_toml_config(path))
    config = _deep_merge(config, env_overrides(environ))
    if overrides:
        config = _deep_merge(config, overrides)

    try:
        return BotsBrainConfig.model_validate(config)
    except ValidationError as e:
        raise ConfigError(f"Invalid botsbrain configuration: {e}") from e


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "ENV_PREFIX",
    "env_overrides",
    "load_config",
    "load_toml_config",
]
