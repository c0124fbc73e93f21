# src/botsbrain/config/__init__.py
"""
Configuration module for botsbrain.

Configuration files:
    - User config: ~/.config/botsbrain/config.toml
    - Custom config: ``load_config(config_path=...)`` or ``$BOTSBRAIN_CONFIG_PATH``

Environment variables:
    - Prefix: BOTSBRAIN_
    - Nested keys use double underscores: BOTSBRAIN_STORAGE__WARM__URL
"""

from .loader import env_overrides, load_config, load_toml_config
from .models import BotsBrainConfig, StorageConfig

__all__ = [
    "BotsBrainConfig",
    "StorageConfig",
    "env_overrides",
    "load_config",
    "load_toml_config",
]
