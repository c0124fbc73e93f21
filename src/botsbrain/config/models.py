# src/botsbrain/config/models.py
"""
Pydantic models for botsbrain configuration.

Each storage tier keeps its config model next to its implementation;
:class:`~botsbrain.storage.tiered_cache.StorageConfig` composes them and
is nested here under ``storage``.
"""

from typing import Any

from pydantic import BaseModel, Field

from ..storage.tiered_cache import StorageConfig


class BotsBrainConfig(BaseModel):
    """Top-level configuration."""

    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: dict[str, Any] = Field(
        default_factory=dict,
        description="Overrides for botsbrain.logging_config.DEFAULT_LOGGING_CONFIG",
    )


__all__ = ["BotsBrainConfig", "StorageConfig"]
