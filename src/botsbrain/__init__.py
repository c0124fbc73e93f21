# src/botsbrain/__init__.py
"""
botsbrain - tiered conversation-state storage for chat bots.

A three-tier cache-aside store (in-process memory, Redis, PostgreSQL)
exposed as one async key-value interface, plus BotsStore, which keeps
tickets, customers, users and setup state for a Telegram support bot.
"""

from importlib.metadata import PackageNotFoundError, version

from .config import BotsBrainConfig, load_config
from .exceptions import (
    BotsBrainError,
    ConfigError,
    DurabilityWriteError,
    SerializationError,
    StorageError,
    TierUnavailableError,
)
from .logging_config import configure_logging, log_display
from .storage import StorageConfig, TieredCache
from .store import BotsStore

try:
    __version__ = version("botsbrain")
except PackageNotFoundError:
    __version__ = "0.0.0"


__all__ = [
    # Storage
    "TieredCache",
    "StorageConfig",
    "BotsStore",

    # Configuration
    "BotsBrainConfig",
    "load_config",
    "configure_logging",
    "log_display",

    # Exceptions
    "BotsBrainError",
    "ConfigError",
    "StorageError",
    "TierUnavailableError",
    "DurabilityWriteError",
    "SerializationError",

    "__version__",
]
