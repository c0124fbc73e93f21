# src/botsbrain/exceptions.py
"""
Custom exceptions for the botsbrain package.

This module defines the exception hierarchy raised by the tiered storage
layer and the bot store built on top of it, so callers can tell a
misconfiguration apart from a transient connectivity problem or a value
that cannot be stored.
"""


class BotsBrainError(Exception):
    """Base class for all botsbrain specific errors."""
    def __init__(self, message: str = "An unspecified error occurred in botsbrain."):
        super().__init__(message)

class ConfigError(BotsBrainError):
    """Raised for malformed configuration or connection parameters."""
    def __init__(self, message: str = "Configuration error."):
        super().__init__(message)

class StorageError(BotsBrainError):
    """Base class for errors related to storage operations."""
    def __init__(self, message: str = "Storage error."):
        super().__init__(message)

class TierUnavailableError(StorageError):
    """
    Raised when a networked tier (Redis or PostgreSQL) cannot be reached
    or rejects an operation.
    """
    def __init__(self, tier: str = "unknown", message: str = "Tier unavailable."):
        self.tier = tier
        super().__init__(f"Storage tier '{tier}' unavailable: {message}")

class DurabilityWriteError(StorageError):
    """Raised when the durable (cold) write of a ``set`` fails."""
    def __init__(self, key: str, message: str = "Durable write failed."):
        self.key = key
        super().__init__(f"{message} Key: '{key}'")

class SerializationError(StorageError):
    """Raised when a value cannot be encoded to or decoded from JSON."""
    def __init__(self, key: str, message: str = "Value could not be serialized."):
        self.key = key
        super().__init__(f"{message} Key: '{key}'")
