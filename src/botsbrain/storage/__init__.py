# src/botsbrain/storage/__init__.py
"""
Storage package: the tiered key-value cache and its tiers.
"""

from .codec import decode_value, encode_value
from .tiered_cache import StorageConfig, TieredCache
from .tiers import (
    PostgresStorageConfig,
    PostgresStorageTier,
    RedisCacheConfig,
    RedisCacheTier,
    VolatileMemoryConfig,
    VolatileMemoryTier,
)

__all__ = [
    "PostgresStorageConfig",
    "PostgresStorageTier",
    "RedisCacheConfig",
    "RedisCacheTier",
    "StorageConfig",
    "TieredCache",
    "VolatileMemoryConfig",
    "VolatileMemoryTier",
    "decode_value",
    "encode_value",
]
