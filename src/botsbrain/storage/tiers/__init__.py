# src/botsbrain/storage/tiers/__init__.py
"""
Storage Tiers Package.

Tiers, from fastest and most volatile to slowest and durable:

- **VolatileMemoryTier** (hot): in-process dict with per-entry TTL
- **RedisCacheTier** (warm): shared Redis cache with TTL
- **PostgresStorageTier** (cold): durable PostgreSQL key-value table

Architecture::

    VolatileMemoryTier → RedisCacheTier → PostgresStorageTier
         (memory)           (Redis)           (PostgreSQL)
"""

from .cached import (
    DEFAULT_WARM_TTL_SECONDS,
    RedisCacheConfig,
    RedisCacheTier,
    create_cached_tier,
)
from .persistent import (
    PostgresStorageConfig,
    PostgresStorageTier,
    create_persistent_tier,
)
from .volatile import (
    DEFAULT_HOT_TTL_SECONDS,
    VolatileItem,
    VolatileMemoryConfig,
    VolatileMemoryTier,
    create_volatile_tier,
)

__all__ = [
    # Volatile (hot)
    "DEFAULT_HOT_TTL_SECONDS",
    "VolatileItem",
    "VolatileMemoryConfig",
    "VolatileMemoryTier",
    "create_volatile_tier",
    # Cached (warm)
    "DEFAULT_WARM_TTL_SECONDS",
    "RedisCacheConfig",
    "RedisCacheTier",
    "create_cached_tier",
    # Persistent (cold)
    "PostgresStorageConfig",
    "PostgresStorageTier",
    "create_persistent_tier",
]
