# src/botsbrain/storage/tiers/cached.py
"""
Cached Storage Tier - Redis-backed warm cache.

This tier sits between the volatile (in-process) tier and the persistent
(PostgreSQL) tier.  It provides:

- A cache shared by every bot instance that points at the same Redis
- Per-item TTL with millisecond precision (default three days)
- JSON text values, written and read verbatim

Architecture:
    VolatileMemoryTier (hot) → **RedisCacheTier (warm)** → PostgresStorageTier (cold)

Example::

    from botsbrain.storage.tiers.cached import RedisCacheTier, RedisCacheConfig

    tier = RedisCacheTier(RedisCacheConfig(url="redis://localhost:6379/0"))
    await tier.initialize()
    await tier.set("user:state:42", '{"field":"summary"}')
    raw = await tier.get("user:state:42")
    await tier.close()

Connection and command failures are raised as
:class:`~botsbrain.exceptions.TierUnavailableError`; deciding whether that
is fatal is left to the caller.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlsplit

import redis.asyncio as aioredis
from pydantic import BaseModel, Field, field_validator
from redis.exceptions import RedisError

from ...exceptions import ConfigError, SerializationError, TierUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_WARM_TTL_SECONDS = 3 * 24 * 60 * 60
REDIS_URL_SCHEMES = ("redis", "rediss", "unix")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class RedisCacheConfig(BaseModel):
    """Configuration for the cached (warm) storage tier.

    Attributes:
        enabled: Whether this tier is built when a URL is present.
        url: Redis connection URL. Empty string means no warm tier.
        default_ttl_seconds: TTL applied when a write gives none (None = no expiry).
        key_prefix: Optional namespace prepended to every key.
    """

    enabled: bool = Field(default=True, description="Enable the Redis tier")
    url: str = Field(default="", description="Redis URL, e.g. redis://localhost:6379/0")
    default_ttl_seconds: float | None = Field(
        default=DEFAULT_WARM_TTL_SECONDS, gt=0, description="Default TTL in seconds (None=forever)"
    )
    key_prefix: str = Field(default="", description="Namespace prefix for all keys")

    @field_validator("url")
    @classmethod
    def check_url(cls, value: str) -> str:
        value = value.strip()
        if not value:
            return value
        parts = urlsplit(value)
        if parts.scheme not in REDIS_URL_SCHEMES:
            raise ValueError(
                f"Redis URL must use one of {', '.join(REDIS_URL_SCHEMES)}; got '{value}'"
            )
        # urlsplit only parses the port lazily
        parts.port
        return value

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.url)


# ---------------------------------------------------------------------------
# Cached tier implementation
# ---------------------------------------------------------------------------


class RedisCacheTier:
    """Async Redis key-value tier.

    A client may be injected (e.g. one shared with other parts of the
    bot); an injected client is never closed by this tier and survives
    close() so the tier can be initialized again.  Byte replies from a
    client built without ``decode_responses`` are decoded as UTF-8.

    Args:
        config: Tier configuration.
        client: Optional pre-built ``redis.asyncio.Redis`` instance.
    """

    name = "warm"

    def __init__(
        self,
        config: RedisCacheConfig | None = None,
        client: Any | None = None,
    ) -> None:
        self._config = config or RedisCacheConfig()
        self._client: Any = client
        self._owns_client = client is None
        self._connected = False
        self._stats = {"hits": 0, "misses": 0, "sets": 0, "deletes": 0, "errors": 0}

    @property
    def default_ttl_seconds(self) -> float | None:
        return self._config.default_ttl_seconds

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def initialize(self) -> None:
        """Connect to Redis (unless a client was injected) and verify with PING.

        Raises:
            TierUnavailableError: If the server cannot be reached.
            ConfigError: If the URL cannot be parsed by the Redis client.
        """
        if self._client is None:
            if not self._config.url:
                raise TierUnavailableError(self.name, "no Redis URL configured")
            try:
                self._client = aioredis.from_url(self._config.url, decode_responses=True)
            except ValueError as e:
                raise ConfigError(f"Invalid Redis URL '{self._config.url}': {e}") from e
            self._owns_client = True
        try:
            await self._client.ping()
        except (RedisError, OSError) as e:
            await self._discard_client()
            raise TierUnavailableError(self.name, str(e)) from e
        self._connected = True
        logger.info("RedisCacheTier connected.")

    async def get(self, key: str) -> str | None:
        """Return the stored text for *key*, or None on miss."""
        client = self._require_client()
        try:
            value = await client.get(self._key(key))
        except (RedisError, OSError) as e:
            self._stats["errors"] += 1
            raise TierUnavailableError(self.name, f"GET {key} failed: {e}") from e
        self._stats["hits" if value is not None else "misses"] += 1
        if isinstance(value, bytes):
            try:
                return value.decode("utf-8")
            except UnicodeDecodeError as e:
                raise SerializationError(key, f"Stored value is not UTF-8 text: {e}") from e
        return value

    async def set(self, key: str, value: str, ttl_seconds: float | None = None) -> None:
        """Store *value* under *key*.

        Args:
            key: Cache key.
            value: Encoded value text.
            ttl_seconds: Expiry override (None → config default).
        """
        client = self._require_client()
        ttl = ttl_seconds if ttl_seconds is not None else self._config.default_ttl_seconds
        px = max(1, int(ttl * 1000)) if ttl is not None else None
        try:
            await client.set(self._key(key), value, px=px)
        except (RedisError, OSError) as e:
            self._stats["errors"] += 1
            raise TierUnavailableError(self.name, f"SET {key} failed: {e}") from e
        self._stats["sets"] += 1

    async def delete(self, key: str) -> bool:
        """Remove *key*. Returns True if it existed."""
        client = self._require_client()
        try:
            removed = await client.delete(self._key(key))
        except (RedisError, OSError) as e:
            self._stats["errors"] += 1
            raise TierUnavailableError(self.name, f"DEL {key} failed: {e}") from e
        if removed:
            self._stats["deletes"] += 1
        return bool(removed)

    async def exists(self, key: str) -> bool:
        """Check whether *key* is present."""
        client = self._require_client()
        try:
            return bool(await client.exists(self._key(key)))
        except (RedisError, OSError) as e:
            self._stats["errors"] += 1
            raise TierUnavailableError(self.name, f"EXISTS {key} failed: {e}") from e

    def stats(self) -> dict[str, Any]:
        """Return hit/miss/error counters."""
        total = self._stats["hits"] + self._stats["misses"]
        return {
            **self._stats,
            "hit_rate": self._stats["hits"] / total if total > 0 else 0.0,
        }

    async def close(self) -> None:
        """Close the connection if this tier opened it."""
        was_connected, self._connected = self._connected, False
        if self._client is not None and self._owns_client:
            await self._discard_client()
            if was_connected:
                logger.info("RedisCacheTier closed.")

    # -- Internal helpers ----------------------------------------------------

    def _key(self, key: str) -> str:
        return f"{self._config.key_prefix}{key}" if self._config.key_prefix else key

    def _require_client(self) -> Any:
        if self._client is None:
            raise TierUnavailableError(self.name, "not connected")
        return self._client

    async def _discard_client(self) -> None:
        if not self._owns_client:
            return
        client, self._client = self._client, None
        if client is not None:
            try:
                await client.aclose()
            except (RedisError, OSError) as e:
                logger.debug("Ignoring error while closing Redis client: %s", e)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_cached_tier(
    config: RedisCacheConfig | None = None,
    client: Any | None = None,
) -> RedisCacheTier:
    """Create a RedisCacheTier instance from config."""
    return RedisCacheTier(config, client=client)


__all__ = [
    "DEFAULT_WARM_TTL_SECONDS",
    "RedisCacheConfig",
    "RedisCacheTier",
    "create_cached_tier",
]
