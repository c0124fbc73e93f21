# src/botsbrain/storage/tiered_cache.py
"""
TieredCache - one async key-value interface over three storage tiers.

Reads are cache-aside: the hot tier is checked first, then warm, then
cold, and a hit in a colder tier is promoted into every warmer tier using
*that* tier's default TTL.  Writes are write-through: the durable cold
tier is committed first, then the value is mirrored into warm and hot.

Tier roles:

    ======  ====================  ================  ====================
    Tier    Implementation        Default TTL       Failure on read
    ======  ====================  ================  ====================
    hot     VolatileMemoryTier    24 hours          n/a (in-process)
    warm    RedisCacheTier        3 days            logged, treated as miss
    cold    PostgresStorageTier   permanent         logged, treated as miss
    ======  ====================  ================  ====================

Warm and cold are optional; with neither configured the cache runs on the
hot tier alone and needs no ``connect()``.

Consistency: a hit in hot or warm is returned without asking cold.  Cold
decides only when the faster tiers miss.  Bot instances that share Redis
and PostgreSQL but each keep their own hot tier may therefore see a value
for up to one hot TTL after another instance changed it.

Usage::

    cache = TieredCache.from_config(load_config().storage)
    async with cache:
        await cache.set("ticket:42", {"status": "open"})
        ticket = await cache.get("ticket:42")
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

from ..exceptions import DurabilityWriteError, StorageError, TierUnavailableError
from .codec import decode_value, encode_value
from .tiers import (
    PostgresStorageConfig,
    PostgresStorageTier,
    RedisCacheConfig,
    RedisCacheTier,
    VolatileMemoryConfig,
    VolatileMemoryTier,
)

logger = logging.getLogger(__name__)


class StorageConfig(BaseModel):
    """
    Tiered storage configuration.

    ``warm`` is only used when ``warm.url`` is set and ``cold`` only when
    ``cold.dsn`` is set, so the default config yields a memory-only cache.
    """

    hot: VolatileMemoryConfig = Field(default_factory=VolatileMemoryConfig)
    warm: RedisCacheConfig = Field(default_factory=RedisCacheConfig)
    cold: PostgresStorageConfig = Field(default_factory=PostgresStorageConfig)


class TieredCache:
    """Hot → warm → cold cache-aside store with write-through to cold.

    Args:
        hot: In-process tier. A default :class:`VolatileMemoryTier` is created if omitted.
        warm: Optional Redis tier.
        cold: Optional PostgreSQL tier (the durable source of truth when present).
    """

    def __init__(
        self,
        hot: VolatileMemoryTier | None = None,
        warm: RedisCacheTier | None = None,
        cold: PostgresStorageTier | None = None,
    ) -> None:
        self._hot = hot if hot is not None else VolatileMemoryTier()
        self._warm = warm
        self._cold = cold
        self._connected = False

    @classmethod
    def from_config(
        cls,
        config: StorageConfig | None = None,
        *,
        redis_client: Any | None = None,
        pg_pool: Any | None = None,
    ) -> "TieredCache":
        """Build the tiers described by *config*.

        The warm tier is created when a Redis URL is configured or a client is
        passed; the cold tier likewise for a DSN or a pool.  Injected clients
        and pools stay owned by the caller.
        """
        config = config or StorageConfig()
        hot = VolatileMemoryTier(config=config.hot)
        warm = None
        if redis_client is not None or config.warm.is_configured:
            warm = RedisCacheTier(config.warm, client=redis_client)
        cold = None
        if pg_pool is not None or config.cold.is_configured:
            cold = PostgresStorageTier(config.cold, pool=pg_pool)
        return cls(hot=hot, warm=warm, cold=cold)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def hot(self) -> VolatileMemoryTier:
        return self._hot

    @property
    def warm(self) -> RedisCacheTier | None:
        return self._warm

    @property
    def cold(self) -> PostgresStorageTier | None:
        return self._cold

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """Open the warm and cold tiers.

        A warm tier that cannot connect is left disconnected and skipped by
        every operation.  A cold tier that cannot connect is fatal.

        Raises:
            TierUnavailableError: If the cold tier cannot be initialized.
            ConfigError: If the Redis URL is rejected by the client library.
        """
        if self._connected:
            return

        if self._warm is not None:
            try:
                await self._warm.initialize()
            except TierUnavailableError as e:
                logger.warning("Redis not available, continuing without the warm tier: %s", e)
        else:
            logger.info("Redis not configured, warm tier disabled")

        if self._cold is not None:
            try:
                await self._cold.initialize()
            except TierUnavailableError:
                logger.error("PostgreSQL connection failed for the cold tier", exc_info=True)
                if self._warm is not None:
                    await self._warm.close()
                raise

        self._connected = True
        logger.info("TieredCache connected", extra={"layers": self._layers()})

    async def shutdown(self) -> None:
        """Close the warm and cold tiers. Safe to call more than once."""
        if self._warm is not None:
            await self._warm.close()
        if self._cold is not None:
            await self._cold.close()
        if self._connected:
            logger.info("TieredCache disconnected")
        self._connected = False

    async def __aenter__(self) -> "TieredCache":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()

    # ------------------------------------------------------------------
    # Key-value operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Return the value for *key*, or None if no tier holds it.

        Raises:
            SerializationError: If a tier holds text that is not valid JSON.
        """
        self._check_ready(key)

        raw = self._hot.get(key)
        if raw is not None:
            return decode_value(key, raw)

        warm = self._active_warm()
        if warm is not None:
            raw = await self._read(warm, key)
            if raw is not None:
                value = decode_value(key, raw)
                self._hot.set(key, raw)
                return value

        cold = self._active_cold()
        if cold is not None:
            raw = await self._read(cold, key)
            if raw is not None:
                value = decode_value(key, raw)
                if warm is not None:
                    await self._backfill(warm, key, raw)
                self._hot.set(key, raw)
                return value

        return None

    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Store *value* in every tier, cold first.

        Args:
            key: Cache key.
            value: JSON-serialisable value.
            ttl_seconds: Expiry applied to every tier. None uses each tier's default.

        Raises:
            SerializationError: If *value* cannot be encoded; nothing is written.
            DurabilityWriteError: If the cold write fails; warm and hot are not touched.
            ValueError: If *ttl_seconds* is not positive.
        """
        self._check_ready(key)
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

        payload = encode_value(key, value)

        cold = self._active_cold()
        if cold is not None:
            try:
                await cold.set(key, payload, ttl_seconds)
            except TierUnavailableError as e:
                logger.error("Durable write failed for %s", key, extra={"error": str(e)})
                raise DurabilityWriteError(key, str(e)) from e

        warm = self._active_warm()
        if warm is not None:
            try:
                await warm.set(key, payload, ttl_seconds)
            except TierUnavailableError as e:
                logger.warning("Warm tier write failed for %s", key, extra={"error": str(e)})

        self._hot.set(key, payload, ttl_seconds)

    async def delete(self, key: str) -> bool:
        """Remove *key* from every tier.

        Every tier is attempted even if an earlier one fails.

        Returns:
            True if any tier held the key.

        Raises:
            TierUnavailableError: If the warm or cold tier reported an error.
        """
        self._check_ready(key)

        removed = self._hot.delete(key)
        failures: list[TierUnavailableError] = []
        for tier in (self._active_warm(), self._active_cold()):
            if tier is None:
                continue
            try:
                removed = await tier.delete(key) or removed
            except TierUnavailableError as e:
                logger.error("Delete of %s failed on the %s tier", key, tier.name, extra={"error": str(e)})
                failures.append(e)

        if failures:
            raise failures[0]
        return removed

    async def exists(self, key: str) -> bool:
        """Check hot, warm then cold for *key* without promoting it."""
        self._check_ready(key)

        if self._hot.exists(key):
            return True
        for tier in (self._active_warm(), self._active_cold()):
            if tier is None:
                continue
            try:
                if await tier.exists(key):
                    return True
            except TierUnavailableError as e:
                logger.warning("Existence check of %s failed on the %s tier", key, tier.name, extra={"error": str(e)})
        return False

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def stats(self) -> dict[str, Any]:
        """Summarise which layers are active plus per-tier counters."""
        tiers: dict[str, Any] = {"hot": self._hot.stats()}
        if self._warm is not None:
            tiers["warm"] = self._warm.stats()
        if self._cold is not None:
            tiers["cold"] = self._cold.stats()
        return {
            "memory_keys": len(self._hot),
            "connected": self._connected,
            "layers": self._layers(),
            "tiers": tiers,
        }

    def memory_stats(self) -> dict[str, Any]:
        """Hot-tier memory breakdown, with the active layers attached."""
        return {
            **self._hot.memory_stats(),
            "connected": self._connected,
            "layers": self._layers(),
        }

    def cleanup_expired_memory(self) -> int:
        """Drop expired hot-tier entries now. Returns the number removed."""
        return self._hot.cleanup_expired()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _check_ready(self, key: str) -> None:
        if not isinstance(key, str) or not key:
            raise ValueError("Cache key must be a non-empty string")
        if not self._connected and (self._warm is not None or self._cold is not None):
            raise StorageError("TieredCache is not connected; call connect() first")

    def _active_warm(self) -> RedisCacheTier | None:
        if self._warm is not None and self._warm.is_connected:
            return self._warm
        return None

    def _active_cold(self) -> PostgresStorageTier | None:
        if self._cold is not None and self._cold.is_connected:
            return self._cold
        return None

    def _layers(self) -> dict[str, bool]:
        return {
            "memory": True,
            "redis": self._active_warm() is not None,
            "postgres": self._active_cold() is not None,
        }

    @staticmethod
    async def _read(tier: RedisCacheTier | PostgresStorageTier, key: str) -> str | None:
        try:
            return await tier.get(key)
        except TierUnavailableError as e:
            logger.warning("Read of %s failed on the %s tier, treating as miss", key, tier.name, extra={"error": str(e)})
            return None

    @staticmethod
    async def _backfill(tier: RedisCacheTier, key: str, raw: str) -> None:
        try:
            await tier.set(key, raw)
        except TierUnavailableError as e:
            logger.warning("Promotion of %s into the %s tier failed", key, tier.name, extra={"error": str(e)})


__all__ = ["StorageConfig", "TieredCache"]
