# src/botsbrain/storage/tiers/volatile.py
"""
Volatile Memory Tier - In-process storage with per-entry expiry.

This is the hot layer of the tiered cache. Entries live in a plain dict
keyed by cache key, each carrying its own absolute expiry timestamp.
There is no size or LRU eviction: an entry disappears only when its TTL
elapses or when it is deleted.

Expired entries are dropped lazily:
- on access (``get`` / ``exists`` / ``keys``), and
- by a sweep that ``get``/``set`` trigger once ``cleanup_interval_seconds``
  has passed since the previous sweep.

No background thread or timer is started, so the tier needs no
connect/close step.

Usage:
    tier = VolatileMemoryTier(default_ttl_seconds=86400)

    tier.set("ticket:42", '{"status":"open"}')
    tier.set("setup_state:7", '{"step":"complete"}', ttl_seconds=3600)

    raw = tier.get("ticket:42")
    if raw is None:
        # Entry expired or never existed
        pass

    print(tier.memory_stats()["key_types"])
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_HOT_TTL_SECONDS = 24 * 60 * 60


# =============================================================================
# CONFIGURATION
# =============================================================================


class VolatileMemoryConfig(BaseModel):
    """Configuration for the volatile (hot) tier.

    Attributes:
        default_ttl_seconds: TTL applied when a write gives none (None = no expiry).
        cleanup_interval_seconds: Minimum time between expired-entry sweeps.
    """

    default_ttl_seconds: float | None = Field(
        default=DEFAULT_HOT_TTL_SECONDS, gt=0, description="Default TTL in seconds (None=no expiry)"
    )
    cleanup_interval_seconds: float = Field(
        default=60, gt=0, description="Sweep interval in seconds"
    )


# =============================================================================
# DATA MODELS
# =============================================================================


@dataclass
class VolatileItem:
    """A single hot-tier entry.

    Attributes:
        key: Cache key.
        value: Encoded value text.
        expires_at: Clock timestamp after which the entry is gone (None = never).
        created_at: Clock timestamp of the write.
    """

    key: str
    value: str
    expires_at: float | None = None
    created_at: float = field(default_factory=time.time)

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now > self.expires_at

    @property
    def size_bytes(self) -> int:
        return len(self.value.encode("utf-8"))


# =============================================================================
# VOLATILE MEMORY TIER
# =============================================================================


class VolatileMemoryTier:
    """In-memory key-value tier with TTL expiry.

    Values are stored as the JSON text produced by the storage codec, which
    keeps the hot tier isolated from later mutation of the caller's objects
    and makes ``memory_stats`` byte counts meaningful.

    Args:
        default_ttl_seconds: TTL for writes that don't pass one. None disables expiry.
        cleanup_interval_seconds: Minimum seconds between expiry sweeps.
        config: Optional configuration object (overrides the other params).
        clock: Time source returning seconds; defaults to ``time.time``.
    """

    name = "hot"

    def __init__(
        self,
        default_ttl_seconds: float | None = DEFAULT_HOT_TTL_SECONDS,
        cleanup_interval_seconds: float = 60,
        config: VolatileMemoryConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if config is not None:
            default_ttl_seconds = config.default_ttl_seconds
            cleanup_interval_seconds = config.cleanup_interval_seconds

        self.default_ttl_seconds = default_ttl_seconds
        self.cleanup_interval = cleanup_interval_seconds
        self._clock = clock

        self._store: dict[str, VolatileItem] = {}
        self._lock = threading.RLock()
        self._last_cleanup = clock()
        self._stats = {
            "hits": 0,
            "misses": 0,
            "sets": 0,
            "deletes": 0,
            "expirations": 0,
        }

        logger.debug(
            "VolatileMemoryTier created (default_ttl=%s, cleanup_interval=%ss).",
            default_ttl_seconds,
            cleanup_interval_seconds,
        )

    # -------------------------------------------------------------------------
    # Private Methods
    # -------------------------------------------------------------------------

    def _maybe_cleanup(self, now: float) -> None:
        if now - self._last_cleanup >= self.cleanup_interval:
            self._purge_expired(now)
            self._last_cleanup = now

    def _purge_expired(self, now: float) -> int:
        expired = [k for k, item in self._store.items() if item.is_expired(now)]
        for key in expired:
            del self._store[key]
        self._stats["expirations"] += len(expired)
        if expired:
            logger.debug("Purged %d expired hot-tier entries", len(expired))
        return len(expired)

    def _live_item(self, key: str, now: float) -> VolatileItem | None:
        """Return the entry for *key*, dropping it first if it has expired."""
        item = self._store.get(key)
        if item is None:
            return None
        if item.is_expired(now):
            del self._store[key]
            self._stats["expirations"] += 1
            return None
        return item

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def get(self, key: str) -> str | None:
        """Return the stored text for *key*, or None if absent or expired."""
        with self._lock:
            now = self._clock()
            self._maybe_cleanup(now)
            item = self._live_item(key, now)
            if item is None:
                self._stats["misses"] += 1
                return None
            self._stats["hits"] += 1
            return item.value

    def set(self, key: str, value: str, ttl_seconds: float | None = None) -> None:
        """Store *value* under *key*, replacing any previous entry.

        Args:
            key: Cache key.
            value: Encoded value text.
            ttl_seconds: Expiry override. None uses the tier default.

        Raises:
            TypeError: If *value* is not a string.
            ValueError: If *ttl_seconds* is not positive.
        """
        if not isinstance(value, str):
            raise TypeError(f"VolatileMemoryTier stores encoded text, got {type(value).__name__}")
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

        with self._lock:
            now = self._clock()
            self._maybe_cleanup(now)
            ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds
            self._store[key] = VolatileItem(
                key=key,
                value=value,
                expires_at=now + ttl if ttl is not None else None,
                created_at=now,
            )
            self._stats["sets"] += 1

    def delete(self, key: str) -> bool:
        """Remove *key*. Returns True if an entry was present."""
        with self._lock:
            if self._store.pop(key, None) is None:
                return False
            self._stats["deletes"] += 1
            return True

    def exists(self, key: str) -> bool:
        """Check whether *key* holds an unexpired entry."""
        with self._lock:
            return self._live_item(key, self._clock()) is not None

    def keys(self, prefix: str | None = None) -> list[str]:
        """List unexpired keys, optionally restricted to a prefix."""
        with self._lock:
            now = self._clock()
            return [
                k
                for k, item in self._store.items()
                if not item.is_expired(now) and (prefix is None or k.startswith(prefix))
            ]

    def clear(self) -> int:
        """Drop every entry. Returns the number removed."""
        with self._lock:
            count = len(self._store)
            self._store.clear()
            return count

    def cleanup_expired(self) -> int:
        """Drop every expired entry now. Returns the number removed."""
        with self._lock:
            now = self._clock()
            self._last_cleanup = now
            return self._purge_expired(now)

    def stats(self) -> dict[str, Any]:
        """Return hit/miss counters and the current item count."""
        with self._lock:
            total = self._stats["hits"] + self._stats["misses"]
            return {
                "item_count": len(self._store),
                "hit_rate": self._stats["hits"] / total if total > 0 else 0.0,
                "default_ttl_seconds": self.default_ttl_seconds,
                **self._stats,
            }

    def contents(self) -> list[dict[str, Any]]:
        """Describe every entry, expired ones included, without touching them."""
        with self._lock:
            now = self._clock()
            return [
                {
                    "key": item.key,
                    "value": item.value,
                    "expires_at": (
                        datetime.fromtimestamp(item.expires_at, tz=timezone.utc).isoformat()
                        if item.expires_at is not None
                        else "never"
                    ),
                    "is_expired": item.is_expired(now),
                    "size": item.size_bytes,
                }
                for item in self._store.values()
            ]

    def memory_stats(self) -> dict[str, Any]:
        """Summarise memory use, grouped by key prefix (text before the first ``:``)."""
        with self._lock:
            now = self._clock()
            total_size = 0
            expired = 0
            key_types: dict[str, dict[str, int]] = {}
            for key, item in self._store.items():
                size = item.size_bytes
                total_size += size
                if item.is_expired(now):
                    expired += 1
                key_type = key.split(":", 1)[0] or "unknown"
                bucket = key_types.setdefault(key_type, {"count": 0, "size": 0})
                bucket["count"] += 1
                bucket["size"] += size

            return {
                "total_keys": len(self._store),
                "active_keys": len(self._store) - expired,
                "expired_keys": expired,
                "total_size_bytes": total_size,
                "total_size_kb": round(total_size / 1024, 2),
                "key_types": key_types,
                "default_ttl_seconds": self.default_ttl_seconds,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, key: str) -> bool:
        return self.exists(key)


# =============================================================================
# FACTORY FUNCTION
# =============================================================================


def create_volatile_tier(
    config: VolatileMemoryConfig | None = None,
    **kwargs: Any,
) -> VolatileMemoryTier:
    """Create a VolatileMemoryTier from a config object or keyword arguments."""
    if config is not None:
        return VolatileMemoryTier(config=config, **kwargs)
    return VolatileMemoryTier(**kwargs)


__all__ = [
    "DEFAULT_HOT_TTL_SECONDS",
    "VolatileItem",
    "VolatileMemoryConfig",
    "VolatileMemoryTier",
    "create_volatile_tier",
]
