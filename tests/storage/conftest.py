# tests/storage/conftest.py
"""
Fixtures for storage tests.

``FakeRemoteTier`` stands in for the Redis and PostgreSQL tiers when
testing TieredCache: it keeps values in a dict, counts calls per
operation and can be switched into a failing state.
"""

from collections import Counter
from typing import Any, Dict, Optional, Tuple

import pytest

from botsbrain.exceptions import TierUnavailableError
from botsbrain.storage import TieredCache, VolatileMemoryTier


class FakeRemoteTier:
    """In-memory double for a networked tier."""

    def __init__(self, name: str, default_ttl_seconds: Optional[float] = None):
        self.name = name
        self.default_ttl_seconds = default_ttl_seconds
        self.data: Dict[str, str] = {}
        self.ttls: Dict[str, Optional[float]] = {}
        self.calls: Counter = Counter()
        self.connected = False
        self.fail_connect = False
        self.fail_ops = False
        self.closed = False

    @property
    def is_connected(self) -> bool:
        return self.connected

    def _check(self, op: str) -> None:
        self.calls[op] += 1
        if self.fail_ops:
            raise TierUnavailableError(self.name, f"{op} refused")

    async def initialize(self) -> None:
        self.calls["initialize"] += 1
        if self.fail_connect:
            raise TierUnavailableError(self.name, "connection refused")
        self.connected = True

    async def get(self, key: str) -> Optional[str]:
        self._check("get")
        return self.data.get(key)

    async def set(self, key: str, value: str, ttl_seconds: Optional[float] = None) -> None:
        self._check("set")
        self.data[key] = value
        self.ttls[key] = ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds

    async def delete(self, key: str) -> bool:
        self._check("delete")
        self.ttls.pop(key, None)
        return self.data.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        self._check("exists")
        return key in self.data

    def stats(self) -> Dict[str, Any]:
        return dict(self.calls)

    async def close(self) -> None:
        self.calls["close"] += 1
        self.connected = False
        self.closed = True


@pytest.fixture
def hot(fake_clock) -> VolatileMemoryTier:
    return VolatileMemoryTier(default_ttl_seconds=86400, clock=fake_clock)


@pytest.fixture
def warm() -> FakeRemoteTier:
    return FakeRemoteTier("warm", default_ttl_seconds=259200)


@pytest.fixture
def cold() -> FakeRemoteTier:
    return FakeRemoteTier("cold")


@pytest.fixture
def tiers(hot, warm, cold) -> Tuple[VolatileMemoryTier, FakeRemoteTier, FakeRemoteTier]:
    return hot, warm, cold


@pytest.fixture
def cache(hot, warm, cold) -> TieredCache:
    """A TieredCache over a real hot tier and fake warm/cold tiers (not yet connected)."""
    return TieredCache(hot=hot, warm=warm, cold=cold)
