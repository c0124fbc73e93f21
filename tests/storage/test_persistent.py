# tests/storage/test_persistent.py
"""
Tests for PostgresStorageTier.

The asyncpg pool is mocked; these tests check the SQL issued, parameter
handling, expiry arithmetic and error mapping rather than a live database.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import asyncpg
import pytest

from botsbrain.exceptions import SerializationError, TierUnavailableError
from botsbrain.storage.tiers.persistent import (
    PostgresStorageConfig,
    PostgresStorageTier,
    _affected_rows,
    create_persistent_tier,
)


@pytest.fixture
def mock_pool_connection():
    """Create a mock asyncpg pool whose acquire() yields one connection."""
    mock_conn = AsyncMock()
    mock_conn.fetchval = AsyncMock(return_value=None)
    mock_conn.execute = AsyncMock(return_value="INSERT 0 1")

    mock_pool = MagicMock()
    mock_pool.acquire = MagicMock(return_value=AsyncMock(
        __aenter__=AsyncMock(return_value=mock_conn),
        __aexit__=AsyncMock(return_value=None)
    ))
    mock_pool.close = AsyncMock()

    return mock_pool, mock_conn


@pytest.fixture
def tier(mock_pool_connection) -> PostgresStorageTier:
    pool, _ = mock_pool_connection
    return PostgresStorageTier(PostgresStorageConfig(dsn="postgresql://bot@localhost/bot"), pool=pool)


# =============================================================================
# CONFIGURATION
# =============================================================================


class TestPostgresStorageConfig:
    """Tests for PostgresStorageConfig."""

    def test_defaults(self):
        config = PostgresStorageConfig()

        assert config.table_name == "storage_cache"
        assert config.default_ttl_seconds is None
        assert not config.is_configured

    @pytest.mark.parametrize("dsn", ["postgres://u@h/db", "postgresql://u:p@h:5432/db"])
    def test_accepts_postgres_dsns(self, dsn):
        assert PostgresStorageConfig(dsn=dsn).is_configured

    def test_rejects_other_schemes(self):
        with pytest.raises(ValueError):
            PostgresStorageConfig(dsn="mysql://u@h/db")

    @pytest.mark.parametrize("name", ["bad-name", "1table", "drop table x;", ""])
    def test_rejects_unsafe_table_names(self, name):
        with pytest.raises(ValueError):
            PostgresStorageConfig(table_name=name)


# =============================================================================
# INITIALIZATION
# =============================================================================


class TestInitialize:
    """initialize() with injected and created pools."""

    @pytest.mark.asyncio
    async def test_checks_connectivity_and_creates_schema(self, tier, mock_pool_connection):
        _, conn = mock_pool_connection

        await tier.initialize()

        conn.fetchval.assert_awaited_once_with("SELECT 1")
        schema_sql = conn.execute.await_args.args[0]
        assert "CREATE TABLE IF NOT EXISTS storage_cache" in schema_sql
        assert "value JSONB NOT NULL" in schema_sql
        assert "expires_at TIMESTAMPTZ" in schema_sql
        assert "idx_storage_cache_expires_at" in schema_sql

    @pytest.mark.asyncio
    async def test_skips_schema_when_disabled(self, mock_pool_connection):
        pool, conn = mock_pool_connection
        tier = PostgresStorageTier(PostgresStorageConfig(create_schema=False), pool=pool)

        await tier.initialize()

        conn.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_creates_pool_from_dsn(self, mock_pool_connection):
        pool, _ = mock_pool_connection
        config = PostgresStorageConfig(dsn="postgresql://bot@db/bot", min_pool_size=2, max_pool_size=4)

        with patch(
            "botsbrain.storage.tiers.persistent.asyncpg.create_pool", AsyncMock(return_value=pool)
        ) as create_pool:
            tier = PostgresStorageTier(config)
            await tier.initialize()

        create_pool.assert_awaited_once_with("postgresql://bot@db/bot", min_size=2, max_size=4)
        assert tier.is_connected

        await tier.close()
        pool.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_connection_failure_raises_tier_unavailable(self):
        with patch(
            "botsbrain.storage.tiers.persistent.asyncpg.create_pool",
            AsyncMock(side_effect=OSError("Connection refused")),
        ):
            tier = PostgresStorageTier(PostgresStorageConfig(dsn="postgresql://bot@db/bot"))
            with pytest.raises(TierUnavailableError) as exc_info:
                await tier.initialize()

        assert exc_info.value.tier == "cold"
        assert not tier.is_connected

    @pytest.mark.asyncio
    async def test_initialize_without_dsn(self):
        with pytest.raises(TierUnavailableError):
            await PostgresStorageTier(PostgresStorageConfig()).initialize()

    @pytest.mark.asyncio
    async def test_close_leaves_injected_pool_open(self, tier, mock_pool_connection):
        pool, _ = mock_pool_connection
        await tier.initialize()

        await tier.close()

        pool.close.assert_not_awaited()
        assert not tier.is_connected

    @pytest.mark.asyncio
    async def test_injected_pool_survives_close(self, tier, mock_pool_connection):
        pool, conn = mock_pool_connection
        await tier.initialize()
        await tier.close()

        await tier.initialize()

        assert tier.is_connected
        assert conn.fetchval.await_count == 2
        pool.close.assert_not_awaited()


# =============================================================================
# OPERATIONS
# =============================================================================


class TestOperations:
    """get/set/delete/exists/cleanup_expired."""

    @pytest.mark.asyncio
    async def test_get_filters_expired_rows(self, tier, mock_pool_connection):
        _, conn = mock_pool_connection
        conn.fetchval.return_value = '{"status": "open"}'

        assert await tier.get("ticket:1") == '{"status": "open"}'

        sql, key = conn.fetchval.await_args.args
        assert "value::text" in sql
        assert "expires_at IS NULL OR expires_at > NOW()" in sql
        assert key == "ticket:1"

    @pytest.mark.asyncio
    async def test_get_miss(self, tier):
        assert await tier.get("missing") is None

    @pytest.mark.asyncio
    async def test_set_upserts_without_expiry_by_default(self, tier, mock_pool_connection):
        _, conn = mock_pool_connection

        await tier.set("customer:id:c", '{"name":"Acme"}')

        sql, key, value, expires_at = conn.execute.await_args.args
        assert "ON CONFLICT (key) DO UPDATE" in sql
        assert "$2::jsonb" in sql
        assert (key, value) == ("customer:id:c", '{"name":"Acme"}')
        assert expires_at is None

    @pytest.mark.asyncio
    async def test_set_with_ttl_computes_expiry(self, tier, mock_pool_connection):
        _, conn = mock_pool_connection
        before = datetime.now(timezone.utc)

        await tier.set("setup_state:1", "{}", ttl_seconds=3600)

        expires_at = conn.execute.await_args.args[3]
        assert before + timedelta(seconds=3599) < expires_at <= datetime.now(timezone.utc) + timedelta(seconds=3600)

    @pytest.mark.asyncio
    async def test_config_default_ttl(self, mock_pool_connection):
        pool, conn = mock_pool_connection
        tier = PostgresStorageTier(PostgresStorageConfig(default_ttl_seconds=60), pool=pool)

        await tier.set("k", "1")

        assert conn.execute.await_args.args[3] is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,expected", [("DELETE 1", True), ("DELETE 0", False)])
    async def test_delete(self, tier, mock_pool_connection, status, expected):
        _, conn = mock_pool_connection
        conn.execute.return_value = status

        assert await tier.delete("k") is expected

    @pytest.mark.asyncio
    async def test_exists(self, tier, mock_pool_connection):
        _, conn = mock_pool_connection
        conn.fetchval.return_value = 1

        assert await tier.exists("k") is True

        conn.fetchval.return_value = None
        assert await tier.exists("k") is False

    @pytest.mark.asyncio
    async def test_cleanup_expired(self, tier, mock_pool_connection):
        _, conn = mock_pool_connection
        conn.execute.return_value = "DELETE 7"

        assert await tier.cleanup_expired() == 7
        assert "expires_at < NOW()" in conn.execute.await_args.args[0]

    @pytest.mark.asyncio
    async def test_custom_table_name(self, mock_pool_connection):
        pool, conn = mock_pool_connection
        tier = PostgresStorageTier(PostgresStorageConfig(table_name="bot_kv"), pool=pool)

        await tier.get("k")

        assert "FROM bot_kv" in conn.fetchval.await_args.args[0]


# =============================================================================
# FAILURES
# =============================================================================


class TestFailures:
    """Driver errors surface as TierUnavailableError."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            asyncpg.PostgresError("boom"),
            asyncpg.InterfaceError("pool is closed"),
            OSError("reset by peer"),
            TimeoutError(),
        ],
    )
    async def test_driver_errors_are_mapped(self, tier, mock_pool_connection, error):
        _, conn = mock_pool_connection
        conn.execute.side_effect = error

        with pytest.raises(TierUnavailableError) as exc_info:
            await tier.set("k", "1")

        assert exc_info.value.tier == "cold"
        assert tier.stats()["errors"] == 1

    @pytest.mark.asyncio
    async def test_untranslatable_value_is_a_serialization_error(self, tier, mock_pool_connection):
        _, conn = mock_pool_connection
        conn.execute.side_effect = asyncpg.UntranslatableCharacterError("unsupported Unicode escape sequence")

        with pytest.raises(SerializationError) as exc_info:
            await tier.set("k", '"a\\u0000b"')

        assert exc_info.value.key == "k"
        assert not isinstance(exc_info.value, TierUnavailableError)

    @pytest.mark.asyncio
    async def test_operations_before_initialize(self):
        with pytest.raises(TierUnavailableError):
            await PostgresStorageTier().get("k")


class TestHelpers:
    """Module helpers."""

    @pytest.mark.parametrize("status,count", [("DELETE 3", 3), ("UPDATE 0", 0), ("", 0), (None, 0)])
    def test_affected_rows(self, status, count):
        assert _affected_rows(status) == count

    def test_factory(self):
        assert isinstance(create_persistent_tier(), PostgresStorageTier)
