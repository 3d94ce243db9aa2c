"""Tests for executor, recording and cache adapters."""

from unittest.mock import AsyncMock, patch

import pytest

from table_sync.adapters.cache import NullCache
from table_sync.adapters.executor import (
    AsyncSqlExecutor,
    create_async_engine_pooled,
    dialect_from_url,
    normalize_database_url,
)
from table_sync.adapters.recording import RecordingExecutor


# ------------------------------------------------------------------
# URL handling
# ------------------------------------------------------------------


class TestDatabaseUrls:
    @pytest.mark.parametrize(
        "url, expected",
        [
            ("postgres://u:p@h:5432/db", "postgresql+asyncpg://u:p@h:5432/db"),
            ("postgresql://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
            ("mysql://root@localhost/app", "mysql+aiomysql://root@localhost/app"),
            ("sqlite:///app.db", "sqlite+aiosqlite:///app.db"),
            ("postgresql+psycopg://u@h/db", "postgresql+psycopg://u@h/db"),
        ],
    )
    def test_normalize(self, url, expected):
        assert normalize_database_url(url) == expected

    @pytest.mark.parametrize(
        "url, dialect",
        [
            ("postgres://h/db", "postgresql"),
            ("mysql+aiomysql://h/db", "mysql"),
            ("sqlite:///:memory:", "sqlite"),
        ],
    )
    def test_dialect_from_url(self, url, dialect):
        assert dialect_from_url(url) == dialect


class TestCreateAsyncEnginePooled:
    def test_server_defaults(self):
        with patch("table_sync.adapters.executor.create_async_engine") as mock_create:
            create_async_engine_pooled("postgresql+asyncpg://u@h/db")
        kwargs = mock_create.call_args.kwargs
        assert kwargs["isolation_level"] == "AUTOCOMMIT"
        assert kwargs["pool_size"] == 5
        assert kwargs["pool_pre_ping"] is True

    def test_sqlite_skips_pool_settings(self):
        with patch("table_sync.adapters.executor.create_async_engine") as mock_create:
            create_async_engine_pooled("sqlite+aiosqlite:///:memory:")
        kwargs = mock_create.call_args.kwargs
        assert "pool_size" not in kwargs
        assert kwargs["isolation_level"] == "AUTOCOMMIT"

    def test_caller_overrides(self):
        with patch("table_sync.adapters.executor.create_async_engine") as mock_create:
            create_async_engine_pooled("mysql+aiomysql://u@h/db", pool_size=20, echo=True)
        kwargs = mock_create.call_args.kwargs
        assert kwargs["pool_size"] == 20
        assert kwargs["echo"] is True


class TestAsyncSqlExecutor:
    """Round-trips through a real in-memory SQLite engine."""

    async def test_unsafe_returns_dict_rows(self):
        pytest.importorskip("aiosqlite")
        executor = AsyncSqlExecutor("sqlite:///:memory:")
        try:
            assert executor.dialect == "sqlite"
            rows = await executor.unsafe("SELECT sqlite_version() AS version")
            assert list(rows[0]) == ["version"]
            rows = await executor.unsafe("SELECT :value AS value", {"value": 42})
            assert rows == [{"value": 42}]
            assert await executor.unsafe("CREATE TABLE t (a INTEGER)") == []
        finally:
            await executor.close()

    def test_dialect_property(self):
        with patch("table_sync.adapters.executor.create_async_engine"):
            executor = AsyncSqlExecutor("postgres://u@h/db")
        assert executor.dialect == "postgresql"


# ------------------------------------------------------------------
# Dry-run recorder
# ------------------------------------------------------------------


class TestRecordingExecutor:
    async def test_reads_pass_through(self):
        inner = AsyncMock()
        inner.unsafe.return_value = [{"count": 1}]
        recorder = RecordingExecutor(inner)

        rows = await recorder.unsafe("  select COUNT(*) AS count FROM t WHERE a = :a", {"a": 1})
        assert rows == [{"count": 1}]
        await recorder.unsafe("PRAGMA table_info(t)")
        await recorder.unsafe("WITH x AS (SELECT 1) SELECT * FROM x")
        assert inner.unsafe.await_count == 3
        assert recorder.statements == []

    async def test_writes_recorded(self):
        inner = AsyncMock()
        recorder = RecordingExecutor(inner)

        assert await recorder.unsafe("ALTER TABLE `user` ADD COLUMN `a` BIGINT") == []
        await recorder.unsafe('CREATE INDEX IF NOT EXISTS "i" ON "t"("c")')
        inner.unsafe.assert_not_called()
        assert recorder.statements == [
            "ALTER TABLE `user` ADD COLUMN `a` BIGINT",
            'CREATE INDEX IF NOT EXISTS "i" ON "t"("c")',
        ]


# ------------------------------------------------------------------
# Caches
# ------------------------------------------------------------------


class TestNullCache:
    async def test_deletes_nothing(self):
        cache = NullCache()
        assert await cache.delete_batch(["table:columns:user"]) == 0


class TestRedisCache:
    @pytest.fixture
    def client(self):
        pytest.importorskip("redis")
        mock = AsyncMock()
        mock.delete.return_value = 2
        return mock

    async def test_single_delete_call(self, client):
        from table_sync.adapters.redis_cache import RedisCache

        cache = RedisCache(client=client)
        removed = await cache.delete_batch(["table:columns:a", "table:columns:b"])
        assert removed == 2
        client.delete.assert_awaited_once_with("table:columns:a", "table:columns:b")

    async def test_key_prefix(self, client):
        from table_sync.adapters.redis_cache import RedisCache

        cache = RedisCache(client=client, key_prefix="app:")
        await cache.delete_batch(["table:columns:a"])
        client.delete.assert_awaited_once_with("app:table:columns:a")

    async def test_empty_batch_skips_server(self, client):
        from table_sync.adapters.redis_cache import RedisCache

        assert await RedisCache(client=client).delete_batch([]) == 0
        client.delete.assert_not_called()

    async def test_borrowed_client_not_closed(self, client):
        from table_sync.adapters.redis_cache import RedisCache

        await RedisCache(client=client).close()
        client.aclose.assert_not_called()

    def test_requires_url_or_client(self):
        pytest.importorskip("redis")
        from table_sync.adapters.redis_cache import RedisCache

        with pytest.raises(ValueError, match="url or client"):
            RedisCache()
