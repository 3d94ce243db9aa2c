"""Collaborator protocol definitions.

The engine talks to exactly two outside objects, both supplied by the
caller:

- ``SqlExecutor``: runs raw SQL and returns rows as dicts.
- ``CacheClient``: deletes cache keys in one batch.

All methods are ``async def`` -- callers must ``await`` every operation.

Usage:
    from table_sync.adapters.base import CacheClient, SqlExecutor

    async def do_work(db: SqlExecutor, cache: CacheClient) -> None:
        rows = await db.unsafe("SELECT VERSION() AS version")
        await cache.delete_batch(["table:columns:user"])
"""

from typing import Any, Protocol


class SqlExecutor(Protocol):
    """Raw SQL execution interface.

    The engine never opens, closes or times out the underlying
    connection; its lifecycle belongs to whoever constructed it.
    """

    async def unsafe(self, sql: str, params: dict[str, Any] | None = None) -> list[dict]:
        """Execute a SQL statement and return its rows.

        Args:
            sql: Statement text.  Named parameters use ``:name`` style.
            params: Optional dict of named parameters.

        Returns:
            List of dicts, one per row.  Empty list for DDL.

        Example:
            rows = await db.unsafe(
                "SELECT name FROM sqlite_master WHERE name = :table",
                {"table": "user"},
            )
        """
        ...


class CacheClient(Protocol):
    """Batch cache invalidation interface."""

    async def delete_batch(self, keys: list[str]) -> int:
        """Delete ``keys`` and return how many existed.

        Example:
            removed = await cache.delete_batch(["table:columns:user"])
        """
        ...
