"""Live schema introspection through the caller's SQL executor.

This module reads the live database to extract what the planner needs:
- Table existence
- Columns: base type, full type, VARCHAR length, nullability, default, comment
- Single-column indexes (multi-column indexes are dropped from the result)
- Server version precondition

MySQL and PostgreSQL are read from information_schema (plus pg_catalog for
comments and indexes); SQLite is read through its table-valued PRAGMA
functions.  Every query is read-only.
"""

import logging
import re
from typing import Any, ClassVar

from table_sync.adapters.base import SqlExecutor
from table_sync.errors import PreconditionError
from table_sync.schema.dialects import Dialect, base_type, get_dialect
from table_sync.schema.models import ColumnInfo, IndexInfo, SyncRuntime

logger = logging.getLogger(__name__)


def parse_version(text: str) -> tuple[int, ...]:
    """Extract the leading dotted version number from a version string.

    Examples:
        >>> parse_version("8.0.36-0ubuntu0.22.04.1")
        (8, 0, 36)
        >>> parse_version("PostgreSQL 17.2 on x86_64-pc-linux-gnu")
        (17, 2)
    """
    match = re.search(r"(\d+(?:\.\d+)*)", text or "")
    if not match:
        raise PreconditionError(f"Unable to parse database version from {text!r}")
    return tuple(int(part) for part in match.group(1).split("."))


class SchemaIntrospector:
    """Reads live table metadata for one dialect.

    Subclasses provide the catalog queries; result shaping is shared.

    Usage:
        introspector = get_introspector(runtime)
        await introspector.ensure_db_version()
        if await introspector.table_exists("user"):
            columns = await introspector.get_table_columns("user")
            indexes = await introspector.get_table_indexes("user")
    """

    min_version: ClassVar[tuple[int, ...]] = ()
    version_sql: ClassVar[str] = ""
    table_exists_sql: ClassVar[str] = ""
    indexes_sql: ClassVar[str] = ""

    def __init__(self, executor: SqlExecutor, database: str = "") -> None:
        self._executor = executor
        self._database = database

    def _params(self, **params: Any) -> dict[str, Any]:
        return params

    async def table_exists(self, table: str) -> bool:
        rows = await self._executor.unsafe(self.table_exists_sql, self._params(table=table))
        return bool(rows) and int(rows[0].get("count") or 0) > 0

    async def get_table_columns(self, table: str) -> dict[str, ColumnInfo]:
        raise NotImplementedError

    async def get_table_indexes(self, table: str) -> IndexInfo:
        """Map index name to its ordered columns, single-column indexes only."""
        rows = await self._executor.unsafe(self.indexes_sql, self._params(table=table))
        indexes: dict[str, list[str]] = {}
        for row in rows:
            indexes.setdefault(row["index_name"], []).append(row["column_name"])
        return {name: cols for name, cols in indexes.items() if len(cols) == 1}

    def parse_server_version(self, rows: list[dict]) -> tuple[int, ...]:
        if not rows:
            raise PreconditionError("Database returned no version information")
        return parse_version(str(rows[0].get("version", "")))

    async def ensure_db_version(self) -> tuple[int, ...]:
        """Fail unless the server meets the minimum supported version.

        Returns:
            The parsed server version.

        Raises:
            PreconditionError: If the version is unreadable or too low.
        """
        rows = await self._executor.unsafe(self.version_sql)
        version = self.parse_server_version(rows)
        required = ".".join(str(p) for p in self.min_version)
        found = ".".join(str(p) for p in version)
        if version < self.min_version:
            raise PreconditionError(
                f"Unsupported database version {found}: {required} or newer is required"
            )
        logger.debug(f"Database version {found} (>= {required})")
        return version


class MySQLIntrospector(SchemaIntrospector):
    """MySQL information_schema reader."""

    min_version = (8,)
    version_sql = "SELECT VERSION() AS version"

    # Empty database name falls back to the connection's current database
    table_exists_sql = """
        SELECT COUNT(*) AS count
        FROM information_schema.TABLES
        WHERE TABLE_SCHEMA = COALESCE(NULLIF(:database, ''), DATABASE())
          AND TABLE_NAME = :table
    """
    columns_sql = """
        SELECT
            COLUMN_NAME AS column_name,
            DATA_TYPE AS data_type,
            COLUMN_TYPE AS column_type,
            CHARACTER_MAXIMUM_LENGTH AS max_length,
            IS_NULLABLE AS is_nullable,
            COLUMN_DEFAULT AS column_default,
            COLUMN_COMMENT AS column_comment
        FROM information_schema.COLUMNS
        WHERE TABLE_SCHEMA = COALESCE(NULLIF(:database, ''), DATABASE())
          AND TABLE_NAME = :table
        ORDER BY ORDINAL_POSITION
    """
    indexes_sql = """
        SELECT
            INDEX_NAME AS index_name,
            COLUMN_NAME AS column_name
        FROM information_schema.STATISTICS
        WHERE TABLE_SCHEMA = COALESCE(NULLIF(:database, ''), DATABASE())
          AND TABLE_NAME = :table
          AND INDEX_NAME != 'PRIMARY'
        ORDER BY INDEX_NAME, SEQ_IN_INDEX
    """

    def _params(self, **params: Any) -> dict[str, Any]:
        return {"database": self._database, **params}

    async def get_table_columns(self, table: str) -> dict[str, ColumnInfo]:
        rows = await self._executor.unsafe(self.columns_sql, self._params(table=table))
        columns = {}
        for row in rows:
            max_length = row.get("max_length")
            columns[row["column_name"]] = ColumnInfo(
                type=str(row["data_type"]).lower(),
                column_type=str(row.get("column_type") or row["data_type"]),
                max=int(max_length) if max_length is not None else None,
                nullable=(row.get("is_nullable") == "YES"),
                default_value=(
                    str(row["column_default"]) if row.get("column_default") is not None else None
                ),
                comment=row.get("column_comment") or "",
            )
        return columns


class PostgresIntrospector(SchemaIntrospector):
    """PostgreSQL information_schema / pg_catalog reader.

    Column comments are not exposed by information_schema, so they are
    recovered with a second query against ``col_description``.
    """

    min_version = (17,)
    version_sql = "SELECT version() AS version"

    table_exists_sql = """
        SELECT COUNT(*) AS count
        FROM information_schema.tables
        WHERE table_schema = current_schema()
          AND table_name = :table
          AND table_type = 'BASE TABLE'
    """
    columns_sql = """
        SELECT
            column_name,
            data_type,
            character_maximum_length AS max_length,
            is_nullable,
            column_default
        FROM information_schema.columns
        WHERE table_schema = current_schema()
          AND table_name = :table
        ORDER BY ordinal_position
    """
    comments_sql = """
        SELECT
            a.attname AS column_name,
            col_description(a.attrelid, a.attnum) AS column_comment
        FROM pg_attribute a
        JOIN pg_class c ON c.oid = a.attrelid
        JOIN pg_namespace n ON n.oid = c.relnamespace
        WHERE n.nspname = current_schema()
          AND c.relname = :table
          AND a.attnum > 0
          AND NOT a.attisdropped
    """
    indexes_sql = """
        SELECT
            i.relname AS index_name,
            a.attname AS column_name
        FROM pg_index ix
        JOIN pg_class t ON t.oid = ix.indrelid
        JOIN pg_class i ON i.oid = ix.indexrelid
        JOIN pg_namespace n ON n.oid = t.relnamespace
        JOIN LATERAL unnest(ix.indkey) WITH ORDINALITY AS x(attnum, ordinality) ON TRUE
        JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = x.attnum
        WHERE n.nspname = current_schema()
          AND t.relname = :table
          AND NOT ix.indisprimary
        ORDER BY i.relname, x.ordinality
    """

    async def get_table_columns(self, table: str) -> dict[str, ColumnInfo]:
        rows = await self._executor.unsafe(self.columns_sql, {"table": table})
        comment_rows = await self._executor.unsafe(self.comments_sql, {"table": table})
        comments = {r["column_name"]: r.get("column_comment") for r in comment_rows}

        columns = {}
        for row in rows:
            name = row["column_name"]
            data_type = str(row["data_type"]).lower()
            max_length = row.get("max_length")
            column_type = f"{data_type}({max_length})" if max_length is not None else data_type
            columns[name] = ColumnInfo(
                type=data_type,
                column_type=column_type,
                max=int(max_length) if max_length is not None else None,
                nullable=(row.get("is_nullable") == "YES"),
                default_value=self._normalize_default(row.get("column_default")),
                comment=comments.get(name) or "",
            )
        return columns

    def _normalize_default(self, raw: str | None) -> str | None:
        """Reduce a PostgreSQL default expression to its literal value.

        ``'abc'::character varying`` becomes ``abc``; sequence and NULL
        defaults become ``None``.
        """
        if raw is None:
            return None
        value = str(raw).strip()
        if value.upper().startswith("NULL") or value.startswith("nextval("):
            return None
        match = re.match(r"^'(.*)'::[\w\s\"\[\].]+$", value, re.DOTALL)
        if match:
            return match.group(1).replace("''", "'")
        match = re.match(r"^\(?(-?\d+(?:\.\d+)?)\)?(?:::[\w\s]+)?$", value)
        if match:
            return match.group(1)
        return value

    def parse_server_version(self, rows: list[dict]) -> tuple[int, ...]:
        text = str(rows[0].get("version", "")) if rows else ""
        match = re.search(r"PostgreSQL\s+(\d+(?:\.\d+)*)", text)
        if not match:
            raise PreconditionError(f"Unable to parse PostgreSQL version from {text!r}")
        return parse_version(match.group(1))


class SQLiteIntrospector(SchemaIntrospector):
    """SQLite reader built on ``sqlite_master`` and PRAGMA table functions."""

    min_version = (3, 50, 0)
    version_sql = "SELECT sqlite_version() AS version"

    table_exists_sql = """
        SELECT COUNT(*) AS count
        FROM sqlite_master
        WHERE type = 'table' AND name = :table
    """
    columns_sql = """
        SELECT name, type, "notnull" AS notnull, dflt_value, pk
        FROM pragma_table_info(:table)
        ORDER BY cid
    """
    indexes_sql = """
        SELECT il.name AS index_name, ii.name AS column_name
        FROM pragma_index_list(:table) AS il
        JOIN pragma_index_info(il.name) AS ii
        WHERE il.origin != 'pk'
        ORDER BY il.name, ii.seqno
    """

    async def get_table_columns(self, table: str) -> dict[str, ColumnInfo]:
        rows = await self._executor.unsafe(self.columns_sql, {"table": table})
        columns = {}
        for row in rows:
            declared = str(row.get("type") or "")
            size = re.search(r"\((\d+)\)", declared)
            columns[row["name"]] = ColumnInfo(
                type=base_type(declared),
                column_type=declared,
                max=int(size.group(1)) if size else None,
                nullable=not bool(row.get("notnull")),
                default_value=self._normalize_default(row.get("dflt_value")),
                comment="",
            )
        return columns

    def _normalize_default(self, raw: Any) -> str | None:
        if raw is None:
            return None
        value = str(raw).strip()
        if value.upper() == "NULL":
            return None
        if len(value) >= 2 and value[0] == value[-1] == "'":
            return value[1:-1].replace("''", "'")
        return value


INTROSPECTORS: dict[str, type[SchemaIntrospector]] = {
    "mysql": MySQLIntrospector,
    "postgresql": PostgresIntrospector,
    "sqlite": SQLiteIntrospector,
}


def get_introspector(runtime: SyncRuntime) -> SchemaIntrospector:
    """Build the introspector matching ``runtime.dialect``."""
    cls = INTROSPECTORS[runtime.dialect.name]
    return cls(runtime.executor, runtime.database)


async def ensure_db_version(dialect: Dialect | str, executor: SqlExecutor) -> tuple[int, ...]:
    """Check the server version once per sync invocation."""
    resolved = get_dialect(dialect)
    return await INTROSPECTORS[resolved.name](executor).ensure_db_version()
