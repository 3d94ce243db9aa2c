"""Shared fixtures: an in-memory scripted database and a cache double.

``FakeDatabase`` answers the catalog queries issued by the introspectors
(information_schema, pg_catalog, PRAGMA functions) from a small in-memory
table model and records every other statement it receives.  Tests seed
the model directly to represent "what the server has right now".
"""

from typing import Any
from unittest.mock import AsyncMock

import pytest

from table_sync.schema.dialects import SYSTEM_FIELDS, SYSTEM_INDEX_FIELDS, get_dialect

SERVER_VERSIONS = {
    "mysql": "8.0.36",
    "postgresql": "PostgreSQL 17.2 on x86_64-pc-linux-gnu, compiled by gcc",
    "sqlite": "3.50.1",
}


class FakeDatabase:
    """Scripted ``SqlExecutor`` for one dialect.

    Columns are stored as neutral dicts::

        {"data_type": "varchar", "column_type": "varchar(100)", "max": 100,
         "nullable": False, "default": "", "comment": "Email"}

    ``default`` holds the raw catalog value (e.g. ``"''::character varying"``
    on PostgreSQL, ``"''"`` on SQLite).
    """

    def __init__(self, dialect: str = "mysql", version: str | None = None) -> None:
        self.dialect = get_dialect(dialect)
        self.version = version or SERVER_VERSIONS[self.dialect.name]
        self.tables: dict[str, dict[str, Any]] = {}
        self.statements: list[str] = []
        self.queries: list[str] = []

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def add_table(
        self,
        name: str,
        columns: dict[str, dict[str, Any]],
        indexes: dict[str, list[str]] | None = None,
        system: bool = True,
    ) -> None:
        """Register a live table; ``system`` adds system columns and indexes."""
        all_columns: dict[str, dict[str, Any]] = {}
        all_indexes: dict[str, list[str]] = {}
        if system:
            number = "integer" if self.dialect.name == "sqlite" else "bigint"
            for field in SYSTEM_FIELDS:
                all_columns[field] = {
                    "data_type": number,
                    "column_type": number.upper(),
                    "max": None,
                    "nullable": False,
                    "default": None if field == "id" else "0",
                    "comment": "",
                }
            for field in SYSTEM_INDEX_FIELDS:
                all_indexes[self.dialect.index_name(name, field)] = [field]
        all_columns.update(columns)
        all_indexes.update(indexes or {})
        self.tables[name] = {"columns": all_columns, "indexes": all_indexes}

    # ------------------------------------------------------------------
    # SqlExecutor
    # ------------------------------------------------------------------

    async def unsafe(self, sql: str, params: dict[str, Any] | None = None) -> list[dict]:
        params = params or {}
        normalized = " ".join(sql.split())

        if "AS version" in normalized:
            self.queries.append("version")
            return [{"version": self.version}]

        if "COUNT(*) AS count" in normalized:
            self.queries.append("table_exists")
            return [{"count": 1 if params.get("table") in self.tables else 0}]

        table = self.tables.get(params.get("table", ""), {"columns": {}, "indexes": {}})

        if "col_description" in normalized:
            self.queries.append("comments")
            return [
                {"column_name": name, "column_comment": col.get("comment") or None}
                for name, col in table["columns"].items()
            ]

        if "information_schema.COLUMNS" in normalized:
            self.queries.append("columns")
            return [
                {
                    "column_name": name,
                    "data_type": col["data_type"],
                    "column_type": col.get("column_type", col["data_type"]),
                    "max_length": col.get("max"),
                    "is_nullable": "YES" if col.get("nullable") else "NO",
                    "column_default": col.get("default"),
                    "column_comment": col.get("comment", ""),
                }
                for name, col in table["columns"].items()
            ]

        if "information_schema.columns" in normalized:
            self.queries.append("columns")
            return [
                {
                    "column_name": name,
                    "data_type": col["data_type"],
                    "max_length": col.get("max"),
                    "is_nullable": "YES" if col.get("nullable") else "NO",
                    "column_default": col.get("default"),
                }
                for name, col in table["columns"].items()
            ]

        if "pragma_table_info" in normalized:
            self.queries.append("columns")
            return [
                {
                    "name": name,
                    "type": col.get("column_type", col["data_type"].upper()),
                    "notnull": 0 if col.get("nullable") else 1,
                    "dflt_value": col.get("default"),
                    "pk": 1 if name == "id" else 0,
                }
                for name, col in table["columns"].items()
            ]

        if "index_name" in normalized:
            self.queries.append("indexes")
            return [
                {"index_name": index_name, "column_name": column}
                for index_name, cols in table["indexes"].items()
                for column in cols
            ]

        self.statements.append(sql)
        return []


@pytest.fixture
def mysql_db() -> FakeDatabase:
    return FakeDatabase("mysql")


@pytest.fixture
def pg_db() -> FakeDatabase:
    return FakeDatabase("postgresql")


@pytest.fixture
def sqlite_db() -> FakeDatabase:
    return FakeDatabase("sqlite")


@pytest.fixture
def cache() -> AsyncMock:
    """Cache double whose delete_batch reports every key as deleted."""
    mock = AsyncMock()
    mock.delete_batch = AsyncMock(side_effect=lambda keys: len(keys))
    return mock
