"""Dialect adapters: quoting, type mapping and DDL generation.

One ``Dialect`` subclass per supported engine.  The planner and applier
never branch on the engine name; they call the adapter and read its
capability flags instead:

- ``compares_length``: live VARCHAR length is reliable and diffed.
- ``supports_column_comments``: columns carry a comment (the field label).
- ``supports_alter_default``: ``ALTER COLUMN .. SET|DROP DEFAULT`` works.
- ``rebuilds_on_modify``: column rewrites require a full table rebuild.

Usage:
    from table_sync.schema.dialects import get_dialect, quote_identifier

    dialect = get_dialect("postgresql")
    dialect.quote_identifier("user")                 # '"user"'
    dialect.get_sql_type("string", max=50)           # 'character varying(50)'
    quote_identifier("mysql", "user")                # '`user`'
"""

import logging
import re
from typing import Any, ClassVar, Literal

from table_sync.adapters.base import SqlExecutor
from table_sync.errors import FieldDefinitionError, InvalidIdentifierError, PreconditionError
from table_sync.schema.models import ColumnInfo, FieldChange, FieldDefinition
from table_sync.schema.types import (
    NO_DEFAULT,
    VARCHAR_TYPES,
    format_default_literal,
    generate_default_sql,
    is_text_type,
    resolve_default_value,
)

logger = logging.getLogger(__name__)

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Live defaults that are re-emitted unquoted: numbers and CURRENT_* keywords
_BARE_DEFAULT_PATTERN = re.compile(
    r"^(-?\d+(\.\d+)?|CURRENT_TIMESTAMP|CURRENT_DATE|CURRENT_TIME)$", re.IGNORECASE
)

# Implicit columns present on every managed table, in creation order
SYSTEM_FIELDS: tuple[str, ...] = ("id", "created_at", "updated_at", "deleted_at", "state")

# System columns that always carry a single-column index
SYSTEM_INDEX_FIELDS: tuple[str, ...] = ("created_at", "updated_at", "state")

SYSTEM_FIELD_COMMENTS: dict[str, str] = {
    "id": "Primary key ID",
    "created_at": "Created at",
    "updated_at": "Updated at",
    "deleted_at": "Deleted at",
    "state": "Row state",
}

SYSTEM_FIELD_DEFAULTS: dict[str, int] = {
    "created_at": 0,
    "updated_at": 0,
    "deleted_at": 0,
    "state": 1,
}

IndexActionType = Literal["create", "drop"]


def base_type(sql_type: str) -> str:
    """Strip size parameters and ``unsigned`` from a native type.

    Examples:
        >>> base_type("VARCHAR(100)")
        'varchar'
        >>> base_type("BIGINT UNSIGNED")
        'bigint'
        >>> base_type("character varying(20)")
        'character varying'
    """
    stripped = re.sub(r"\(.*?\)", "", sql_type.lower())
    stripped = stripped.replace("unsigned", "")
    return " ".join(stripped.split())


def escape_literal(value: str) -> str:
    """Quote a string as a SQL literal, doubling embedded single quotes."""
    return "'" + str(value).replace("'", "''") + "'"


class Dialect:
    """Base adapter; subclasses fill in the engine-specific pieces."""

    name: ClassVar[str] = ""
    quote_char: ClassVar[str] = '"'

    compares_length: ClassVar[bool] = True
    supports_column_comments: ClassVar[bool] = True
    supports_alter_default: ClassVar[bool] = True
    rebuilds_on_modify: ClassVar[bool] = False

    # Comments are part of the column definition rather than COMMENT ON
    inline_comments: ClassVar[bool] = False

    # Largest VARCHAR length the engine accepts (None = no sized VARCHAR)
    varchar_ceiling: ClassVar[int | None] = None

    # ------------------------------------------------------------------
    # Identifiers and types
    # ------------------------------------------------------------------

    def quote_identifier(self, name: str) -> str:
        """Validate and quote a table, column or index name.

        Raises:
            InvalidIdentifierError: If ``name`` is not a plain identifier.
        """
        if not isinstance(name, str) or not IDENTIFIER_PATTERN.match(name):
            raise InvalidIdentifierError(name)
        return f"{self.quote_char}{name}{self.quote_char}"

    def number_type(self, unsigned: bool) -> str:
        raise NotImplementedError

    def varchar_type(self, max_length: int) -> str:
        raise NotImplementedError

    def text_type(self) -> str:
        raise NotImplementedError

    def get_sql_type(self, field_type: str, max: Any = None, unsigned: bool = True) -> str:
        """Map a logical field type to the native column type.

        Raises:
            FieldDefinitionError: For unknown types, or a VARCHAR-family
                type without a usable ``max`` or above the engine ceiling.
        """
        if field_type == "number":
            return self.number_type(unsigned)
        if field_type in VARCHAR_TYPES:
            if max is None or isinstance(max, bool) or int(max) != max or max < 1:
                raise FieldDefinitionError(
                    f"Field type {field_type!r} requires a positive integer max, got {max!r}"
                )
            if self.varchar_ceiling is not None and max > self.varchar_ceiling:
                raise FieldDefinitionError(
                    f"max={max} exceeds the {self.name} VARCHAR limit of {self.varchar_ceiling}"
                )
            return self.varchar_type(int(max))
        if is_text_type(field_type):
            return self.text_type()
        raise FieldDefinitionError(f"Unknown field type: {field_type!r}")

    def expected_type(self, field: FieldDefinition) -> str:
        """Base type a live column must report to match ``field``."""
        return base_type(self.get_sql_type(field.type, field.max, field.unsigned))

    def same_type(self, current: str, expected: str) -> bool:
        """Whether a live column type already satisfies ``expected``."""
        return base_type(current) == base_type(expected)

    def index_name(self, table: str, field_name: str) -> str:
        """Name of the automatic single-column index on ``field_name``."""
        return f"idx_{table}_{field_name}"

    # ------------------------------------------------------------------
    # Column definitions
    # ------------------------------------------------------------------

    def comment_suffix(self, comment: str) -> str:
        """Inline column comment fragment (empty where unsupported)."""
        return ""

    def column_definition(
        self, field_name: str, field: FieldDefinition, *, include_unique: bool = True
    ) -> str:
        """Full column definition for a business field."""
        sql_type = self.get_sql_type(field.type, field.max, field.unsigned)
        default = resolve_default_value(field.default, field.type)
        parts = [
            self.quote_identifier(field_name),
            " ",
            sql_type,
            " NULL" if field.nullable else " NOT NULL",
            generate_default_sql(default, field.type),
        ]
        if field.unique and include_unique:
            parts.append(" UNIQUE")
        parts.append(self.comment_suffix(field.name))
        return "".join(parts)

    def system_column_definition(self, name: str) -> str:
        raise NotImplementedError

    def system_column_definitions(self) -> list[str]:
        return [self.system_column_definition(name) for name in SYSTEM_FIELDS]

    def create_table_sql(
        self,
        table: str,
        fields: dict[str, FieldDefinition],
        extra_columns: list[str] | None = None,
    ) -> str:
        """Single CREATE TABLE statement: system columns then business columns.

        ``extra_columns`` are ready-made definitions appended after the
        business columns.
        """
        columns = self.system_column_definitions()
        columns.extend(self.column_definition(key, field) for key, field in fields.items())
        columns.extend(extra_columns or [])
        body = ",\n    ".join(columns)
        return f"CREATE TABLE {self.quote_identifier(table)} (\n    {body}\n){self.table_trailer()}"

    def table_trailer(self) -> str:
        return ""

    # ------------------------------------------------------------------
    # ALTER clauses
    # ------------------------------------------------------------------

    def add_column_clause(self, field_name: str, field: FieldDefinition) -> str:
        return f"ADD COLUMN {self.column_definition(field_name, field)}"

    def add_system_column_clause(self, name: str) -> str:
        return f"ADD COLUMN {self.system_column_definition(name)}"

    def modify_clauses(
        self, field_name: str, field: FieldDefinition, changes: list[FieldChange]
    ) -> list[str]:
        """Clauses rewriting a column for non-default changes."""
        raise NotImplementedError

    def default_clause(self, field_name: str, field: FieldDefinition) -> str:
        """``ALTER COLUMN .. SET DEFAULT`` or ``DROP DEFAULT`` for a field."""
        column = self.quote_identifier(field_name)
        default = resolve_default_value(field.default, field.type)
        if default == NO_DEFAULT:
            return f"ALTER COLUMN {column} DROP DEFAULT"
        return f"ALTER COLUMN {column} SET DEFAULT {format_default_literal(default)}"

    def needs_default_clause(self, changes: list[FieldChange]) -> bool:
        """Whether a default change must be applied with its own clause."""
        return any(c.type == "default" for c in changes)

    def alter_table_sql(self, table: str, clauses: list[str]) -> str:
        return f"ALTER TABLE {self.quote_identifier(table)} " + ", ".join(clauses)

    def comment_statement(self, table: str, column: str, comment: str) -> str:
        raise NotImplementedError(f"{self.name} has no COMMENT ON statement")

    def build_index_sql(
        self, table: str, index_name: str, field_name: str, action: IndexActionType
    ) -> str:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute_ddl(self, executor: SqlExecutor, statement: str) -> None:
        """Execute one DDL statement."""
        logger.debug(f"Executing: {statement}")
        await executor.unsafe(statement)


class MySQLDialect(Dialect):
    """MySQL 8+: backtick quoting, inline comments, online DDL hints."""

    name = "mysql"
    quote_char = "`"
    inline_comments = True
    varchar_ceiling = 65535

    def number_type(self, unsigned: bool) -> str:
        return "BIGINT UNSIGNED" if unsigned else "BIGINT"

    def varchar_type(self, max_length: int) -> str:
        return f"VARCHAR({max_length})"

    def text_type(self) -> str:
        return "MEDIUMTEXT"

    def index_name(self, table: str, field_name: str) -> str:
        # Index names are scoped to the table
        return f"idx_{field_name}"

    def comment_suffix(self, comment: str) -> str:
        return f" COMMENT {escape_literal(comment)}"

    def system_column_definition(self, name: str) -> str:
        column = self.quote_identifier(name)
        comment = self.comment_suffix(SYSTEM_FIELD_COMMENTS[name])
        if name == "id":
            return f"{column} BIGINT UNSIGNED PRIMARY KEY AUTO_INCREMENT{comment}"
        default = SYSTEM_FIELD_DEFAULTS[name]
        return f"{column} BIGINT UNSIGNED NOT NULL DEFAULT {default}{comment}"

    def table_trailer(self) -> str:
        return " ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_0900_as_cs"

    def modify_clauses(
        self, field_name: str, field: FieldDefinition, changes: list[FieldChange]
    ) -> list[str]:
        if all(c.type == "default" for c in changes):
            return []
        # MODIFY restates the whole column, default and comment included
        return [f"MODIFY COLUMN {self.column_definition(field_name, field, include_unique=False)}"]

    def needs_default_clause(self, changes: list[FieldChange]) -> bool:
        return bool(changes) and all(c.type == "default" for c in changes)

    def alter_table_sql(self, table: str, clauses: list[str]) -> str:
        return (
            f"ALTER TABLE {self.quote_identifier(table)} ALGORITHM=INSTANT, LOCK=NONE, "
            + ", ".join(clauses)
        )

    def build_index_sql(
        self, table: str, index_name: str, field_name: str, action: IndexActionType
    ) -> str:
        table_q = self.quote_identifier(table)
        index_q = self.quote_identifier(index_name)
        if action == "create":
            field_q = self.quote_identifier(field_name)
            return f"ALTER TABLE {table_q} ALGORITHM=INPLACE, LOCK=NONE, ADD INDEX {index_q} ({field_q})"
        return f"ALTER TABLE {table_q} ALGORITHM=INPLACE, LOCK=NONE, DROP INDEX {index_q}"

    async def execute_ddl(self, executor: SqlExecutor, statement: str) -> None:
        """Execute DDL, degrading INSTANT -> INPLACE -> engine default.

        Each attempt that fails is logged; the last error is raised only
        after every variant of the statement has been tried.
        """
        attempts = [statement]
        if "ALGORITHM=INSTANT" in statement:
            attempts.append(statement.replace("ALGORITHM=INSTANT", "ALGORITHM=INPLACE"))
        stripped = strip_ddl_hints(statement)
        if stripped != statement:
            attempts.append(stripped)

        for i, attempt in enumerate(attempts):
            try:
                logger.debug(f"Executing: {attempt}")
                await executor.unsafe(attempt)
                if i == len(attempts) - 1 and i > 0:
                    logger.warning(f"Applied DDL without online hints (may block writes): {attempt}")
                return
            except Exception as e:
                if i == len(attempts) - 1:
                    raise
                logger.debug(f"DDL attempt {i + 1}/{len(attempts)} failed ({e}); retrying")


class PostgresDialect(Dialect):
    """PostgreSQL 17+: identity ids, COMMENT ON, concurrent index builds."""

    name = "postgresql"
    varchar_ceiling = 10485760

    def number_type(self, unsigned: bool) -> str:
        return "BIGINT"

    def varchar_type(self, max_length: int) -> str:
        return f"character varying({max_length})"

    def text_type(self) -> str:
        return "TEXT"

    def system_column_definition(self, name: str) -> str:
        column = self.quote_identifier(name)
        if name == "id":
            return f"{column} BIGINT GENERATED BY DEFAULT AS IDENTITY PRIMARY KEY"
        return f"{column} BIGINT NOT NULL DEFAULT {SYSTEM_FIELD_DEFAULTS[name]}"

    def add_column_clause(self, field_name: str, field: FieldDefinition) -> str:
        return f"ADD COLUMN IF NOT EXISTS {self.column_definition(field_name, field)}"

    def add_system_column_clause(self, name: str) -> str:
        return f"ADD COLUMN IF NOT EXISTS {self.system_column_definition(name)}"

    def modify_clauses(
        self, field_name: str, field: FieldDefinition, changes: list[FieldChange]
    ) -> list[str]:
        column = self.quote_identifier(field_name)
        kinds = {c.type for c in changes}
        clauses = []
        if kinds & {"datatype", "length"}:
            sql_type = self.get_sql_type(field.type, field.max, field.unsigned)
            clauses.append(f"ALTER COLUMN {column} TYPE {sql_type}")
        if "nullable" in kinds:
            action = "DROP" if field.nullable else "SET"
            clauses.append(f"ALTER COLUMN {column} {action} NOT NULL")
        return clauses

    def comment_statement(self, table: str, column: str, comment: str) -> str:
        target = f"{self.quote_identifier(table)}.{self.quote_identifier(column)}"
        value = escape_literal(comment) if comment else "NULL"
        return f"COMMENT ON COLUMN {target} IS {value}"

    def build_index_sql(
        self, table: str, index_name: str, field_name: str, action: IndexActionType
    ) -> str:
        index_q = self.quote_identifier(index_name)
        if action == "create":
            table_q = self.quote_identifier(table)
            field_q = self.quote_identifier(field_name)
            return f"CREATE INDEX CONCURRENTLY IF NOT EXISTS {index_q} ON {table_q}({field_q})"
        return f"DROP INDEX CONCURRENTLY IF EXISTS {index_q}"


class SQLiteDialect(Dialect):
    """SQLite 3.50+: dynamic typing, no in-place column rewrites."""

    name = "sqlite"
    compares_length = False
    supports_column_comments = False
    supports_alter_default = False
    rebuilds_on_modify = True

    def number_type(self, unsigned: bool) -> str:
        return "INTEGER"

    def varchar_type(self, max_length: int) -> str:
        return "TEXT"

    def text_type(self) -> str:
        return "TEXT"

    def system_column_definition(self, name: str) -> str:
        column = self.quote_identifier(name)
        if name == "id":
            return f"{column} INTEGER PRIMARY KEY"
        return f"{column} INTEGER NOT NULL DEFAULT {SYSTEM_FIELD_DEFAULTS[name]}"

    # Declared types that share one storage class
    INTEGER_FAMILY: ClassVar[frozenset[str]] = frozenset(
        {"int", "integer", "bigint", "smallint", "tinyint", "mediumint"}
    )
    TEXT_FAMILY: ClassVar[frozenset[str]] = frozenset(
        {"text", "varchar", "char", "clob", "character varying", "character", "nvarchar", "nchar"}
    )

    def type_family(self, sql_type: str) -> str:
        declared = base_type(sql_type)
        if declared in self.INTEGER_FAMILY:
            return "integer"
        if declared in self.TEXT_FAMILY:
            return "text"
        return declared

    def same_type(self, current: str, expected: str) -> bool:
        return self.type_family(current) == self.type_family(expected)

    def create_table_sql(
        self,
        table: str,
        fields: dict[str, FieldDefinition],
        extra_columns: list[str] | None = None,
    ) -> str:
        return super().create_table_sql(table, fields, extra_columns).replace(
            "CREATE TABLE ", "CREATE TABLE IF NOT EXISTS ", 1
        )

    def live_column_definition(self, name: str, column: ColumnInfo) -> str:
        """Re-declare a live column from its introspected metadata.

        Examples:
            >>> SQLiteDialect().live_column_definition(
            ...     "legacy", ColumnInfo(type="integer", column_type="INT", default_value="0")
            ... )
            '"legacy" INT NOT NULL DEFAULT 0'
        """
        parts = [self.quote_identifier(name)]
        declared = column.column_type or column.type.upper()
        if declared:
            parts.append(f" {declared}")
        parts.append(" NULL" if column.nullable else " NOT NULL")
        value = column.default_value
        if value is not None:
            if _BARE_DEFAULT_PATTERN.match(value):
                parts.append(f" DEFAULT {value}")
            else:
                parts.append(f" DEFAULT {escape_literal(value)}")
        return "".join(parts)

    def modify_clauses(
        self, field_name: str, field: FieldDefinition, changes: list[FieldChange]
    ) -> list[str]:
        if all(c.type == "default" for c in changes):
            return []
        # Target definition only; applied through a table rebuild
        return [self.column_definition(field_name, field, include_unique=False)]

    def build_index_sql(
        self, table: str, index_name: str, field_name: str, action: IndexActionType
    ) -> str:
        index_q = self.quote_identifier(index_name)
        if action == "create":
            table_q = self.quote_identifier(table)
            field_q = self.quote_identifier(field_name)
            return f"CREATE INDEX IF NOT EXISTS {index_q} ON {table_q}({field_q})"
        return f"DROP INDEX IF EXISTS {index_q}"


# ============================================================================
# Registry
# ============================================================================

DIALECTS: dict[str, type[Dialect]] = {
    "mysql": MySQLDialect,
    "postgresql": PostgresDialect,
    "postgres": PostgresDialect,
    "pg": PostgresDialect,
    "sqlite": SQLiteDialect,
}


def get_dialect(dialect: "Dialect | str") -> Dialect:
    """Resolve a dialect tag (case-insensitive) to an adapter instance.

    Raises:
        PreconditionError: If the tag is not a supported dialect.
    """
    if isinstance(dialect, Dialect):
        return dialect
    cls = DIALECTS.get(str(dialect or "").strip().lower())
    if cls is None:
        supported = ", ".join(sorted(DIALECTS))
        raise PreconditionError(f"Unsupported dialect: {dialect!r} (supported: {supported})")
    return cls()


def strip_ddl_hints(statement: str) -> str:
    """Remove MySQL ``ALGORITHM=``/``LOCK=`` hints from a statement.

    Example:
        >>> strip_ddl_hints("ALTER TABLE `t` ALGORITHM=INSTANT, LOCK=NONE, ADD COLUMN `a` INT")
        'ALTER TABLE `t` ADD COLUMN `a` INT'
    """
    stripped = re.sub(r"(ALGORITHM|LOCK)=\w+\s*,\s*", "", statement)
    return re.sub(r",\s*(ALGORITHM|LOCK)=\w+", "", stripped)


# ============================================================================
# Module-level helpers
# ============================================================================


def quote_identifier(dialect: "Dialect | str", name: str) -> str:
    return get_dialect(dialect).quote_identifier(name)


def get_sql_type(dialect: "Dialect | str", field_type: str, max: Any = None, unsigned: bool = True) -> str:
    return get_dialect(dialect).get_sql_type(field_type, max, unsigned)


def build_index_sql(
    dialect: "Dialect | str", table: str, index_name: str, field_name: str, action: IndexActionType
) -> str:
    return get_dialect(dialect).build_index_sql(table, index_name, field_name, action)


async def execute_ddl_safely(
    executor: SqlExecutor, statement: str, dialect: "Dialect | str" = "mysql"
) -> None:
    """Execute DDL through the dialect's fallback strategy.

    Only the MySQL adapter degrades (INSTANT, then INPLACE, then no
    hints); other dialects execute the statement once.
    """
    await get_dialect(dialect).execute_ddl(executor, statement)
