"""Exception hierarchy for schema synchronization.

Every error raised by the engine derives from ``SchemaSyncError`` so
callers can treat "run failed, schema possibly partially updated" with a
single ``except`` clause.  Errors coming from the caller's SQL executor
are *not* wrapped -- they propagate unchanged after being logged.

Usage:
    from table_sync.errors import SchemaSyncError, TypeChangeError

    try:
        await sync_table(context, items)
    except TypeChangeError as e:
        print(f"{e.table}.{e.column}: {e.current} -> {e.expected}")
"""


class SchemaSyncError(Exception):
    """Base class for all schema synchronization errors."""

    pass


class PreconditionError(SchemaSyncError):
    """Raised when a run cannot start or continue.

    Covers missing context fields, unknown dialects or source tags,
    addon entries without a namespace, and unsupported server versions.
    """

    pass


class InvalidIdentifierError(SchemaSyncError, ValueError):
    """Raised when a table, column or index name fails validation."""

    def __init__(self, identifier: object) -> None:
        self.identifier = identifier
        super().__init__(
            f"Invalid SQL identifier: {identifier!r} "
            f"(must match [A-Za-z_][A-Za-z0-9_]*)"
        )


class FieldDefinitionError(SchemaSyncError, ValueError):
    """Raised when a field definition cannot be turned into a column type."""

    pass


class TypeChangeError(SchemaSyncError):
    """Raised when a column would change to a narrower or unrelated type.

    Attributes:
        table: Table being planned.
        column: Column whose type differs.
        current: Live column type.
        expected: Type requested by the field definition.
    """

    def __init__(self, table: str, column: str, current: str, expected: str) -> None:
        self.table = table
        self.column = column
        self.current = current
        self.expected = expected
        super().__init__(
            f"Refusing type change on {table}.{column}: "
            f"current type {current!r}, target type {expected!r}. "
            f"Only widening changes (integer size escalation, varchar to text) "
            f"are applied automatically; migrate this column manually."
        )
