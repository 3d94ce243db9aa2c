"""Schema synchronization engine.

Modules, leaves first:
- ``types``: logical field types and default-value resolution
- ``normalize``: field definition normalization
- ``dialects``: per-dialect quoting, type mapping and DDL generation
- ``introspector``: live table, column and index metadata
- ``planner``: column diffing and table plans
- ``apply``: table creation and plan execution
- ``sync``: the ``sync_table`` entry point

Usage:
    from table_sync.schema import SyncContext, sync_table

    report = await sync_table(context, items)
"""

from table_sync.schema.apply import apply_table_plan, create_table, modify_table
from table_sync.schema.dialects import (
    Dialect,
    MySQLDialect,
    PostgresDialect,
    SQLiteDialect,
    build_index_sql,
    execute_ddl_safely,
    get_dialect,
    get_sql_type,
    quote_identifier,
)
from table_sync.schema.introspector import (
    SchemaIntrospector,
    ensure_db_version,
    get_introspector,
)
from table_sync.schema.models import (
    ColumnInfo,
    FieldChange,
    FieldDefinition,
    IndexAction,
    SyncReport,
    SyncRuntime,
    TableItem,
    TablePlan,
)
from table_sync.schema.normalize import normalize_field
from table_sync.schema.planner import (
    build_table_plan,
    compare_field_definition,
    is_compatible_type_change,
)
from table_sync.schema.sync import SyncContext, resolve_table_name, sync_table
from table_sync.schema.types import generate_default_sql, resolve_default_value

__all__ = [
    # Entry point
    "sync_table",
    "SyncContext",
    "resolve_table_name",
    # Models
    "ColumnInfo",
    "FieldChange",
    "FieldDefinition",
    "IndexAction",
    "SyncReport",
    "SyncRuntime",
    "TableItem",
    "TablePlan",
    # Normalizer and defaults
    "normalize_field",
    "resolve_default_value",
    "generate_default_sql",
    # Dialects
    "Dialect",
    "MySQLDialect",
    "PostgresDialect",
    "SQLiteDialect",
    "get_dialect",
    "quote_identifier",
    "get_sql_type",
    "build_index_sql",
    "execute_ddl_safely",
    # Metadata
    "SchemaIntrospector",
    "get_introspector",
    "ensure_db_version",
    # Planning and apply
    "compare_field_definition",
    "is_compatible_type_change",
    "build_table_plan",
    "create_table",
    "modify_table",
    "apply_table_plan",
]
