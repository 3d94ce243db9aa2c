"""Diff live columns against field definitions and build a table plan.

Compares each declared field with its live column across five axes
(length, comment, datatype, nullable, default), rejects unsafe datatype
changes, and collects the ALTER clauses, index actions and comment
statements needed to reconcile one existing table.

Safety rules:
- Columns are only ever added or widened, never dropped or reordered.
- A datatype change must be a strict widening (``is_compatible_type_change``);
  anything else raises ``TypeChangeError``.
- VARCHAR shrinks are skipped with a warning; the live length is kept.
"""

import logging

from table_sync.errors import TypeChangeError
from table_sync.schema.dialects import SYSTEM_FIELDS, SYSTEM_INDEX_FIELDS, Dialect, base_type
from table_sync.schema.models import (
    CHANGE_TYPE_LABELS,
    ColumnInfo,
    FieldChange,
    FieldDefinition,
    IndexAction,
    IndexInfo,
    TablePlan,
)
from table_sync.schema.types import VARCHAR_TYPES, resolve_default_value

logger = logging.getLogger(__name__)

# Integer families ordered by storage width
INTEGER_RANKS: dict[str, int] = {
    "tinyint": 1,
    "smallint": 2,
    "mediumint": 3,
    "int": 4,
    "integer": 4,
    "bigint": 5,
}

# Unbounded text families ordered by capacity
TEXT_RANKS: dict[str, int] = {
    "tinytext": 1,
    "text": 2,
    "mediumtext": 3,
    "longtext": 4,
}

CHAR_TYPES = frozenset({"char", "character"})
VARCHAR_NATIVE_TYPES = frozenset({"varchar", "character varying"})


def is_compatible_type_change(current: str | None, expected: str | None) -> bool:
    """True only when ``current`` -> ``expected`` strictly widens the column.

    Allowed: integer size escalation, char -> varchar, and char/varchar ->
    any text type or a larger text type.  Identical types are not a change.

    Examples:
        >>> is_compatible_type_change("int", "bigint")
        True
        >>> is_compatible_type_change("character varying", "text")
        True
        >>> is_compatible_type_change("bigint", "varchar")
        False
        >>> is_compatible_type_change("mediumtext", "text")
        False
    """
    if not current or not expected:
        return False
    current_base = base_type(current)
    expected_base = base_type(expected)
    if current_base == expected_base:
        return False

    if current_base in INTEGER_RANKS and expected_base in INTEGER_RANKS:
        return INTEGER_RANKS[expected_base] > INTEGER_RANKS[current_base]

    if current_base in CHAR_TYPES and expected_base in VARCHAR_NATIVE_TYPES:
        return True

    if current_base in CHAR_TYPES | VARCHAR_NATIVE_TYPES and expected_base in TEXT_RANKS:
        return True

    if current_base in TEXT_RANKS and expected_base in TEXT_RANKS:
        return TEXT_RANKS[expected_base] > TEXT_RANKS[current_base]

    return False


def _default_text(value: object) -> str:
    """Canonical string form used to compare defaults."""
    if value is None:
        return "null"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def compare_field_definition(
    dialect: Dialect, column: ColumnInfo, field: FieldDefinition, label: str = ""
) -> list[FieldChange]:
    """Compute the differences between a live column and a field.

    Args:
        dialect: Adapter whose capability flags select the compared axes.
        column: Live column metadata.
        field: Normalized field definition.
        label: ``table.column`` used in debug output.

    Returns:
        Zero or more ``FieldChange`` entries, in axis order.
    """
    changes: list[FieldChange] = []

    if field.type in VARCHAR_TYPES:
        if not dialect.compares_length:
            logger.debug(f"{label}: length not compared on {dialect.name}")
        elif column.max is not None and field.max is not None and column.max != int(field.max):
            changes.append(FieldChange("length", column.max, int(field.max)))

    if not dialect.supports_column_comments:
        logger.debug(f"{label}: comment not compared on {dialect.name}")
    elif (column.comment or "") != field.name:
        changes.append(FieldChange("comment", column.comment or "", field.name))

    expected_type = dialect.expected_type(field)
    if not dialect.same_type(column.type, expected_type):
        changes.append(FieldChange("datatype", column.type, expected_type))

    if column.nullable != field.nullable:
        changes.append(FieldChange("nullable", column.nullable, field.nullable))

    expected_default = resolve_default_value(field.default, field.type)
    if _default_text(column.default_value) != _default_text(expected_default):
        changes.append(FieldChange("default", column.default_value, expected_default))

    return changes


def log_field_change(table: str, field_name: str, change: FieldChange) -> None:
    label = CHANGE_TYPE_LABELS.get(change.type, change.type)
    logger.debug(f"{table}.{field_name} {label}: {change.current!r} -> {change.expected!r}")


def build_table_plan(
    dialect: Dialect,
    table: str,
    fields: dict[str, FieldDefinition],
    columns: dict[str, ColumnInfo],
    indexes: IndexInfo,
) -> TablePlan:
    """Plan the DDL that reconciles an existing table with its fields.

    Args:
        dialect: Target dialect adapter.
        table: Table name.
        fields: Normalized business fields keyed by column name.
        columns: Live columns from ``get_table_columns``.
        indexes: Live single-column indexes from ``get_table_indexes``.

    Returns:
        ``TablePlan`` with ``changed`` set when any action was collected.

    Raises:
        TypeChangeError: If a field requests a narrowing or cross-family
            datatype change.
    """
    plan = TablePlan()
    separate_comments = dialect.supports_column_comments and not dialect.inline_comments

    for field_name, field in fields.items():
        column = columns.get(field_name)
        if column is None:
            logger.debug(f"{table}.{field_name}: new {field.type} column")
            plan.add_clauses.append(dialect.add_column_clause(field_name, field))
            if separate_comments and field.name:
                plan.comment_actions.append(
                    dialect.comment_statement(table, field_name, field.name)
                )
            continue

        changes = compare_field_definition(dialect, column, field, f"{table}.{field_name}")
        if not changes:
            continue
        for change in changes:
            log_field_change(table, field_name, change)

        datatype = next((c for c in changes if c.type == "datatype"), None)
        if datatype is not None:
            if not is_compatible_type_change(column.type, datatype.expected):
                raise TypeChangeError(table, field_name, column.type, datatype.expected)
            logger.info(
                f"Widening {table}.{field_name}: {column.type} -> {datatype.expected}"
            )

        target = field
        length = next((c for c in changes if c.type == "length"), None)
        if length is not None and length.current > length.expected:
            logger.warning(
                f"Skipping length shrink on {table}.{field_name}: "
                f"{length.current} -> {length.expected} (shrink is never applied automatically)"
            )
            changes = [c for c in changes if c.type != "length"]
            target = field.model_copy(update={"max": column.max})

        if separate_comments and any(c.type == "comment" for c in changes):
            plan.comment_actions.append(dialect.comment_statement(table, field_name, field.name))

        plan.modify_clauses.extend(dialect.modify_clauses(field_name, target, changes))
        if dialect.needs_default_clause(changes):
            plan.default_clauses.append(dialect.default_clause(field_name, target))

    # Retrofit system columns on tables created outside this engine
    for system_field in SYSTEM_FIELDS[1:]:
        if system_field not in columns:
            logger.debug(f"{table}.{system_field}: missing system column")
            plan.add_clauses.append(dialect.add_system_column_clause(system_field))

    for system_field in SYSTEM_INDEX_FIELDS:
        index_name = dialect.index_name(table, system_field)
        if index_name not in indexes:
            plan.index_actions.append(IndexAction("create", index_name, system_field))

    for field_name, field in fields.items():
        index_name = dialect.index_name(table, field_name)
        if field.index and index_name not in indexes:
            plan.index_actions.append(IndexAction("create", index_name, field_name))
        elif not field.index and index_name in indexes:
            plan.index_actions.append(IndexAction("drop", index_name, field_name))

    plan.refresh_changed()
    return plan
