"""Logical field types and default-value resolution.

Logical types are dialect-independent column categories.  They fall into
three families:

- ``number``: integer columns.
- VARCHAR family (``string``, ``array_string``, ``array_number_string``):
  sized character columns, require ``max``.
- TEXT family (``text``, ``array_text``, ``array_number_text``): unbounded
  text columns that never receive a SQL ``DEFAULT``.

Usage:
    from table_sync.schema.types import resolve_default_value, generate_default_sql

    resolve_default_value(None, "array_string")   # '[]'
    generate_default_sql("it's", "string")       # " DEFAULT 'it''s'"
"""

from typing import Any, Literal

FieldType = Literal[
    "number",
    "string",
    "text",
    "array_string",
    "array_text",
    "array_number_string",
    "array_number_text",
]

FIELD_TYPES: tuple[str, ...] = (
    "number",
    "string",
    "text",
    "array_string",
    "array_text",
    "array_number_string",
    "array_number_text",
)

VARCHAR_TYPES: frozenset[str] = frozenset(
    {"string", "array_string", "array_number_string"}
)
TEXT_TYPES: frozenset[str] = frozenset(
    {"text", "array_text", "array_number_text"}
)

# JavaScript's Number.MAX_SAFE_INTEGER; the "unbounded" max for numbers
MAX_SAFE_INTEGER = 2**53 - 1

# Resolved default for TEXT-family columns: no DEFAULT clause at all
NO_DEFAULT = "null"


def is_string_or_array_type(field_type: str) -> bool:
    """True for logical types stored as sized VARCHAR columns.

    Examples:
        >>> is_string_or_array_type("array_string")
        True
        >>> is_string_or_array_type("array_text")
        False
    """
    return field_type in VARCHAR_TYPES


def is_text_type(field_type: str) -> bool:
    """True for logical types stored as unbounded TEXT columns."""
    return field_type in TEXT_TYPES


def resolve_default_value(value: Any, field_type: str) -> Any:
    """Resolve a declared default to the value the column should carry.

    ``None`` and the string ``"null"`` are sentinels meaning "use the
    category's empty value": ``0`` for numbers, ``''`` for strings and
    ``'[]'`` for array-of-string categories.  TEXT-family categories
    always resolve to ``NO_DEFAULT``.

    Examples:
        >>> resolve_default_value(None, "number")
        0
        >>> resolve_default_value("null", "string")
        ''
        >>> resolve_default_value(None, "array_string")
        '[]'
        >>> resolve_default_value("hello", "text") == NO_DEFAULT
        True
        >>> resolve_default_value(0, "number")
        0
    """
    if field_type in TEXT_TYPES:
        return NO_DEFAULT

    if value is not None and value != "null":
        return value

    if field_type == "number":
        return 0
    if field_type == "string":
        return ""
    if field_type in ("array_string", "array_number_string"):
        return "[]"
    return value


def format_default_literal(value: Any) -> str:
    """Render a resolved default as a SQL literal.

    Numbers are emitted bare; everything else is single-quoted with
    embedded quotes doubled.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    escaped = str(value).replace("'", "''")
    return f"'{escaped}'"


def generate_default_sql(value: Any, field_type: str) -> str:
    """Build the ``DEFAULT`` fragment of a column definition.

    Args:
        value: Default already passed through ``resolve_default_value``.
        field_type: Logical field type.

    Returns:
        ``" DEFAULT <literal>"`` (with a leading space) or ``""`` for
        TEXT-family categories.

    Examples:
        >>> generate_default_sql(0, "number")
        ' DEFAULT 0'
        >>> generate_default_sql("", "string")
        " DEFAULT ''"
        >>> generate_default_sql(NO_DEFAULT, "text")
        ''
    """
    if field_type in TEXT_TYPES or value == NO_DEFAULT:
        return ""
    return f" DEFAULT {format_default_literal(value)}"
