"""Data model for schema synchronization.

This module contains the engine's value types:
- Declarative input: FieldDefinition, TableItem
- Live metadata: ColumnInfo, IndexInfo
- Planning output: FieldChange, IndexAction, TablePlan
- Invocation state: SyncRuntime
- Run outcome: SyncReport

Pydantic models are used for anything validated from external input or
returned to callers; the transient planning values are plain dataclasses.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from table_sync.schema.types import FieldType

if TYPE_CHECKING:
    from table_sync.adapters.base import SqlExecutor
    from table_sync.schema.dialects import Dialect


# ============================================================================
# Declarative Input
# ============================================================================


class FieldDefinition(BaseModel):
    """A normalized business field.

    Produced by ``normalize_field()``; every attribute is populated.  The
    ``name`` is the human label, stored as the column comment.

    Example:
        >>> f = FieldDefinition(name="Email", type="string", max=100)
        >>> f.nullable
        False
    """

    name: str = ""
    type: FieldType
    detail: str = ""
    min: int | float | None = 0
    max: int | float | None = None
    default: Any = None
    index: bool = False
    unique: bool = False
    nullable: bool = False
    unsigned: bool = True
    regexp: str | None = None


class TableItem(BaseModel):
    """One entry produced by the table-definition discovery layer.

    Accepts the camelCase keys (``fileName``, ``addonName``) used by the
    discovery layer as well as snake_case names.
    """

    model_config = ConfigDict(populate_by_name=True)

    type: str = "table"
    source: str
    file_name: str = Field(alias="fileName")
    addon_name: str | None = Field(default=None, alias="addonName")
    content: dict[str, dict[str, Any]]


# ============================================================================
# Live Metadata
# ============================================================================


class ColumnInfo(BaseModel):
    """Live column metadata, read fresh on every run.

    ``type`` is the lower-cased base type (``varchar``, ``bigint``, ...);
    ``column_type`` is the full native declaration where the dialect
    reports one.  ``default_value`` is the unquoted literal, or ``None``
    when the column has no default.
    """

    type: str
    column_type: str = ""
    max: int | None = None
    nullable: bool = False
    default_value: str | None = None
    comment: str | None = None


# Index name -> ordered column list (single-column indexes only)
IndexInfo = dict[str, list[str]]


# ============================================================================
# Planning Output
# ============================================================================

ChangeType = Literal["length", "comment", "datatype", "nullable", "default"]

CHANGE_TYPE_LABELS: dict[str, str] = {
    "length": "length",
    "datatype": "type",
    "comment": "comment",
    "default": "default",
    "nullable": "nullability",
}


@dataclass
class FieldChange:
    """One difference between a live column and its field definition."""

    type: ChangeType
    current: Any
    expected: Any


@dataclass
class IndexAction:
    """A single-column index to create or drop."""

    action: Literal["create", "drop"]
    index_name: str
    field_name: str


@dataclass
class TablePlan:
    """Computed DDL actions for one existing table.

    Consumed immediately by ``apply_table_plan()`` and never persisted.

    Attributes:
        changed: True when at least one action list is non-empty.
        add_clauses: ``ADD COLUMN`` clauses for missing columns.
        modify_clauses: Column rewrite clauses (type, length, nullability,
            comment on the MySQL-like dialect).
        default_clauses: ``ALTER COLUMN .. SET|DROP DEFAULT`` clauses.
        index_actions: Single-column index creates/drops.
        comment_actions: Complete ``COMMENT ON COLUMN`` statements.
    """

    changed: bool = False
    add_clauses: list[str] = field(default_factory=list)
    modify_clauses: list[str] = field(default_factory=list)
    default_clauses: list[str] = field(default_factory=list)
    index_actions: list[IndexAction] = field(default_factory=list)
    comment_actions: list[str] = field(default_factory=list)

    def refresh_changed(self) -> bool:
        """Recompute ``changed`` from the action lists and return it."""
        self.changed = bool(
            self.add_clauses
            or self.modify_clauses
            or self.default_clauses
            or self.index_actions
            or self.comment_actions
        )
        return self.changed


# ============================================================================
# Invocation State
# ============================================================================


@dataclass
class SyncRuntime:
    """Per-invocation state shared by the reader, planner and applier.

    The engine never opens, closes or times out ``executor``; its
    lifecycle belongs to the caller.
    """

    dialect: "Dialect"
    executor: "SqlExecutor"
    database: str = ""


# ============================================================================
# Run Outcome
# ============================================================================


class SyncReport(BaseModel):
    """Outcome of a ``sync_table()`` run.

    Example:
        >>> report = SyncReport(created=["user"])
        >>> report.tables
        ['user']
    """

    dry_run: bool = False
    created: list[str] = Field(default_factory=list)
    modified: list[str] = Field(default_factory=list)
    unchanged: list[str] = Field(default_factory=list)
    statements: list[str] = Field(default_factory=list)
    invalidated: int = 0

    @property
    def tables(self) -> list[str]:
        """All synchronized tables, in processing order within each group."""
        return [*self.created, *self.modified, *self.unchanged]
