"""Schema synchronization entry point.

``sync_table()`` reconciles the live database with a list of declarative
table definitions:

1. Validate the invocation context and resolve the dialect
2. Check the server version (once per invocation)
3. For each ``type == "table"`` item, strictly in order: create the table
   if missing, otherwise plan and apply the changes
4. Invalidate the column cache of every synchronized table in one batch

Usage:
    from table_sync import SyncContext, sync_table

    context = SyncContext(
        db=executor,
        cache=cache,
        config={"db": {"dialect": "mysql", "database": "app"}},
    )
    report = await sync_table(context, items)
    print(report.created, report.modified)
"""

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from table_sync.adapters.base import CacheClient, SqlExecutor
from table_sync.adapters.recording import RecordingExecutor
from table_sync.config.models import ContextConfig
from table_sync.errors import PreconditionError
from table_sync.schema.apply import create_table, modify_table
from table_sync.schema.dialects import get_dialect
from table_sync.schema.introspector import ensure_db_version, get_introspector
from table_sync.schema.models import FieldDefinition, SyncReport, SyncRuntime, TableItem
from table_sync.schema.normalize import normalize_field

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "table:columns:"

TABLE_SOURCES = ("app", "addon", "core")

_WORD_PATTERN = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")


@dataclass
class SyncContext:
    """Collaborators and configuration for one sync invocation.

    Attributes:
        db: SQL executor owned by the caller.
        cache: Cache client used for the final batch invalidation.
        config: ``ContextConfig`` or an equivalent mapping
            (``{"db": {"dialect": ..., "database": ...}}``).
    """

    db: SqlExecutor | None
    cache: CacheClient | None
    config: ContextConfig | Mapping[str, Any] | None


def snake_case(name: str) -> str:
    """Convert a camelCase, PascalCase or kebab-case name to snake_case.

    Examples:
        >>> snake_case("userProfile")
        'user_profile'
        >>> snake_case("HTTPLog")
        'http_log'
        >>> snake_case("order-item")
        'order_item'
    """
    return "_".join(word.lower() for word in _WORD_PATTERN.findall(name))


def resolve_table_name(item: TableItem) -> str:
    """Table name for a definition entry.

    ``app`` and ``core`` entries use the snake-cased file name; ``addon``
    entries are namespaced as ``addon_<addon>_<file>``.

    Raises:
        PreconditionError: For an unknown source or an addon entry
            without ``addon_name``.
    """
    if item.source not in TABLE_SOURCES:
        raise PreconditionError(
            f"Unknown table source {item.source!r} for {item.file_name!r} "
            f"(expected one of: {', '.join(TABLE_SOURCES)})"
        )
    if item.source == "addon":
        if not item.addon_name:
            raise PreconditionError(f"Addon table {item.file_name!r} has no addonName")
        return f"addon_{snake_case(item.addon_name)}_{snake_case(item.file_name)}"
    return snake_case(item.file_name)


def resolve_fields(table: str, content: Mapping[str, Any]) -> dict[str, FieldDefinition]:
    """Normalized field definitions keyed by snake-cased column name.

    Raises:
        PreconditionError: If two field keys map to the same column.
    """
    fields: dict[str, FieldDefinition] = {}
    sources: dict[str, str] = {}
    for key, raw in content.items():
        column = snake_case(key)
        if column in fields:
            raise PreconditionError(
                f"Fields {sources[column]!r} and {key!r} of {table} both map to column {column!r}"
            )
        fields[column] = normalize_field(raw)
        sources[column] = key
    return fields


def cache_key(table: str) -> str:
    return f"{CACHE_KEY_PREFIX}{table}"


def _context_value(context: Any, name: str) -> Any:
    if isinstance(context, Mapping):
        return context.get(name)
    return getattr(context, name, None)


def _parse_item(item: Mapping[str, Any] | TableItem) -> TableItem:
    if isinstance(item, TableItem):
        return item
    try:
        return TableItem.model_validate(item)
    except ValidationError as e:
        raise PreconditionError(f"Invalid table definition entry: {e}") from e


def _item_type(item: Mapping[str, Any] | TableItem) -> Any:
    if isinstance(item, TableItem):
        return item.type
    return item.get("type")


async def sync_table(
    context: SyncContext | Mapping[str, Any],
    items: Iterable[Mapping[str, Any] | TableItem],
    dry_run: bool = False,
) -> SyncReport:
    """Synchronize the live schema with declarative table definitions.

    Args:
        context: ``SyncContext`` (or mapping) supplying ``db``, ``cache``
            and ``config``.
        items: Definition entries; only ``type == "table"`` entries are
            processed.
        dry_run: Plan everything and record DDL without executing it.
            The cache is left untouched.

    Returns:
        ``SyncReport`` naming created, modified and unchanged tables.

    Raises:
        PreconditionError: Missing context fields, unknown dialect or
            source, malformed entries, unsupported server version.
        InvalidIdentifierError: A table, column or index name is invalid.
        TypeChangeError: A field requests a disallowed type change.
        Exception: Any executor error, after logging.
    """
    db = _context_value(context, "db")
    cache = _context_value(context, "cache")
    raw_config = _context_value(context, "config")

    if db is None:
        raise PreconditionError("Sync context is missing 'db' (SQL executor)")
    if cache is None:
        raise PreconditionError("Sync context is missing 'cache' (cache client)")
    if raw_config is None:
        raise PreconditionError("Sync context is missing 'config'")
    try:
        config = ContextConfig.model_validate(raw_config)
    except ValidationError as e:
        raise PreconditionError(f"Invalid sync config (config.db is required): {e}") from e

    dialect = get_dialect(config.db.dialect)
    executor = RecordingExecutor(db) if dry_run else db
    runtime = SyncRuntime(dialect=dialect, executor=executor, database=config.db.database)
    report = SyncReport(dry_run=dry_run)

    try:
        await ensure_db_version(dialect, executor)
        introspector = get_introspector(runtime)
        synced: list[str] = []

        for item in items:
            if _item_type(item) != "table":
                continue
            table_item = _parse_item(item)
            table = resolve_table_name(table_item)
            dialect.quote_identifier(table)
            fields = resolve_fields(table, table_item.content)

            if await introspector.table_exists(table):
                plan = await modify_table(runtime, table, fields)
                if plan.changed:
                    report.modified.append(table)
                    logger.info(f"Modified table {table}")
                else:
                    report.unchanged.append(table)
                    logger.info(f"Table {table} is up to date")
            else:
                await create_table(runtime, table, fields)
                report.created.append(table)
                logger.info(f"Created table {table}")
            synced.append(table)

        if dry_run:
            report.statements = list(executor.statements)
        elif synced:
            keys = [cache_key(t) for t in dict.fromkeys(synced)]
            report.invalidated = await cache.delete_batch(keys)
            logger.info(f"Invalidated {len(keys)} table cache key(s)")
    except Exception as e:
        logger.error(f"Schema sync failed: {e}")
        raise

    return report
