"""Apply schema changes: create tables, execute table plans.

Statement groups run in a fixed order and are never wrapped in a
transaction (``CREATE INDEX CONCURRENTLY`` cannot run inside one).  A
failure part-way leaves the already-applied statements in place; every
statement is idempotent on re-run, so re-running the sync is the
recovery path.

Apply order for an existing table:
1. Structural ADD/MODIFY (one batched ALTER, or a rebuild on SQLite)
2. Default-only clauses
3. Index create/drop actions, one at a time
4. ``COMMENT ON COLUMN`` statements
"""

import asyncio
import logging

from table_sync.schema.dialects import (
    SYSTEM_FIELD_COMMENTS,
    SYSTEM_FIELDS,
    SYSTEM_INDEX_FIELDS,
    Dialect,
)
from table_sync.schema.introspector import get_introspector
from table_sync.schema.models import FieldDefinition, IndexAction, SyncRuntime, TablePlan
from table_sync.schema.planner import build_table_plan

logger = logging.getLogger(__name__)


def _index_actions_for_new_table(
    dialect: Dialect, table: str, fields: dict[str, FieldDefinition]
) -> list[IndexAction]:
    names = list(SYSTEM_INDEX_FIELDS)
    names.extend(key for key, field in fields.items() if field.index)
    return [IndexAction("create", dialect.index_name(table, name), name) for name in names]


async def apply_index_action(runtime: SyncRuntime, table: str, action: IndexAction) -> None:
    """Create or drop one single-column index, logging full context on failure."""
    dialect = runtime.dialect
    statement = dialect.build_index_sql(table, action.index_name, action.field_name, action.action)
    try:
        await dialect.execute_ddl(runtime.executor, statement)
    except Exception as e:
        logger.error(
            f"Index {action.action} failed: table={table} index={action.index_name} "
            f"field={action.field_name}: {e}"
        )
        raise


async def create_table(
    runtime: SyncRuntime, table: str, fields: dict[str, FieldDefinition]
) -> None:
    """Create a table with system and business columns, comments and indexes.

    Index creations target independent index names and run concurrently.
    """
    dialect = runtime.dialect
    executor = runtime.executor

    await dialect.execute_ddl(executor, dialect.create_table_sql(table, fields))

    if dialect.supports_column_comments and not dialect.inline_comments:
        for name in SYSTEM_FIELDS:
            await dialect.execute_ddl(
                executor, dialect.comment_statement(table, name, SYSTEM_FIELD_COMMENTS[name])
            )
        for key, field in fields.items():
            if field.name:
                await dialect.execute_ddl(executor, dialect.comment_statement(table, key, field.name))

    actions = _index_actions_for_new_table(dialect, table, fields)
    await asyncio.gather(*(apply_index_action(runtime, table, a) for a in actions))


async def rebuild_table(
    runtime: SyncRuntime, table: str, fields: dict[str, FieldDefinition]
) -> None:
    """Rebuild a table with the target schema, keeping shared column data.

    Steps: create a temporary table with the new definition, copy the
    columns present in both, drop the original, rename the temporary
    table, then recreate the automatic indexes.  Live columns that are
    no longer declared are carried over unchanged with their data.
    """
    dialect = runtime.dialect
    executor = runtime.executor

    live_columns = await get_introspector(runtime).get_table_columns(table)
    temp_table = f"_tmp_{table}"
    table_q = dialect.quote_identifier(table)
    temp_q = dialect.quote_identifier(temp_table)

    undeclared = [c for c in live_columns if c not in SYSTEM_FIELDS and c not in fields]
    if undeclared:
        logger.warning(
            f"Rebuilding {table} keeps undeclared column(s) {', '.join(undeclared)}; "
            f"drop them manually if they are obsolete"
        )
    extra_columns = [dialect.live_column_definition(c, live_columns[c]) for c in undeclared]

    await dialect.execute_ddl(executor, f"DROP TABLE IF EXISTS {temp_q}")
    await dialect.execute_ddl(
        executor, dialect.create_table_sql(temp_table, fields, extra_columns)
    )

    shared = [c for c in (*SYSTEM_FIELDS, *fields) if c in live_columns]
    shared.extend(undeclared)
    column_list = ", ".join(dialect.quote_identifier(c) for c in shared)
    await dialect.execute_ddl(
        executor,
        f"INSERT INTO {temp_q} ({column_list}) SELECT {column_list} FROM {table_q}",
    )
    await dialect.execute_ddl(executor, f"DROP TABLE IF EXISTS {table_q}")
    await dialect.execute_ddl(executor, f"ALTER TABLE {temp_q} RENAME TO {table_q}")

    for action in _index_actions_for_new_table(dialect, table, fields):
        await apply_index_action(runtime, table, action)

    logger.debug(f"Rebuilt {table} ({len(shared)} columns copied)")


async def apply_table_plan(
    runtime: SyncRuntime, table: str, fields: dict[str, FieldDefinition], plan: TablePlan
) -> None:
    """Execute a table plan in order; the first failure propagates."""
    dialect = runtime.dialect
    executor = runtime.executor

    # (a) structural changes
    if dialect.rebuilds_on_modify and (plan.modify_clauses or plan.default_clauses):
        if plan.default_clauses:
            logger.warning(f"Applying default changes on {table} through a table rebuild")
        await rebuild_table(runtime, table, fields)
    elif dialect.rebuilds_on_modify:
        for clause in plan.add_clauses:
            await dialect.execute_ddl(executor, dialect.alter_table_sql(table, [clause]))
    else:
        clauses = [*plan.add_clauses, *plan.modify_clauses]
        if clauses:
            await dialect.execute_ddl(executor, dialect.alter_table_sql(table, clauses))

    # (b) default-only clauses
    if plan.default_clauses:
        if dialect.supports_alter_default:
            await dialect.execute_ddl(executor, dialect.alter_table_sql(table, plan.default_clauses))
        else:
            logger.debug(f"{table}: {len(plan.default_clauses)} default clause(s) covered by rebuild")

    # (c) indexes
    for action in plan.index_actions:
        await apply_index_action(runtime, table, action)

    # (d) comments
    for statement in plan.comment_actions:
        await dialect.execute_ddl(executor, statement)


async def modify_table(
    runtime: SyncRuntime, table: str, fields: dict[str, FieldDefinition]
) -> TablePlan:
    """Read live metadata, plan the table and apply the plan if it changed."""
    introspector = get_introspector(runtime)
    columns = await introspector.get_table_columns(table)
    indexes = await introspector.get_table_indexes(table)

    plan = build_table_plan(runtime.dialect, table, fields, columns, indexes)
    if plan.changed:
        await apply_table_plan(runtime, table, fields, plan)
    return plan
