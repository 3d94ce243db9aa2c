"""End-to-end tests for sync_table against scripted databases."""

import logging

import pytest

from table_sync.errors import InvalidIdentifierError, PreconditionError, TypeChangeError
from table_sync.schema.models import TableItem
from table_sync.schema.sync import (
    SyncContext,
    resolve_fields,
    resolve_table_name,
    snake_case,
    sync_table,
)

from conftest import FakeDatabase


def _context(db, cache, dialect="mysql", database="app"):
    return SyncContext(db=db, cache=cache, config={"db": {"dialect": dialect, "database": database}})


def _item(file_name, content, source="app", addon_name=None):
    item = {"type": "table", "source": source, "fileName": file_name, "content": content}
    if addon_name:
        item["addonName"] = addon_name
    return item


EMAIL_FIELD = {"name": "Email", "type": "string", "max": 100}


# ------------------------------------------------------------------
# Naming
# ------------------------------------------------------------------


class TestTableNaming:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("user", "user"),
            ("userProfile", "user_profile"),
            ("UserProfile", "user_profile"),
            ("HTTPLog", "http_log"),
            ("order-item", "order_item"),
            ("order_item", "order_item"),
            ("log2024", "log_2024"),
        ],
    )
    def test_snake_case(self, name, expected):
        assert snake_case(name) == expected

    def test_app_and_core_use_file_name(self):
        for source in ("app", "core"):
            item = TableItem.model_validate(_item("userProfile", {}, source=source))
            assert resolve_table_name(item) == "user_profile"

    def test_addon_is_namespaced(self):
        item = TableItem.model_validate(_item("orderItem", {}, source="addon", addon_name="shopCart"))
        assert resolve_table_name(item) == "addon_shop_cart_order_item"

    def test_addon_without_name_rejected(self):
        item = TableItem.model_validate(_item("orderItem", {}, source="addon"))
        with pytest.raises(PreconditionError, match="addonName"):
            resolve_table_name(item)

    def test_unknown_source_rejected(self):
        item = TableItem.model_validate(_item("user", {}, source="plugin"))
        with pytest.raises(PreconditionError, match="Unknown table source"):
            resolve_table_name(item)


# ------------------------------------------------------------------
# Preconditions
# ------------------------------------------------------------------


class TestPreconditions:
    async def test_missing_db(self, cache):
        with pytest.raises(PreconditionError, match="'db'"):
            await sync_table(_context(None, cache), [])

    async def test_missing_cache(self, mysql_db):
        with pytest.raises(PreconditionError, match="'cache'"):
            await sync_table(_context(mysql_db, None), [])

    async def test_missing_config(self, mysql_db, cache):
        with pytest.raises(PreconditionError, match="'config'"):
            await sync_table(SyncContext(db=mysql_db, cache=cache, config=None), [])

    async def test_config_without_db_section(self, mysql_db, cache):
        with pytest.raises(PreconditionError, match="config.db"):
            await sync_table(SyncContext(db=mysql_db, cache=cache, config={}), [])

    async def test_unknown_dialect(self, mysql_db, cache):
        with pytest.raises(PreconditionError):
            await sync_table(_context(mysql_db, cache, dialect="oracle"), [])

    async def test_mapping_context_accepted(self, mysql_db, cache):
        context = {"db": mysql_db, "cache": cache, "config": {"db": {"dialect": "mysql"}}}
        report = await sync_table(context, [])
        assert report.tables == []

    async def test_old_server_stops_before_any_ddl(self, cache):
        db = FakeDatabase("mysql", version="5.7.44")
        with pytest.raises(PreconditionError):
            await sync_table(_context(db, cache), [_item("user", {"email": EMAIL_FIELD})])
        assert db.statements == []
        cache.delete_batch.assert_not_called()


# ------------------------------------------------------------------
# End-to-end
# ------------------------------------------------------------------


class TestSyncMySQL:
    async def test_create_new_table(self, mysql_db, cache):
        """A missing table is created with system columns and system indexes."""
        report = await sync_table(_context(mysql_db, cache), [_item("user", {"email": EMAIL_FIELD})])

        assert report.created == ["user"]
        creates = [s for s in mysql_db.statements if s.startswith("CREATE TABLE")]
        assert len(creates) == 1
        column_lines = [line for line in creates[0].splitlines() if line.strip().startswith("`")]
        assert len(column_lines) == 6
        assert len([s for s in mysql_db.statements if "ADD INDEX" in s]) == 3
        cache.delete_batch.assert_awaited_once_with(["table:columns:user"])
        assert report.invalidated == 1

    async def test_add_column_to_existing_table(self, mysql_db, cache):
        mysql_db.add_table(
            "user",
            {
                "email": {
                    "data_type": "varchar",
                    "column_type": "varchar(100)",
                    "max": 100,
                    "default": "",
                    "comment": "Email",
                }
            },
        )
        content = {"email": EMAIL_FIELD, "bio": {"name": "Bio", "type": "text"}}
        report = await sync_table(_context(mysql_db, cache), [_item("user", content)])

        assert report.modified == ["user"]
        assert len(mysql_db.statements) == 1
        assert "ADD COLUMN `bio`" in mysql_db.statements[0]
        cache.delete_batch.assert_awaited_once_with(["table:columns:user"])

    async def test_rerun_is_a_no_op(self, mysql_db, cache):
        mysql_db.add_table(
            "user",
            {
                "email": {
                    "data_type": "varchar",
                    "column_type": "varchar(100)",
                    "max": 100,
                    "default": "",
                    "comment": "Email",
                }
            },
        )
        report = await sync_table(_context(mysql_db, cache), [_item("user", {"email": EMAIL_FIELD})])
        assert report.unchanged == ["user"]
        assert mysql_db.statements == []
        cache.delete_batch.assert_awaited_once_with(["table:columns:user"])

    async def test_type_change_aborts(self, mysql_db, cache, caplog):
        mysql_db.add_table("user", {"code": {"data_type": "bigint", "default": "0", "comment": "Code"}})
        content = {"code": {"name": "Code", "type": "string", "max": 20}}
        with caplog.at_level(logging.ERROR):
            with pytest.raises(TypeChangeError):
                await sync_table(_context(mysql_db, cache), [_item("user", content)])
        assert "Schema sync failed" in caplog.text
        assert mysql_db.statements == []
        cache.delete_batch.assert_not_called()

    async def test_executor_error_logged_and_propagated(self, mysql_db, cache, caplog):
        async def failing(sql, params=None):
            if sql.startswith("CREATE TABLE"):
                raise RuntimeError("disk full")
            return await FakeDatabase.unsafe(mysql_db, sql, params)

        mysql_db.unsafe = failing
        with caplog.at_level(logging.ERROR):
            with pytest.raises(RuntimeError, match="disk full"):
                await sync_table(_context(mysql_db, cache), [_item("user", {"email": EMAIL_FIELD})])
        assert "Schema sync failed: disk full" in caplog.text


class TestSyncItems:
    async def test_non_table_items_skipped(self, mysql_db, cache):
        items = [
            {"type": "view", "source": "app", "fileName": "report", "content": {}},
            _item("user", {"email": EMAIL_FIELD}),
        ]
        report = await sync_table(_context(mysql_db, cache), items)
        assert report.created == ["user"]

    async def test_tables_processed_in_order_and_keys_deduplicated(self, pg_db, cache):
        items = [
            _item("order", {"total": {"name": "Total", "type": "number"}}),
            _item("cartItem", {"qty": {"name": "Qty", "type": "number"}}, source="addon", addon_name="shop"),
            _item("order", {"total": {"name": "Total", "type": "number"}}),
        ]
        report = await sync_table(_context(pg_db, cache, dialect="postgresql"), items)

        # The fake database does not apply DDL, so the repeated entry is created again
        assert report.created == ["order", "addon_shop_cart_item", "order"]
        cache.delete_batch.assert_awaited_once_with(
            ["table:columns:order", "table:columns:addon_shop_cart_item"]
        )

    async def test_invalid_column_name_rejected(self, mysql_db, cache):
        with pytest.raises(InvalidIdentifierError):
            await sync_table(_context(mysql_db, cache), [_item("user", {"2fa": EMAIL_FIELD})])

    async def test_no_tables_no_invalidation(self, mysql_db, cache):
        await sync_table(_context(mysql_db, cache), [])
        cache.delete_batch.assert_not_called()


class TestFieldKeys:
    async def test_camel_case_keys_become_snake_case_columns(self, mysql_db, cache):
        content = {"userId": {"name": "User", "type": "number", "index": True}}
        await sync_table(_context(mysql_db, cache), [_item("order", content)])

        create = next(s for s in mysql_db.statements if s.startswith("CREATE TABLE"))
        assert "`user_id` BIGINT UNSIGNED" in create
        assert "`userId`" not in create
        assert any("ADD INDEX `idx_user_id` (`user_id`)" in s for s in mysql_db.statements)

    async def test_existing_snake_case_column_matches_camel_case_key(self, mysql_db, cache):
        mysql_db.add_table(
            "user",
            {
                "email_address": {
                    "data_type": "varchar",
                    "column_type": "varchar(100)",
                    "max": 100,
                    "default": "",
                    "comment": "Email",
                }
            },
        )
        report = await sync_table(_context(mysql_db, cache), [_item("user", {"emailAddress": EMAIL_FIELD})])
        assert report.unchanged == ["user"]
        assert mysql_db.statements == []

    async def test_keys_mapping_to_same_column_rejected(self, mysql_db, cache):
        content = {"userId": EMAIL_FIELD, "user_id": EMAIL_FIELD}
        with pytest.raises(PreconditionError, match="'userId' and 'user_id'"):
            await sync_table(_context(mysql_db, cache), [_item("order", content)])
        assert mysql_db.statements == []

    def test_resolve_fields(self):
        fields = resolve_fields("user", {"nickName": {"name": "Nick", "type": "string", "max": 30}})
        assert list(fields) == ["nick_name"]
        assert fields["nick_name"].max == 30


class TestDryRun:
    async def test_records_without_executing(self, sqlite_db, cache):
        report = await sync_table(
            _context(sqlite_db, cache, dialect="sqlite"),
            [_item("user", {"email": EMAIL_FIELD})],
            dry_run=True,
        )
        assert report.dry_run is True
        assert report.created == ["user"]
        assert sqlite_db.statements == []
        assert report.statements[0].startswith('CREATE TABLE IF NOT EXISTS "user"')
        assert len(report.statements) == 4
        cache.delete_batch.assert_not_called()
        assert report.invalidated == 0

    async def test_reads_still_hit_database(self, sqlite_db, cache):
        await sync_table(
            _context(sqlite_db, cache, dialect="sqlite"),
            [_item("user", {"email": EMAIL_FIELD})],
            dry_run=True,
        )
        assert sqlite_db.queries[:2] == ["version", "table_exists"]
