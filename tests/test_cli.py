"""Tests for the table-sync CLI."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from table_sync.cli import _load_table_items, main
from table_sync.config.models import ContextConfig
from table_sync.errors import PreconditionError
from table_sync.schema.models import SyncReport
from table_sync.schema.sync import SyncContext

DB_TOML = """
[profiles.local]
url = "sqlite:///app.db"
dialect = "sqlite"
description = "Local SQLite"
"""


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    path = tmp_path / "db.toml"
    path.write_text(DB_TOML)
    return path


@pytest.fixture
def tables_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "tables"
    directory.mkdir()
    (directory / "user.json").write_text(json.dumps({"email": {"name": "Email", "type": "string"}}))
    (directory / "order.json").write_text(json.dumps({"total": {"name": "Total", "type": "number"}}))
    return directory


class _FakeContext:
    """Stands in for ``open_sync_context`` without touching a database."""

    def __init__(self, *args, **kwargs):
        self.context = SyncContext(
            db=AsyncMock(),
            cache=AsyncMock(),
            config=ContextConfig.model_validate({"db": {"dialect": "sqlite"}}),
        )

    async def __aenter__(self):
        return self.context

    async def __aexit__(self, *exc):
        return False


# ------------------------------------------------------------------
# Table definition loading
# ------------------------------------------------------------------


class TestLoadTableItems:
    def test_app_tables_sorted(self, tables_dir):
        items = _load_table_items(tables_dir)
        assert [i["fileName"] for i in items] == ["order", "user"]
        assert items[1] == {
            "type": "table",
            "source": "app",
            "fileName": "user",
            "content": {"email": {"name": "Email", "type": "string"}},
        }

    def test_addon_tables(self, tables_dir):
        items = _load_table_items(None, [f"shop={tables_dir}"])
        assert all(i["source"] == "addon" and i["addonName"] == "shop" for i in items)

    def test_malformed_addon(self, tables_dir):
        with pytest.raises(ValueError, match="NAME=DIR"):
            _load_table_items(None, [str(tables_dir)])

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            _load_table_items(tmp_path / "nope")

    def test_invalid_json(self, tmp_path):
        (tmp_path / "bad.json").write_text("{not json")
        with pytest.raises(ValueError, match="Invalid JSON"):
            _load_table_items(tmp_path)

    def test_non_object(self, tmp_path):
        (tmp_path / "list.json").write_text("[]")
        with pytest.raises(ValueError, match="JSON object"):
            _load_table_items(tmp_path)


# ------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------


class TestProfilesCommand:
    def test_lists_profiles(self, config_path, capsys):
        assert main(["--config", str(config_path), "profiles"]) == 0
        out = capsys.readouterr().out
        assert "local" in out
        assert "Local SQLite" in out

    def test_missing_config(self, tmp_path):
        assert main(["--config", str(tmp_path / "missing.toml"), "profiles"]) == 1


class TestSyncCommands:
    def test_requires_profile(self, config_path, tables_dir, monkeypatch):
        monkeypatch.delenv("DB_PROFILE", raising=False)
        assert main(["--config", str(config_path), "plan", "--tables-dir", str(tables_dir)]) == 1

    def test_plan_runs_dry(self, config_path, tables_dir):
        report = SyncReport(dry_run=True, created=["order", "user"], statements=["CREATE TABLE ..."])
        with patch("table_sync.cli.open_sync_context", _FakeContext), patch(
            "table_sync.cli.sync_table", AsyncMock(return_value=report)
        ) as mock_sync:
            code = main(
                ["--config", str(config_path), "-p", "local", "plan", "--tables-dir", str(tables_dir)]
            )
        assert code == 0
        assert mock_sync.await_args.kwargs == {"dry_run": True}
        items = mock_sync.await_args.args[1]
        assert [i["fileName"] for i in items] == ["order", "user"]

    def test_sync_without_confirm_only_plans(self, config_path, tables_dir):
        with patch("table_sync.cli.open_sync_context", _FakeContext), patch(
            "table_sync.cli.sync_table", AsyncMock(return_value=SyncReport(dry_run=True))
        ) as mock_sync:
            code = main(
                ["--config", str(config_path), "-p", "local", "sync", "--tables-dir", str(tables_dir)]
            )
        assert code == 0
        assert mock_sync.await_args.kwargs == {"dry_run": True}

    def test_sync_with_confirm_applies(self, config_path, tables_dir):
        with patch("table_sync.cli.open_sync_context", _FakeContext), patch(
            "table_sync.cli.sync_table", AsyncMock(return_value=SyncReport(modified=["user"]))
        ) as mock_sync:
            code = main(
                [
                    "--config", str(config_path), "-p", "local",
                    "sync", "--tables-dir", str(tables_dir), "--confirm",
                ]
            )
        assert code == 0
        assert mock_sync.await_args.kwargs == {"dry_run": False}

    def test_sync_error_returns_1(self, config_path, tables_dir):
        failing = AsyncMock(side_effect=PreconditionError("Unsupported database version 3.45.1"))
        with patch("table_sync.cli.open_sync_context", _FakeContext), patch(
            "table_sync.cli.sync_table", failing
        ):
            code = main(
                ["--config", str(config_path), "-p", "local", "plan", "--tables-dir", str(tables_dir)]
            )
        assert code == 1

    def test_no_definitions(self, config_path, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()
        assert main(["--config", str(config_path), "-p", "local", "plan", "--tables-dir", str(empty)]) == 1


class TestCheckCommand:
    def test_supported_version(self, config_path):
        with patch("table_sync.cli.open_sync_context", _FakeContext), patch(
            "table_sync.cli.ensure_db_version", AsyncMock(return_value=(3, 50, 1))
        ):
            assert main(["--config", str(config_path), "-p", "local", "check"]) == 0

    def test_unsupported_version(self, config_path):
        failing = AsyncMock(side_effect=PreconditionError("Unsupported database version 3.45.1"))
        with patch("table_sync.cli.open_sync_context", _FakeContext), patch(
            "table_sync.cli.ensure_db_version", failing
        ):
            assert main(["--config", str(config_path), "-p", "local", "check"]) == 1
