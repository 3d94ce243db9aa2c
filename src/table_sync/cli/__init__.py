"""CLI module for declarative table synchronization.

Provides commands for profile listing, server version checks, and
planning or applying schema synchronization from JSON table definitions.

Usage:
    DB_PROFILE=local table-sync check
    table-sync profiles
    table-sync --profile local plan --tables-dir tables/
    table-sync --profile local sync --tables-dir tables/ --addon admin=addons/admin/tables --confirm

Commands:
    profiles  - List available profiles
    check     - Verify the server version is supported
    plan      - Show the DDL a sync would execute (dry run)
    sync      - Synchronize the schema (requires --confirm)
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from table_sync.config.loader import load_sync_config
from table_sync.errors import SchemaSyncError
from table_sync.factory import (
    ProfileNotFoundError,
    get_active_profile_name,
    open_sync_context,
)
from table_sync.schema.introspector import ensure_db_version
from table_sync.schema.models import SyncReport
from table_sync.schema.sync import sync_table

console = Console()


# ============================================================================
# Table definition loading (CLI-internal helper)
# ============================================================================


def _load_table_items(
    tables_dir: str | Path | None, addons: list[str] | None = None
) -> list[dict[str, Any]]:
    """Load JSON table definitions into sync items.

    Every ``*.json`` file holds one table: an object mapping field keys to
    field definitions.  The file stem is the table's file name.

    Args:
        tables_dir: Directory of application tables (source ``app``).
        addons: ``NAME=DIR`` entries; each directory's files become
            ``addon`` tables namespaced by ``NAME``.

    Returns:
        List of sync items, in directory order then file-name order.

    Raises:
        FileNotFoundError: If a directory does not exist.
        ValueError: On malformed ``--addon`` values, invalid JSON, or a
            file whose top level is not an object.

    Example:
        >>> items = _load_table_items("tables", ["admin=addons/admin"])
        >>> items[0]["fileName"]
        'user'
    """
    sources: list[tuple[str, str | None, Path]] = []
    if tables_dir:
        sources.append(("app", None, Path(tables_dir)))
    for entry in addons or []:
        name, sep, directory = entry.partition("=")
        if not sep or not name or not directory:
            raise ValueError(f"Invalid --addon value {entry!r} (expected NAME=DIR)")
        sources.append(("addon", name, Path(directory)))

    items: list[dict[str, Any]] = []
    for source, addon_name, directory in sources:
        if not directory.is_dir():
            raise FileNotFoundError(f"Table directory not found: {directory}")
        for path in sorted(directory.glob("*.json")):
            try:
                content = json.loads(path.read_text())
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON in {path}: {e}") from e
            if not isinstance(content, dict):
                raise ValueError(f"{path} must contain a JSON object of field definitions")
            item: dict[str, Any] = {
                "type": "table",
                "source": source,
                "fileName": path.stem,
                "content": content,
            }
            if addon_name:
                item["addonName"] = addon_name
            items.append(item)

    return items


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _resolve_profile(args: argparse.Namespace) -> str | None:
    """Profile from --profile or the environment; prints guidance if neither."""
    if args.profile:
        return args.profile
    env_prefix = getattr(args, "env_prefix", "")
    try:
        return get_active_profile_name(env_prefix=env_prefix)
    except ProfileNotFoundError:
        console.print("[yellow]No profile configured.[/yellow]")
        console.print(
            f"[dim]Pass[/dim] [cyan]--profile <name>[/cyan] [dim]or set[/dim] "
            f"[cyan]{env_prefix}DB_PROFILE=<name>[/cyan]"
        )
        return None


def _print_report(report: SyncReport) -> None:
    table = Table(title="Schema Sync", show_header=True, header_style="bold")
    table.add_column("Table")
    table.add_column("Result")

    for name in report.created:
        table.add_row(name, "[bold green]CREATED[/bold green]")
    for name in report.modified:
        table.add_row(name, "[bold yellow]MODIFIED[/bold yellow]")
    for name in report.unchanged:
        table.add_row(name, "[dim]unchanged[/dim]")

    console.print(table)


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_check(args: argparse.Namespace) -> int:
    """Async implementation for check command.

    Returns:
        0 when the server version is supported, 1 otherwise.
    """
    profile = _resolve_profile(args)
    if profile is None:
        return 1

    console.print(f"Checking profile: [bold cyan]{profile}[/bold cyan]")
    try:
        async with open_sync_context(profile, args.config, args.env_prefix) as context:
            dialect = context.config.db.dialect
            version = await ensure_db_version(dialect, context.db)
    except (FileNotFoundError, KeyError, SchemaSyncError) as e:
        console.print(f"\n[bold red]x[/bold red] {e}")
        return 1
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] Connection failed: {e}")
        return 1

    found = ".".join(str(p) for p in version)
    console.print(f"[bold green]v[/bold green] {dialect} {found} is supported")
    return 0


async def _async_sync(args: argparse.Namespace, dry_run: bool) -> int:
    """Async implementation for plan and sync commands.

    Returns:
        0 on success, 1 on failure.
    """
    profile = _resolve_profile(args)
    if profile is None:
        return 1

    try:
        items = _load_table_items(args.tables_dir, args.addon)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"\n[red]Error: {e}[/red]")
        return 1

    if not items:
        console.print("[yellow]No table definitions found.[/yellow]")
        return 1

    mode = "Planning" if dry_run else "Synchronizing"
    console.print(
        f"{mode} {len(items)} table(s) on profile: [bold cyan]{profile}[/bold cyan]"
    )

    try:
        async with open_sync_context(profile, args.config, args.env_prefix) as context:
            report = await sync_table(context, items, dry_run=dry_run)
    except (FileNotFoundError, KeyError) as e:
        console.print(f"\n[red]Error: {e}[/red]")
        return 1
    except SchemaSyncError as e:
        console.print(f"\n[bold red]x[/bold red] {e}")
        return 1
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] Sync failed: {e}")
        return 1

    console.print()
    _print_report(report)

    if dry_run:
        console.print()
        if report.statements:
            console.print("[bold]Planned statements:[/bold]")
            for i, statement in enumerate(report.statements, 1):
                console.print(f"  {i}. {statement}", markup=False, highlight=False)
        else:
            console.print("[bold green]v[/bold green] Schema is up to date")
        return 0

    console.print(
        f"\n[bold green]v[/bold green] Sync complete "
        f"({report.invalidated} cache key(s) invalidated)"
    )
    return 0


# ============================================================================
# Command handlers
# ============================================================================


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from db.toml.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 if db.toml not found.
    """
    try:
        config = load_sync_config(args.config)
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    table = Table(
        title="Database Profiles", show_header=True, header_style="bold"
    )
    table.add_column("Profile")
    table.add_column("Dialect")
    table.add_column("Database")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        table.add_row(name, profile.dialect, profile.database, profile.description or "")

    console.print(table)
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    """Verify the server version precondition.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_check(args))


def cmd_plan(args: argparse.Namespace) -> int:
    """Show the DDL a sync would run without executing it.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_sync(args, dry_run=True))


def cmd_sync(args: argparse.Namespace) -> int:
    """Synchronize the schema; without ``--confirm`` only plans.

    Wraps the async implementation with ``asyncio.run()``.
    """
    if not args.confirm:
        code = asyncio.run(_async_sync(args, dry_run=True))
        console.print()
        console.print(
            "[dim]To apply changes, add[/dim] [cyan]--confirm[/cyan] "
            "[dim]flag.[/dim]"
        )
        return code
    return asyncio.run(_async_sync(args, dry_run=False))


# ============================================================================
# Main entry point
# ============================================================================


def _add_table_source_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--tables-dir",
        help="Directory of application table definitions (*.json)",
    )
    parser.add_argument(
        "--addon",
        action="append",
        default=[],
        metavar="NAME=DIR",
        help="Addon table definitions directory (repeatable)",
    )


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="table-sync",
        description="Declarative table schema synchronization",
    )

    # Global options
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_DB_PROFILE)"
        ),
    )
    parser.add_argument(
        "--profile",
        "-p",
        help="Profile name from db.toml (default: <ENV_PREFIX>DB_PROFILE)",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="Path to db.toml (default: ./db.toml)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log every field change and DDL statement",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # profiles command
    p_profiles = subparsers.add_parser(
        "profiles",
        help="List available profiles",
    )
    p_profiles.set_defaults(func=cmd_profiles)

    # check command
    p_check = subparsers.add_parser(
        "check",
        help="Verify the database server version is supported",
    )
    p_check.set_defaults(func=cmd_check)

    # plan command
    p_plan = subparsers.add_parser(
        "plan",
        help="Show the DDL a sync would execute (dry run)",
    )
    _add_table_source_args(p_plan)
    p_plan.set_defaults(func=cmd_plan)

    # sync command
    p_sync = subparsers.add_parser(
        "sync",
        help="Synchronize the schema with the table definitions",
    )
    _add_table_source_args(p_sync)
    p_sync.add_argument(
        "--confirm",
        action="store_true",
        help="Actually apply the changes (otherwise only plans)",
    )
    p_sync.set_defaults(func=cmd_sync)

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
