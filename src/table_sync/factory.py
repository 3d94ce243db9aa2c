"""Profile resolution and sync context construction.

Profiles live in db.toml (``[profiles.<name>]``).  The active profile is
chosen explicitly, or through the ``<ENV_PREFIX>DB_PROFILE`` environment
variable.

Usage:
    from table_sync.factory import open_sync_context

    async with open_sync_context("local") as context:
        report = await sync_table(context, items)
"""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from urllib.parse import quote

from table_sync.adapters.base import CacheClient
from table_sync.adapters.cache import NullCache
from table_sync.adapters.executor import AsyncSqlExecutor
from table_sync.config.loader import load_sync_config
from table_sync.config.models import CacheSettings, ContextConfig, SyncFileConfig, SyncProfile
from table_sync.schema.sync import SyncContext


class ProfileNotFoundError(Exception):
    """Raised when no database profile is configured."""

    pass


def get_active_profile_name(env_prefix: str = "") -> str:
    """Get active profile name from the environment.

    Args:
        env_prefix: Prefix for the environment variable name.  With
            ``env_prefix="APP_"`` the variable is ``APP_DB_PROFILE``.

    Returns:
        Profile name

    Raises:
        ProfileNotFoundError: If no profile is configured
    """
    env_var = f"{env_prefix}DB_PROFILE"
    env_profile = os.environ.get(env_var)
    if env_profile:
        return env_profile

    raise ProfileNotFoundError(
        "No database profile configured.\n"
        f"Pass --profile <name> or set {env_var}=<name>"
    )


def get_active_profile(
    profile_name: str | None = None,
    config_path: Path | None = None,
    env_prefix: str = "",
) -> tuple[str, SyncProfile, SyncFileConfig]:
    """Get active profile name, profile and the full file configuration.

    Raises:
        ProfileNotFoundError: If no profile configured
        KeyError: If profile not found in db.toml
    """
    if profile_name is None:
        profile_name = get_active_profile_name(env_prefix)
    config = load_sync_config(config_path)

    if profile_name not in config.profiles:
        raise KeyError(
            f"Profile '{profile_name}' not found in db.toml.\n"
            f"Available profiles: {', '.join(config.profiles.keys())}"
        )

    return profile_name, config.profiles[profile_name], config


def resolve_url(profile: SyncProfile) -> str:
    """Resolve profile URL with password substitution.

    Args:
        profile: Database profile from config

    Returns:
        Connection URL with password substituted
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


def create_cache(settings: CacheSettings) -> CacheClient:
    """Build the cache client described by the ``[cache]`` section.

    Raises:
        ImportError: If a Redis URL is configured but the ``redis`` extra
            is not installed.
    """
    if not settings.redis_url:
        return NullCache()
    from table_sync.adapters.redis_cache import RedisCache

    return RedisCache(settings.redis_url, key_prefix=settings.key_prefix)


@asynccontextmanager
async def open_sync_context(
    profile_name: str | None = None,
    config_path: Path | None = None,
    env_prefix: str = "",
) -> AsyncIterator[SyncContext]:
    """Open an executor and cache for a profile and yield a ``SyncContext``.

    The executor and any cache client created here are closed on exit.

    Example:
        async with open_sync_context("local", Path("db.toml")) as context:
            await sync_table(context, items, dry_run=True)
    """
    _, profile, config = get_active_profile(profile_name, config_path, env_prefix)
    executor = AsyncSqlExecutor(resolve_url(profile))
    cache = create_cache(config.cache)
    try:
        yield SyncContext(
            db=executor,
            cache=cache,
            config=ContextConfig(db=profile.to_settings()),
        )
    finally:
        await executor.close()
        close = getattr(cache, "close", None)
        if close is not None:
            await close()
