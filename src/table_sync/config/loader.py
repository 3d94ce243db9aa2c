"""Configuration loading for table-sync."""

import tomllib
from pathlib import Path

from table_sync.config.models import CacheSettings, SyncFileConfig, SyncProfile


def load_sync_config(config_path: Path | None = None) -> SyncFileConfig:
    """Load sync configuration from TOML file.

    Args:
        config_path: Path to db.toml (default: ``db.toml`` in the current
            working directory)

    Returns:
        SyncFileConfig with all profiles and cache settings

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config format is invalid
    """
    if config_path is None:
        config_path = Path.cwd() / "db.toml"

    if not config_path.exists():
        raise FileNotFoundError(
            f"Database config not found: {config_path}\n"
            f"Copy db.toml.example to db.toml and configure your profiles."
        )

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    # Parse profiles
    profiles = {}
    for name, profile_data in data.get("profiles", {}).items():
        profiles[name] = SyncProfile(**profile_data)

    # Parse cache settings
    cache_settings = data.get("cache", {})

    return SyncFileConfig(
        profiles=profiles,
        cache=CacheSettings(**cache_settings),
    )
