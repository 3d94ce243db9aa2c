"""Configuration loading and models for table-sync."""

from table_sync.config.loader import load_sync_config
from table_sync.config.models import (
    CacheSettings,
    ContextConfig,
    DbSettings,
    SyncFileConfig,
    SyncProfile,
)

__all__ = [
    "load_sync_config",
    "CacheSettings",
    "ContextConfig",
    "DbSettings",
    "SyncFileConfig",
    "SyncProfile",
]
