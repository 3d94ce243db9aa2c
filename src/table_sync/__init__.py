"""table-sync: Declarative table schema synchronization.

Reconciles a live MySQL, PostgreSQL or SQLite schema with file-based
table definitions: creates missing tables, adds and safely widens
columns, and manages single-column indexes -- without hand-written
migrations.

Usage:
    from table_sync import SyncContext, sync_table
    from table_sync import AsyncSqlExecutor, NullCache
    from table_sync import load_sync_config, open_sync_context
"""

__version__ = "0.1.0"

# Adapters
from table_sync.adapters.base import CacheClient, SqlExecutor
from table_sync.adapters.cache import NullCache
from table_sync.adapters.executor import AsyncSqlExecutor

# Config
from table_sync.config.loader import load_sync_config
from table_sync.config.models import ContextConfig, DbSettings, SyncFileConfig, SyncProfile

# Errors
from table_sync.errors import (
    FieldDefinitionError,
    InvalidIdentifierError,
    PreconditionError,
    SchemaSyncError,
    TypeChangeError,
)

# Factory
from table_sync.factory import ProfileNotFoundError, open_sync_context, resolve_url

# Schema engine
from table_sync.schema.models import FieldDefinition, SyncReport
from table_sync.schema.normalize import normalize_field
from table_sync.schema.sync import SyncContext, sync_table

__all__ = [
    # Engine
    "sync_table",
    "SyncContext",
    "SyncReport",
    "FieldDefinition",
    "normalize_field",
    # Adapters
    "SqlExecutor",
    "CacheClient",
    "AsyncSqlExecutor",
    "NullCache",
    # Config
    "load_sync_config",
    "ContextConfig",
    "DbSettings",
    "SyncFileConfig",
    "SyncProfile",
    # Factory
    "open_sync_context",
    "ProfileNotFoundError",
    "resolve_url",
    # Errors
    "SchemaSyncError",
    "PreconditionError",
    "InvalidIdentifierError",
    "FieldDefinitionError",
    "TypeChangeError",
]

# Optional: RedisCache (only available with redis extra)
try:
    from table_sync.adapters.redis_cache import RedisCache

    __all__.append("RedisCache")
except ImportError:
    # redis extra not installed -- RedisCache unavailable
    pass
