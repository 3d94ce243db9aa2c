"""Collaborator adapters package.

Provides the ``SqlExecutor`` and ``CacheClient`` Protocols and their
concrete implementations: a SQLAlchemy async executor, a dry-run
recording executor, a no-op cache and (optionally) a Redis cache.

``RedisCache`` is only available when the ``redis`` extra is installed.
A missing ``redis`` dependency does not prevent importing the rest of
the package.

Usage:
    from table_sync.adapters import AsyncSqlExecutor, NullCache

    # With redis extra installed:
    from table_sync.adapters import RedisCache
"""

from table_sync.adapters.base import CacheClient, SqlExecutor
from table_sync.adapters.cache import NullCache
from table_sync.adapters.executor import AsyncSqlExecutor
from table_sync.adapters.recording import RecordingExecutor

__all__ = [
    "CacheClient",
    "SqlExecutor",
    "AsyncSqlExecutor",
    "NullCache",
    "RecordingExecutor",
]

try:
    from table_sync.adapters.redis_cache import RedisCache

    __all__.append("RedisCache")
except ImportError:
    # redis extra not installed -- RedisCache unavailable
    pass
