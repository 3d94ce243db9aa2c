"""Redis cache client for post-sync invalidation.

Requires the ``redis`` extra.

Usage:
    from table_sync.adapters.redis_cache import RedisCache

    cache = RedisCache("redis://localhost:6379/0")
    removed = await cache.delete_batch(["table:columns:user"])
    await cache.close()
"""

import logging

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class RedisCache:
    """``CacheClient`` backed by a Redis server.

    All keys are removed with a single ``DEL`` command.

    Args:
        url: Redis URL; ignored when ``client`` is given.
        client: Existing ``redis.asyncio.Redis`` client.  A client passed
            in is not closed by ``close()``.
        key_prefix: Prepended to every key (e.g. an application namespace).
    """

    def __init__(
        self,
        url: str | None = None,
        client: redis.Redis | None = None,
        key_prefix: str = "",
    ) -> None:
        if client is None and not url:
            raise ValueError("RedisCache requires either url or client")
        self._owns_client = client is None
        self.redis = client if client is not None else redis.from_url(url)
        self.key_prefix = key_prefix

    async def delete_batch(self, keys: list[str]) -> int:
        if not keys:
            return 0
        removed = await self.redis.delete(*(f"{self.key_prefix}{k}" for k in keys))
        logger.debug(f"Deleted {removed}/{len(keys)} cache keys")
        return int(removed)

    async def close(self) -> None:
        if self._owns_client:
            await self.redis.aclose()
