"""Cache client used when no cache is configured."""

import logging

logger = logging.getLogger(__name__)


class NullCache:
    """``CacheClient`` that deletes nothing.

    Used by the CLI when db.toml has no ``[cache]`` section.
    """

    async def delete_batch(self, keys: list[str]) -> int:
        logger.debug(f"No cache configured; skipping invalidation of {len(keys)} key(s)")
        return 0
