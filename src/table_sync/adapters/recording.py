"""Dry-run executor wrapper.

``RecordingExecutor`` forwards read-only queries to the wrapped executor
and records every other statement instead of executing it, so a full
sync can be planned against a live database without changing it.

Usage:
    from table_sync.adapters.recording import RecordingExecutor

    recorder = RecordingExecutor(executor)
    await recorder.unsafe("SELECT VERSION() AS version")   # executed
    await recorder.unsafe("ALTER TABLE `user` ADD ...")     # recorded
    print(recorder.statements)
"""

import logging
import re
from typing import Any

from table_sync.adapters.base import SqlExecutor

logger = logging.getLogger(__name__)

_READ_ONLY = re.compile(r"^\s*(SELECT|WITH|PRAGMA|SHOW)\b", re.IGNORECASE)


class RecordingExecutor:
    """``SqlExecutor`` that executes reads and records writes."""

    def __init__(self, executor: SqlExecutor) -> None:
        self._executor = executor
        self.statements: list[str] = []

    async def unsafe(self, sql: str, params: dict[str, Any] | None = None) -> list[dict]:
        if _READ_ONLY.match(sql):
            return await self._executor.unsafe(sql, params)
        logger.info(f"[plan] {sql}")
        self.statements.append(sql)
        return []
