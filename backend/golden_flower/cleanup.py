"""Idle table eviction — background task that closes abandoned tables.

A table is idle when nothing has happened on it for TABLE_IDLE_SECONDS.
Idle tables with ledger writes still queued are reconciled first and
kept if any write is still outstanding, so no balance change is dropped.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time

from golden_flower import table_manager

logger = logging.getLogger(__name__)

# How often the cleanup loop runs (seconds).  Default: every 5 minutes.
CLEANUP_INTERVAL: float = 5 * 60

# Inactivity threshold before a table is closed (seconds).
TABLE_IDLE_SECONDS: float = float(os.getenv("TABLE_IDLE_SECONDS", str(60 * 60)))


async def cleanup_idle_tables() -> dict[str, list[str]]:
    """Close idle tables.

    Returns a dict with 'deleted' (table ids closed) and 'kept'
    (table ids checked but retained).
    """
    now = time.time()
    deleted: list[str] = []
    kept: list[str] = []

    for table in table_manager.list_tables():
        try:
            age = now - table.last_activity
            if age < TABLE_IDLE_SECONDS:
                kept.append(table.table_id)
                continue

            if table.pending and await table.reconcile() > 0:
                logger.warning(
                    "Keeping idle table %s: %d ledger write(s) still queued",
                    table.table_id,
                    len(table.pending),
                )
                kept.append(table.table_id)
                continue

            await table_manager.close_table(table.table_id)
            logger.info("Closed idle table %s (age=%.1fmin)", table.table_id, age / 60)
            deleted.append(table.table_id)
        except Exception:
            logger.exception("Error checking table %s for cleanup", table.table_id)
            kept.append(table.table_id)

    return {"deleted": deleted, "kept": kept}


class TableCleaner:
    """Background asyncio task that periodically closes idle tables."""

    def __init__(self) -> None:
        self._task: asyncio.Task | None = None

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop())
            logger.info("Table cleaner started (interval=%ds)", int(CLEANUP_INTERVAL))

    def stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            logger.info("Table cleaner stopped")

    async def _loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(CLEANUP_INTERVAL)
                try:
                    result = await cleanup_idle_tables()
                    if result["deleted"]:
                        logger.info(
                            "Cleanup pass: closed %d table(s): %s",
                            len(result["deleted"]),
                            ", ".join(result["deleted"]),
                        )
                    else:
                        logger.debug("Cleanup pass: nothing to close")
                except Exception:
                    logger.exception("Cleanup pass failed")
        except asyncio.CancelledError:
            pass


# Singleton
table_cleaner = TableCleaner()
