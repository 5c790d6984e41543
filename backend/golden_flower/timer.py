"""Turn scheduler — deferred AI turns and dealing delays, one pending task per table."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

# AI pacing delay range (seconds); 0/0 makes AI turns synchronous
AI_DELAY_MIN = float(os.getenv("GF_AI_DELAY_MIN", "1.0"))
AI_DELAY_MAX = float(os.getenv("GF_AI_DELAY_MAX", "3.0"))

# Dealing -> Playing presentation delay (seconds)
DEAL_DELAY = float(os.getenv("GF_DEAL_DELAY", "1.8"))


class TurnScheduler:
    """Runs at most one deferred callback per key using asyncio tasks.

    Scheduling a key replaces whatever was pending for it.  A callback
    that has already started is never cancelled; callers guard against
    stale callbacks themselves.
    """

    def __init__(self) -> None:
        # key -> sleeping task
        self._tasks: dict[str, asyncio.Task] = {}

    def schedule(
        self,
        key: str,
        delay: float,
        callback: Callable[[], Awaitable[None]],
    ) -> None:
        self.cancel(key)
        self._tasks[key] = asyncio.create_task(self._run(key, delay, callback))
        logger.debug("Scheduled callback for %s in %.2fs", key, delay)

    def cancel(self, key: str) -> bool:
        """Cancel a pending (still sleeping) callback.  Returns True if one was cancelled."""
        task = self._tasks.pop(key, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def cancel_all(self) -> None:
        for key in list(self._tasks):
            self.cancel(key)

    def pending(self, key: str) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    async def _run(
        self,
        key: str,
        delay: float,
        callback: Callable[[], Awaitable[None]],
    ) -> None:
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            return

        # Detach before running so the callback can schedule its successor
        if self._tasks.get(key) is asyncio.current_task():
            del self._tasks[key]
        try:
            await callback()
        except Exception:
            logger.exception("Scheduled callback failed for %s", key)


# Singleton
turn_scheduler = TurnScheduler()
