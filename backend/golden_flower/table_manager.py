"""Table manager — registry of open tables and request-level operations."""

from __future__ import annotations

import logging
import random
import string
from typing import Any, Optional

from golden_flower.engine import ActionKind
from golden_flower.ledger import ActivitySink, Ledger, RedisActivitySink, RedisLedger
from golden_flower.models import DirectoryEntry, TableSettings
from golden_flower.settlement import LeaderTracker
from golden_flower.table import Listener, Table
from golden_flower.timer import turn_scheduler

logger = logging.getLogger(__name__)

_tables: dict[str, Table] = {}
_listeners: list[Listener] = []

# Shared by every table so succession is detected across tables
_tracker = LeaderTracker()

_ledger: Ledger = RedisLedger()
_activity: ActivitySink = RedisActivitySink()
_settings: Optional[TableSettings] = None


def configure(
    ledger: Optional[Ledger] = None,
    activity: Optional[ActivitySink] = None,
    settings: Optional[TableSettings] = None,
) -> None:
    """Swap collaborators (tests, alternative stores)."""
    global _ledger, _activity, _settings, _tracker
    if ledger is not None:
        _ledger = ledger
        _tracker = LeaderTracker()
    if activity is not None:
        _activity = activity
    if settings is not None:
        _settings = settings


def add_listener(listener: Listener) -> None:
    """Attach a listener to every table opened from now on."""
    _listeners.append(listener)


def _generate_id(length: int = 6) -> str:
    """Generate a short uppercase table id."""
    return "".join(random.choices(string.ascii_uppercase + string.digits, k=length))


async def open_table(human_id: str) -> Table:
    """Open a table for a directory member."""
    human = await _ledger.get_player(human_id)
    if human is None:
        raise ValueError("Player not found")

    table_id = _generate_id()
    while table_id in _tables:
        table_id = _generate_id()

    table = Table(
        table_id,
        human_id,
        _ledger,
        _activity,
        settings=_settings,
        scheduler=turn_scheduler,
        tracker=_tracker,
    )
    for listener in _listeners:
        table.add_listener(listener)
    _tables[table_id] = table
    logger.info("Table opened: %s for %s", table_id, human.name)
    return table


def get_table(table_id: str) -> Table:
    table = _tables.get(table_id)
    if table is None:
        raise KeyError(table_id)
    return table


def list_tables() -> list[Table]:
    return list(_tables.values())


async def start_game(table_id: str, player_count: int) -> dict[str, Any]:
    return await get_table(table_id).start_game(player_count)


async def submit_action(
    table_id: str, player_id: str, action: ActionKind | str
) -> dict[str, Any]:
    return await get_table(table_id).submit_action(player_id, action)


async def close_table(table_id: str) -> None:
    table = _tables.pop(table_id, None)
    if table is not None:
        await table.close()


async def reconcile_all() -> dict[str, int]:
    """Retry queued ledger writes everywhere.  Returns {table_id: still_queued}."""
    return {table_id: await t.reconcile() for table_id, t in list(_tables.items())}


async def leaderboard(limit: int = 10) -> list[DirectoryEntry]:
    return await _ledger.leaderboard(limit)
