"""Tests for idle table eviction."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

from golden_flower import cleanup
from golden_flower.cleanup import TableCleaner, cleanup_idle_tables


class TestCleanupIdleTables:
    async def test_fresh_tables_kept(self, manager):
        table = await manager.open_table("h")
        result = await cleanup_idle_tables()
        assert result == {"deleted": [], "kept": [table.table_id]}

    async def test_idle_table_closed(self, manager):
        table = await manager.open_table("h")
        table.last_activity = 0
        result = await cleanup_idle_tables()
        assert result["deleted"] == [table.table_id]
        assert table.closed
        assert manager.list_tables() == []

    async def test_idle_table_with_queued_writes_reconciled_first(self, manager, ledger):
        table = await manager.open_table("h")
        ledger.writes_fail = True
        await manager.start_game(table.table_id, 3)
        ledger.writes_fail = False
        table.last_activity = 0
        result = await cleanup_idle_tables()
        assert result["deleted"] == [table.table_id]
        assert table.pending == []

    async def test_idle_table_kept_while_ledger_down(self, manager, ledger, caplog):
        table = await manager.open_table("h")
        ledger.writes_fail = True
        await manager.start_game(table.table_id, 3)
        table.last_activity = 0
        result = await cleanup_idle_tables()
        assert result["kept"] == [table.table_id]
        assert not table.closed
        assert "still queued" in caplog.text


class TestTableCleaner:
    async def test_loop_runs_cleanup(self):
        with patch.object(cleanup, "CLEANUP_INTERVAL", 0.01), \
             patch("golden_flower.cleanup.cleanup_idle_tables", new_callable=AsyncMock,
                   return_value={"deleted": [], "kept": []}) as m:
            cleaner = TableCleaner()
            cleaner.start()
            await asyncio.sleep(0.05)
            cleaner.stop()
        assert m.await_count >= 1

    async def test_stop_without_start(self):
        TableCleaner().stop()
