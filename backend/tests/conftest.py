"""Shared fixtures: in-memory ledger and activity sink, table settings."""

from __future__ import annotations

from typing import Optional

import pytest

from golden_flower import table_manager
from golden_flower.ledger import LedgerError
from golden_flower.models import DirectoryEntry, TableSettings


class FakeLedger:
    """In-memory Ledger with switchable read/write failures."""

    def __init__(self, entries=()) -> None:
        self.players: dict[str, DirectoryEntry] = {e.id: e.model_copy() for e in entries}
        self.applied: set[str] = set()
        self.writes: list[tuple[str, int, Optional[str]]] = []
        self.writes_fail = False
        self.reads_fail = False

    def _check_reads(self) -> None:
        if self.reads_fail:
            raise LedgerError("directory unavailable")

    def balance(self, player_id: str) -> int:
        return self.players[player_id].balance

    def total(self) -> int:
        return sum(e.balance for e in self.players.values())

    async def list_eligible_players(self, min_balance: int) -> list[DirectoryEntry]:
        self._check_reads()
        return [
            e.model_copy()
            for e in sorted(self.players.values(), key=lambda e: -e.balance)
            if e.balance >= min_balance and e.status == "active"
        ]

    async def adjust_balance(
        self, player_id: str, delta: int, idempotency_key: Optional[str] = None
    ) -> int:
        if self.writes_fail:
            raise LedgerError("ledger unavailable")
        if player_id not in self.players:
            raise LedgerError(f"Unknown player {player_id}")
        if idempotency_key is not None:
            if idempotency_key in self.applied:
                return self.players[player_id].balance
            self.applied.add(idempotency_key)
        self.writes.append((player_id, delta, idempotency_key))
        self.players[player_id].balance += delta
        return self.players[player_id].balance

    async def get_top_balance_holder(self) -> Optional[str]:
        self._check_reads()
        if not self.players:
            return None
        return max(self.players.values(), key=lambda e: e.balance).id

    async def get_player(self, player_id: str) -> Optional[DirectoryEntry]:
        self._check_reads()
        e = self.players.get(player_id)
        return e.model_copy() if e else None

    async def leaderboard(self, limit: int = 10) -> list[DirectoryEntry]:
        self._check_reads()
        ranked = sorted(self.players.values(), key=lambda e: -e.balance)
        return [e.model_copy() for e in ranked[:limit]]


class FakeActivity:
    def __init__(self) -> None:
        self.records: list[tuple[str, str, str]] = []
        self.fail = False

    async def record(self, player_id: str, kind: str, message: str) -> None:
        if self.fail:
            raise LedgerError("activity feed unavailable")
        self.records.append((player_id, kind, message))

    def kinds(self) -> list[str]:
        return [k for _, k, _ in self.records]


def make_entries() -> list[DirectoryEntry]:
    return [
        DirectoryEntry(id="h", name="Human", balance=10_000),
        DirectoryEntry(id="b1", name="Bot One", balance=70_000),
        DirectoryEntry(id="b2", name="Bot Two", balance=25_000),
        DirectoryEntry(id="b3", name="Bot Three", balance=5_000),
        DirectoryEntry(id="b4", name="Bot Four", balance=50),  # below the ante
        DirectoryEntry(id="b5", name="Bot Five", balance=8_000, status="banned"),
    ]


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger(make_entries())


@pytest.fixture
def activity() -> FakeActivity:
    return FakeActivity()


@pytest.fixture
def settings() -> TableSettings:
    """No pacing delays: AI turns run inline."""
    return TableSettings(ante=100, ai_delay_min=0, ai_delay_max=0, deal_delay=0)


@pytest.fixture
def manager(ledger, activity, settings):
    """table_manager wired to the in-memory collaborators."""
    table_manager.configure(ledger=ledger, activity=activity, settings=settings)
    yield table_manager
    table_manager._tables.clear()
    table_manager._listeners.clear()
