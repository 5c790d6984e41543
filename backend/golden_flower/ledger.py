"""Ledger/Directory and Activity collaborators.

The game only reads and writes balances through :class:`Ledger`; it never
caches balances across games.  :class:`RedisLedger` and
:class:`RedisActivitySink` are the Redis-backed implementations.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Optional, Protocol

from redis.exceptions import RedisError

from golden_flower import redis_client
from golden_flower.models import ActivityRecord, DirectoryEntry

logger = logging.getLogger(__name__)

# Applied idempotency keys are remembered this long (seconds)
APPLIED_KEY_TTL = 7 * 24 * 60 * 60

# Only the newest activity records are kept
MAX_ACTIVITY_RECORDS = 50


class LedgerError(RuntimeError):
    """A ledger read or write could not be completed."""


class Ledger(Protocol):
    async def list_eligible_players(self, min_balance: int) -> list[DirectoryEntry]: ...

    async def adjust_balance(
        self, player_id: str, delta: int, idempotency_key: Optional[str] = None
    ) -> int: ...

    async def get_top_balance_holder(self) -> Optional[str]: ...

    async def get_player(self, player_id: str) -> Optional[DirectoryEntry]: ...

    async def leaderboard(self, limit: int = 10) -> list[DirectoryEntry]: ...


class ActivitySink(Protocol):
    async def record(self, player_id: str, kind: str, message: str) -> None: ...


class RedisLedger:
    """Directory profiles in hashes, balances in one sorted set."""

    async def save_player(self, entry: DirectoryEntry) -> None:
        """Create or replace a directory entry, balance included."""
        r = await redis_client.get_redis()
        try:
            await r.hset(
                redis_client.player_key(entry.id),
                mapping={
                    "id": entry.id,
                    "name": entry.name,
                    "avatar_ref": entry.avatar_ref,
                    "status": entry.status,
                },
            )
            await r.zadd(redis_client.BALANCES_KEY, {entry.id: entry.balance})
        except RedisError as e:
            raise LedgerError(f"Failed to save player {entry.id}: {e}") from e

    async def get_player(self, player_id: str) -> Optional[DirectoryEntry]:
        r = await redis_client.get_redis()
        try:
            profile = await r.hgetall(redis_client.player_key(player_id))
            if not profile:
                return None
            score = await r.zscore(redis_client.BALANCES_KEY, player_id)
        except RedisError as e:
            raise LedgerError(f"Failed to load player {player_id}: {e}") from e
        return _entry(profile, score)

    async def list_eligible_players(self, min_balance: int) -> list[DirectoryEntry]:
        """Active players whose balance is at least min_balance."""
        r = await redis_client.get_redis()
        try:
            rows = await r.zrangebyscore(
                redis_client.BALANCES_KEY, min_balance, "+inf", withscores=True
            )
            entries = []
            for player_id, score in rows:
                profile = await r.hgetall(redis_client.player_key(player_id))
                if profile and profile.get("status", "active") == "active":
                    entries.append(_entry(profile, score))
        except RedisError as e:
            raise LedgerError(f"Failed to list players: {e}") from e
        return entries

    async def adjust_balance(
        self, player_id: str, delta: int, idempotency_key: Optional[str] = None
    ) -> int:
        """Apply a balance delta and return the new balance.

        With an idempotency key the delta is applied at most once; a
        repeated key returns the current balance unchanged.
        """
        r = await redis_client.get_redis()
        try:
            if not await r.exists(redis_client.player_key(player_id)):
                raise LedgerError(f"Unknown player {player_id}")

            if idempotency_key is not None:
                fresh = await r.set(
                    redis_client.applied_key(idempotency_key),
                    "1",
                    nx=True,
                    ex=APPLIED_KEY_TTL,
                )
                if not fresh:
                    logger.info("Ledger write %s already applied", idempotency_key)
                    score = await r.zscore(redis_client.BALANCES_KEY, player_id)
                    return int(score or 0)

            try:
                new_balance = await r.zincrby(redis_client.BALANCES_KEY, delta, player_id)
            except RedisError:
                if idempotency_key is not None:
                    await r.delete(redis_client.applied_key(idempotency_key))
                raise
        except RedisError as e:
            raise LedgerError(f"Failed to adjust {player_id} by {delta}: {e}") from e
        return int(new_balance)

    async def leaderboard(self, limit: int = 10) -> list[DirectoryEntry]:
        """Directory entries ordered by balance, highest first."""
        r = await redis_client.get_redis()
        try:
            rows = await r.zrevrange(
                redis_client.BALANCES_KEY, 0, limit - 1, withscores=True
            )
            entries = []
            for player_id, score in rows:
                profile = await r.hgetall(redis_client.player_key(player_id))
                if profile:
                    entries.append(_entry(profile, score))
        except RedisError as e:
            raise LedgerError(f"Failed to load leaderboard: {e}") from e
        return entries

    async def get_top_balance_holder(self) -> Optional[str]:
        r = await redis_client.get_redis()
        try:
            top = await r.zrevrange(redis_client.BALANCES_KEY, 0, 0)
        except RedisError as e:
            raise LedgerError(f"Failed to load top balance: {e}") from e
        return top[0] if top else None


class RedisActivitySink:
    """Append-only activity feed capped at MAX_ACTIVITY_RECORDS entries."""

    async def record(self, player_id: str, kind: str, message: str) -> None:
        r = await redis_client.get_redis()
        entry = ActivityRecord(
            player_id=player_id, kind=kind, message=message, timestamp=time.time()
        )
        await r.lpush(redis_client.ACTIVITY_KEY, entry.model_dump_json())
        await r.ltrim(redis_client.ACTIVITY_KEY, 0, MAX_ACTIVITY_RECORDS - 1)

    async def recent(self, limit: int = MAX_ACTIVITY_RECORDS) -> list[ActivityRecord]:
        r = await redis_client.get_redis()
        raw = await r.lrange(redis_client.ACTIVITY_KEY, 0, limit - 1)
        return [ActivityRecord(**json.loads(e)) for e in raw]


def _entry(profile: dict[str, str], score: Optional[float]) -> DirectoryEntry:
    return DirectoryEntry(
        id=profile["id"],
        name=profile.get("name", profile["id"]),
        avatar_ref=profile.get("avatar_ref", ""),
        balance=int(score or 0),
        status=profile.get("status", "active"),
    )
