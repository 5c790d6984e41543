"""Redis connection pool and key layout for the player directory."""

from __future__ import annotations

import os
from typing import Optional

import redis.asyncio as redis

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

# Sorted set: member = player id, score = balance
BALANCES_KEY = "directory:balances"
# List of JSON activity records, newest first
ACTIVITY_KEY = "activity"

_pool: Optional[redis.Redis] = None


async def get_redis() -> redis.Redis:
    global _pool
    if _pool is None:
        _pool = redis.from_url(REDIS_URL, decode_responses=True)
    return _pool


def player_key(player_id: str) -> str:
    return f"directory:player:{player_id}"


def applied_key(idempotency_key: str) -> str:
    return f"ledger:applied:{idempotency_key}"


async def close() -> None:
    global _pool
    if _pool is not None:
        await _pool.aclose()
        _pool = None
