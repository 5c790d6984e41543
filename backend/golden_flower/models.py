"""Pydantic models for tables, the player directory and emitted events."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, model_validator

from golden_flower.engine import (
    ANTE,
    MAX_BET_LIMIT,
    MAX_PLAYERS,
    MAX_ROUNDS,
    MIN_PLAYERS,
    ActionKind,
)
from golden_flower.timer import AI_DELAY_MAX, AI_DELAY_MIN, DEAL_DELAY


class TableSettings(BaseModel):
    ante: int = Field(default=ANTE, ge=1)
    max_rounds: int = Field(default=MAX_ROUNDS, ge=2)
    max_bet_limit: int = Field(default=MAX_BET_LIMIT, ge=1)
    ai_delay_min: float = Field(default=AI_DELAY_MIN, ge=0)  # seconds
    ai_delay_max: float = Field(default=AI_DELAY_MAX, ge=0)  # 0 = play AI turns inline
    deal_delay: float = Field(default=DEAL_DELAY, ge=0)  # seconds

    @model_validator(mode="after")
    def _check_bounds(self) -> TableSettings:
        if self.max_bet_limit < self.ante:
            raise ValueError("max_bet_limit must be at least the ante")
        if self.ai_delay_min > self.ai_delay_max:
            raise ValueError("ai_delay_min must not exceed ai_delay_max")
        return self


class DirectoryEntry(BaseModel):
    """A player record in the persistent directory."""

    id: str
    name: str
    avatar_ref: str = ""
    balance: int = 0
    status: str = "active"


# --- Request models ---


class OpenTableRequest(BaseModel):
    human_id: str = Field(..., min_length=1)


class StartGameRequest(BaseModel):
    player_count: int = Field(default=MIN_PLAYERS, ge=MIN_PLAYERS, le=MAX_PLAYERS)


class ActionRequest(BaseModel):
    player_id: str
    action: ActionKind


# --- Response / event models ---


class OpenTableResponse(BaseModel):
    table_id: str
    snapshot: dict[str, Any]


class SuccessionEvent(BaseModel):
    previous_leader_name: str
    new_leader_name: str
    new_leader_balance: int
    timestamp: float


class ActivityRecord(BaseModel):
    player_id: str
    kind: str
    message: str
    timestamp: float


class ErrorResponse(BaseModel):
    detail: str
