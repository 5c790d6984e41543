"""Simulated opponents: tier assignment and the per-turn decision policy."""

from __future__ import annotations

import random
from enum import Enum
from typing import NamedTuple, Optional

from golden_flower.engine import ActionKind, RoundState, legal_actions
from golden_flower.evaluator import HandEvaluation


class AITier(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    MASTER = "master"
    GRANDMASTER = "grandmaster"


class TierProfile(NamedTuple):
    threshold: float  # minimum strength to play confidently
    bluff: float  # chance to play strong on a weak hand
    aggro: float  # chance to raise when confident
    label: str


AI_PROFILES: dict[AITier, TierProfile] = {
    AITier.BEGINNER: TierProfile(0.1, 0.05, 0.1, "Wide-eyed Rookie"),
    AITier.INTERMEDIATE: TierProfile(0.3, 0.15, 0.3, "Wandering Knight"),
    AITier.ADVANCED: TierProfile(0.5, 0.3, 0.5, "Old Fox"),
    AITier.MASTER: TierProfile(0.6, 0.5, 0.7, "Grand Master"),
    AITier.GRANDMASTER: TierProfile(0.4, 0.7, 0.9, "Unbeaten Sage"),
}

# Balance strictly above the bound earns the tier
TIER_THRESHOLDS: list[tuple[int, AITier]] = [
    (50_000, AITier.GRANDMASTER),
    (20_000, AITier.MASTER),
    (10_000, AITier.ADVANCED),
    (3_000, AITier.INTERMEDIATE),
]

PRESSURE_BET = 300
BIG_POT = 3000
BIG_POT_COMPARE_CHANCE = 0.4
TRAP_STRENGTH = 0.8
TRAP_CHANCE = 0.3


def tier_for_balance(balance: int) -> AITier:
    for bound, tier in TIER_THRESHOLDS:
        if balance > bound:
            return tier
    return AITier.BEGINNER


def _look_chance(tier: AITier, round_of_betting: int) -> float:
    if round_of_betting > 3:
        return 0.8
    if tier == AITier.BEGINNER:
        return 0.5
    return 0.1


def decide(
    tier: AITier,
    *,
    hand_seen: bool,
    evaluation: HandEvaluation,
    round_of_betting: int,
    current_bet: int,
    pot: int,
    players_in: int,
    balance: int,
    max_rounds: int,
    max_bet_limit: int,
    rng: Optional[random.Random] = None,
) -> ActionKind:
    """Choose one action for a simulated opponent.

    Pure apart from ``rng``.  The result may still be unaffordable; use
    :func:`decide_for` to get an action that is legal in a given state.
    """
    rng = rng or random.Random()
    profile = AI_PROFILES[tier]

    if round_of_betting >= max_rounds:
        return ActionKind.COMPARE

    if not hand_seen and rng.random() < _look_chance(tier, round_of_betting):
        return ActionKind.LOOK

    strength = evaluation.strength
    action = ActionKind.CALL

    if hand_seen:
        if strength < profile.threshold:
            if rng.random() < profile.bluff:
                action = ActionKind.RAISE if rng.random() > 0.5 else ActionKind.CALL
            else:
                action = ActionKind.FOLD
        else:
            action = ActionKind.RAISE if rng.random() < profile.aggro else ActionKind.CALL
            # Trap: slow-play a monster hand
            if (
                tier in (AITier.MASTER, AITier.GRANDMASTER)
                and strength > TRAP_STRENGTH
                and rng.random() < TRAP_CHANCE
            ):
                action = ActionKind.CALL
    else:
        if current_bet > PRESSURE_BET and tier != AITier.GRANDMASTER:
            return ActionKind.LOOK
        if rng.random() < profile.aggro * 0.3:
            action = ActionKind.RAISE

    if pot > BIG_POT and players_in > 2 and rng.random() < BIG_POT_COMPARE_CHANCE:
        action = ActionKind.COMPARE

    if action == ActionKind.RAISE and current_bet >= max_bet_limit:
        action = ActionKind.CALL
    if balance < current_bet:
        action = ActionKind.FOLD
    return action


# Fallback order when the chosen action cannot be paid for
_DOWNGRADES = {
    ActionKind.COMPARE: ActionKind.CALL,
    ActionKind.RAISE: ActionKind.CALL,
    ActionKind.CALL: ActionKind.FOLD,
    ActionKind.LOOK: ActionKind.FOLD,
}


def decide_for(state: RoundState, rng: Optional[random.Random] = None) -> ActionKind:
    """Decide for the active seat of ``state`` and downgrade to a legal action."""
    p = state.active_player
    if p is None:
        raise ValueError("No active player")

    tier = AITier(p.ai_tier) if p.ai_tier else AITier.BEGINNER
    action = decide(
        tier,
        hand_seen=p.has_seen,
        evaluation=p.evaluation,
        round_of_betting=state.round_of_betting,
        current_bet=state.current_bet,
        pot=state.pot,
        players_in=len(state.players_in()),
        balance=p.balance,
        max_rounds=state.max_rounds,
        max_bet_limit=state.max_bet_limit,
        rng=rng,
    )

    legal = legal_actions(state, p.player_id)
    while action not in legal and action in _DOWNGRADES:
        action = _DOWNGRADES[action]
    return action
