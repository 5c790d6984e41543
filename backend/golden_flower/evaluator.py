"""Three-card Golden Flower hand evaluator.

Ranks a 3-card hand into a category and a single integer score.  Hands
compare by category first and score second, so a higher category always
outranks a lower one whatever the card values.  The one exception is the
235 "giant-killer", handled in :func:`compare_evaluations`.
"""

from __future__ import annotations

from enum import Enum
from typing import Sequence

from golden_flower.cards import HAND_SIZE, Card, Rank


class HandCategory(str, Enum):
    LEOPARD = "leopard"
    STRAIGHT_FLUSH = "straight_flush"
    FLUSH = "flush"
    STRAIGHT = "straight"
    PAIR = "pair"
    HIGH_CARD = "high_card"
    TWO_THREE_FIVE = "235"


HAND_NAMES = {
    HandCategory.LEOPARD: "Leopard",
    HandCategory.STRAIGHT_FLUSH: "Straight Flush",
    HandCategory.FLUSH: "Flush",
    HandCategory.STRAIGHT: "Straight",
    HandCategory.PAIR: "Pair",
    HandCategory.HIGH_CARD: "High Card",
    HandCategory.TWO_THREE_FIVE: "235",
}

CATEGORY_BASE = {
    HandCategory.LEOPARD: 600_000,
    HandCategory.STRAIGHT_FLUSH: 500_000,
    HandCategory.FLUSH: 400_000,
    HandCategory.STRAIGHT: 300_000,
    HandCategory.PAIR: 200_000,
    HandCategory.HIGH_CARD: 100_000,
    HandCategory.TWO_THREE_FIVE: 0,
}

# Raw scores overlap between bands (a high-card tiebreak can exceed
# 100000), so comparisons order by category first.
CATEGORY_ORDER = {
    HandCategory.TWO_THREE_FIVE: 0,
    HandCategory.HIGH_CARD: 1,
    HandCategory.PAIR: 2,
    HandCategory.STRAIGHT: 3,
    HandCategory.FLUSH: 4,
    HandCategory.STRAIGHT_FLUSH: 5,
    HandCategory.LEOPARD: 6,
}

# Normaliser used by the AI to turn a score into a 0..~1 strength
MAX_SCORE = 700_000


class HandEvaluation:
    """Category, comparable score and descending card values of a hand."""

    __slots__ = ("category", "score", "tiebreak_values")

    def __init__(
        self,
        category: HandCategory,
        score: int,
        tiebreak_values: tuple[int, int, int],
    ) -> None:
        self.category = category
        self.score = score
        self.tiebreak_values = tiebreak_values

    @property
    def name(self) -> str:
        return HAND_NAMES[self.category]

    @property
    def strength(self) -> float:
        return self.score / MAX_SCORE

    @property
    def rank_key(self) -> tuple[int, int]:
        return CATEGORY_ORDER[self.category], self.score

    def __repr__(self) -> str:
        return f"HandEvaluation({self.name}, {self.score})"


def _tiebreak(values: Sequence[int]) -> int:
    return values[0] * 10_000 + values[1] * 100 + values[2]


def evaluate(cards: Sequence[Card]) -> HandEvaluation:
    """Evaluate exactly three cards."""
    if len(cards) != HAND_SIZE:
        raise ValueError(f"Need exactly {HAND_SIZE} cards, got {len(cards)}")

    v = tuple(sorted((c.value for c in cards), reverse=True))
    is_flush = len({c.suit for c in cards}) == 1
    # A-3-2 counts as a straight
    is_straight = (v[0] - v[1] == 1 and v[1] - v[2] == 1) or v == (
        Rank.ACE,
        Rank.THREE,
        Rank.TWO,
    )
    tiebreak = _tiebreak(v)

    if v[0] == v[1] == v[2]:
        category = HandCategory.LEOPARD
    elif is_flush and is_straight:
        category = HandCategory.STRAIGHT_FLUSH
    elif is_flush:
        category = HandCategory.FLUSH
    elif is_straight:
        category = HandCategory.STRAIGHT
    elif v[0] == v[1] or v[1] == v[2]:
        pair_value = v[1]
        kicker = v[2] if v[0] == v[1] else v[0]
        score = CATEGORY_BASE[HandCategory.PAIR] + pair_value * 10_000 + kicker
        return HandEvaluation(HandCategory.PAIR, score, v)
    elif v == (Rank.FIVE, Rank.THREE, Rank.TWO):
        return HandEvaluation(HandCategory.TWO_THREE_FIVE, 0, v)
    else:
        category = HandCategory.HIGH_CARD

    return HandEvaluation(category, CATEGORY_BASE[category] + tiebreak, v)


def compare_evaluations(challenger: HandEvaluation, defender: HandEvaluation) -> bool:
    """Return True if the challenger beats the defender.

    235 kills Leopard in both directions, and an exact tie goes to the
    defender.
    """
    if (
        challenger.category == HandCategory.TWO_THREE_FIVE
        and defender.category == HandCategory.LEOPARD
    ):
        return True
    if (
        defender.category == HandCategory.TWO_THREE_FIVE
        and challenger.category == HandCategory.LEOPARD
    ):
        return False
    return challenger.rank_key > defender.rank_key


def compare_hands(challenger: Sequence[Card], defender: Sequence[Card]) -> bool:
    return compare_evaluations(evaluate(challenger), evaluate(defender))
