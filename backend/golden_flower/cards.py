"""Card and Deck representation for three-card Golden Flower."""

from __future__ import annotations

import random
from enum import IntEnum, Enum
from typing import Optional, Sequence


class Suit(str, Enum):
    DIAMONDS = "d"
    CLUBS = "c"
    HEARTS = "h"
    SPADES = "s"


class Rank(IntEnum):
    TWO = 2
    THREE = 3
    FOUR = 4
    FIVE = 5
    SIX = 6
    SEVEN = 7
    EIGHT = 8
    NINE = 9
    TEN = 10
    JACK = 11
    QUEEN = 12
    KING = 13
    ACE = 14


RANK_SYMBOLS = {
    Rank.TWO: "2",
    Rank.THREE: "3",
    Rank.FOUR: "4",
    Rank.FIVE: "5",
    Rank.SIX: "6",
    Rank.SEVEN: "7",
    Rank.EIGHT: "8",
    Rank.NINE: "9",
    Rank.TEN: "10",
    Rank.JACK: "J",
    Rank.QUEEN: "Q",
    Rank.KING: "K",
    Rank.ACE: "A",
}

SUIT_SYMBOLS = {
    Suit.SPADES: "♠",
    Suit.HEARTS: "♥",
    Suit.CLUBS: "♣",
    Suit.DIAMONDS: "♦",
}

DECK_SIZE = 52
HAND_SIZE = 3


class Card:
    """A single immutable playing card; ``value`` runs 2..14 with Ace high."""

    __slots__ = ("rank", "suit")

    def __init__(self, rank: Rank, suit: Suit) -> None:
        object.__setattr__(self, "rank", Rank(rank))
        object.__setattr__(self, "suit", Suit(suit))

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("Card is immutable")

    @property
    def value(self) -> int:
        return int(self.rank)

    @property
    def symbol(self) -> str:
        return f"{RANK_SYMBOLS[self.rank]}{SUIT_SYMBOLS[self.suit]}"

    def __repr__(self) -> str:
        return f"{RANK_SYMBOLS[self.rank]}{self.suit.value}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Card):
            return NotImplemented
        return self.rank == other.rank and self.suit == other.suit

    def __hash__(self) -> int:
        return hash((self.rank, self.suit))

    def __copy__(self) -> Card:
        return self

    def __deepcopy__(self, memo: dict) -> Card:
        return self

    def to_dict(self) -> dict:
        return {
            "rank": RANK_SYMBOLS[self.rank],
            "suit": SUIT_SYMBOLS[self.suit],
            "value": self.value,
        }

    @classmethod
    def from_str(cls, s: str) -> Card:
        """Parse 'Ah', '10s', '2c' etc."""
        rank_part = s[:-1].upper()
        suit_char = s[-1].lower()
        rank_map = {v: k for k, v in RANK_SYMBOLS.items()}
        rank_map["T"] = Rank.TEN
        return cls(rank_map[rank_part], Suit(suit_char))


def build_deck() -> list[Card]:
    """All 52 (suit, rank) pairs exactly once, in a fixed order."""
    return [Card(rank, suit) for suit in Suit for rank in Rank]


class Deck:
    """A 52-card deck consumed from the front as hands are dealt.

    Pass ``cards`` to stack the deck (tests); otherwise a fresh deck is
    built and shuffled with ``rng``.
    """

    def __init__(
        self,
        cards: Optional[Sequence[Card]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        if cards is None:
            self._cards: list[Card] = build_deck()
            self.shuffle(rng)
        else:
            if len(set(cards)) != len(cards):
                raise ValueError("Deck contains duplicate cards")
            self._cards = list(cards)

    def shuffle(self, rng: Optional[random.Random] = None) -> None:
        # random.shuffle is an in-place Fisher-Yates
        (rng or random).shuffle(self._cards)

    def deal(self, n: int = HAND_SIZE) -> list[Card]:
        if n > len(self._cards):
            raise ValueError("Not enough cards in deck")
        dealt = self._cards[:n]
        self._cards = self._cards[n:]
        return dealt

    @property
    def cards(self) -> tuple[Card, ...]:
        return tuple(self._cards)

    @property
    def remaining(self) -> int:
        return len(self._cards)
