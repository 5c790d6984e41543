"""Tests for Card, Deck, and related helpers."""

import copy
import random

import pytest
from golden_flower.cards import (
    DECK_SIZE,
    RANK_SYMBOLS,
    SUIT_SYMBOLS,
    Card,
    Deck,
    Rank,
    Suit,
    build_deck,
)


# ── Card basics ──────────────────────────────────────────────────────

class TestCard:
    def test_creation(self):
        c = Card(Rank.ACE, Suit.SPADES)
        assert c.rank == Rank.ACE
        assert c.suit == Suit.SPADES
        assert c.value == 14

    def test_repr(self):
        assert repr(Card(Rank.ACE, Suit.HEARTS)) == "Ah"
        assert repr(Card(Rank.TEN, Suit.CLUBS)) == "10c"
        assert repr(Card(Rank.TWO, Suit.DIAMONDS)) == "2d"

    def test_symbol(self):
        assert Card(Rank.QUEEN, Suit.SPADES).symbol == "Q♠"
        assert Card(Rank.TEN, Suit.HEARTS).symbol == "10♥"

    def test_equality(self):
        assert Card(Rank.KING, Suit.SPADES) == Card(Rank.KING, Suit.SPADES)
        assert Card(Rank.KING, Suit.SPADES) != Card(Rank.KING, Suit.HEARTS)

    def test_hash_consistency(self):
        a = Card(Rank.QUEEN, Suit.DIAMONDS)
        b = Card(Rank.QUEEN, Suit.DIAMONDS)
        assert hash(a) == hash(b)
        assert len({a, b}) == 1

    def test_eq_with_non_card(self):
        c = Card(Rank.ACE, Suit.SPADES)
        assert c != "As"
        assert c.__eq__("As") is NotImplemented

    def test_immutable(self):
        c = Card(Rank.ACE, Suit.SPADES)
        with pytest.raises(AttributeError):
            c.rank = Rank.TWO

    def test_deepcopy_returns_same_card(self):
        c = Card(Rank.FIVE, Suit.CLUBS)
        assert copy.deepcopy(c) is c

    def test_to_dict(self):
        assert Card(Rank.JACK, Suit.HEARTS).to_dict() == {
            "rank": "J",
            "suit": "♥",
            "value": 11,
        }

    def test_from_str(self):
        assert Card.from_str("Ah") == Card(Rank.ACE, Suit.HEARTS)
        assert Card.from_str("10s") == Card(Rank.TEN, Suit.SPADES)
        assert Card.from_str("Ts") == Card(Rank.TEN, Suit.SPADES)
        assert Card.from_str("2c") == Card(Rank.TWO, Suit.CLUBS)

    def test_from_str_case_insensitive(self):
        assert Card.from_str("kD") == Card.from_str("Kd")


# ── Rank / Suit enums ───────────────────────────────────────────────

class TestEnums:
    def test_rank_values(self):
        assert Rank.TWO == 2
        assert Rank.ACE == 14
        assert len(Rank) == 13

    def test_suit_values(self):
        assert Suit.HEARTS.value == "h"
        assert len(Suit) == 4

    def test_symbol_tables_complete(self):
        assert len(RANK_SYMBOLS) == 13
        assert len(SUIT_SYMBOLS) == 4


# ── Deck ─────────────────────────────────────────────────────────────

class TestDeck:
    def test_build_deck_unique(self):
        cards = build_deck()
        assert len(cards) == DECK_SIZE
        assert len(set(cards)) == DECK_SIZE

    def test_fresh_deck_has_every_card(self):
        d = Deck()
        assert d.remaining == 52
        assert set(d.cards) == set(build_deck())

    def test_seeded_shuffle_is_reproducible(self):
        a = Deck(rng=random.Random(7))
        b = Deck(rng=random.Random(7))
        assert a.cards == b.cards

    def test_shuffle_changes_order(self):
        d = Deck(rng=random.Random(1))
        assert list(d.cards) != build_deck()

    def test_deal_removes_from_front(self):
        d = Deck(rng=random.Random(3))
        top = d.cards[:3]
        hand = d.deal(3)
        assert tuple(hand) == top
        assert d.remaining == 49
        assert not set(hand) & set(d.cards)

    def test_deal_too_many(self):
        d = Deck(cards=[Card.from_str("Ah"), Card.from_str("Kh")])
        with pytest.raises(ValueError):
            d.deal(3)

    def test_stacked_deck_keeps_order(self):
        stacked = [Card.from_str(s) for s in ("Ah", "Kh", "Qh", "2c")]
        d = Deck(cards=stacked)
        assert d.deal(3) == stacked[:3]
        assert d.cards == (stacked[3],)

    def test_stacked_deck_rejects_duplicates(self):
        with pytest.raises(ValueError):
            Deck(cards=[Card.from_str("Ah"), Card.from_str("Ah")])

    def test_every_position_reachable(self):
        """Each card lands on top of the deck at least once across many shuffles."""
        rng = random.Random(42)
        seen = set()
        for _ in range(2000):
            seen.add(Deck(rng=rng).cards[0])
        assert len(seen) == 52
