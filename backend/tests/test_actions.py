"""Tests for betting actions: look, fold, call, raise, compare costs and legality."""

import random

import pytest
from golden_flower.cards import Deck
from golden_flower.engine import (
    ActionKind,
    BalanceChange,
    IllegalActionError,
    InsufficientBalanceError,
    PlayerState,
    Status,
    apply_action,
    begin_play,
    deal_round,
    legal_actions,
)


# ── Helpers ──────────────────────────────────────────────────────────

def _start(n=3, balance=10_000, dealer_idx=2, **kwargs):
    """Deal and begin play.  dealer_idx=2 hands the first turn to the human seat p0."""
    players = [
        PlayerState(f"p{i}", f"Player{i}", balance, is_human=(i == 0))
        for i in range(n)
    ]
    kwargs.setdefault("ante", 100)
    kwargs.setdefault("max_bet_limit", 2000)
    dealt = deal_round(
        players, dealer_idx=dealer_idx, deck=Deck(rng=random.Random(9)), **kwargs
    )
    return begin_play(dealt.state).state


def _action_pid(state) -> str:
    """Return the player_id of whoever's turn it is."""
    return state.active_player.player_id


def _act(state, action):
    return apply_action(state, _action_pid(state), action)


# ── Look ─────────────────────────────────────────────────────────────

class TestLook:
    def test_look_keeps_the_turn(self):
        s = _start()
        t = _act(s, ActionKind.LOOK)
        assert t.ledger == []
        assert _action_pid(t.state) == "p0"
        assert t.state.players[0].has_seen
        assert t.state.players[0].status == Status.LOOKED

    def test_look_only_once(self):
        s = _act(_start(), ActionKind.LOOK).state
        assert ActionKind.LOOK not in legal_actions(s, "p0")
        with pytest.raises(IllegalActionError):
            _act(s, ActionKind.LOOK)

    def test_look_is_free(self):
        s = _start()
        t = _act(s, ActionKind.LOOK)
        assert t.state.pot == s.pot
        assert t.state.players[0].balance == s.players[0].balance


# ── Fold ─────────────────────────────────────────────────────────────

class TestFold:
    def test_fold_marks_player(self):
        t = _act(_start(), ActionKind.FOLD)
        p = t.state.players[0]
        assert p.has_folded
        assert p.status == Status.FOLDED
        assert t.ledger == []

    def test_fold_always_legal(self):
        assert ActionKind.FOLD in legal_actions(_start(), "p0")


# ── Call ─────────────────────────────────────────────────────────────

class TestCall:
    def test_blind_call_costs_current_bet(self):
        t = _act(_start(), ActionKind.CALL)
        assert t.ledger == [BalanceChange("p0", -100, "call")]
        assert t.state.pot == 400
        assert t.state.players[0].total_bet == 200
        assert t.state.players[0].status == Status.CALLED

    def test_seen_call_costs_double(self):
        s = _act(_start(), ActionKind.LOOK).state
        t = _act(s, ActionKind.CALL)
        assert t.ledger == [BalanceChange("p0", -200, "call")]

    def test_call_leaves_current_bet(self):
        t = _act(_start(), ActionKind.CALL)
        assert t.state.current_bet == 100


# ── Raise ────────────────────────────────────────────────────────────

class TestRaise:
    def test_raise_adds_two_antes(self):
        t = _act(_start(), ActionKind.RAISE)
        assert t.state.current_bet == 300
        assert t.ledger == [BalanceChange("p0", -300, "raise")]
        assert t.state.players[0].status == Status.RAISED

    def test_seen_raise_costs_double(self):
        s = _act(_start(), ActionKind.LOOK).state
        t = _act(s, ActionKind.RAISE)
        assert t.state.current_bet == 300
        assert t.ledger == [BalanceChange("p0", -600, "raise")]

    def test_next_player_calls_new_bet(self):
        s = _act(_start(), ActionKind.RAISE).state
        t = _act(s, ActionKind.CALL)
        assert t.ledger == [BalanceChange("p1", -300, "call")]

    def test_raise_capped_at_limit(self):
        t = _act(_start(max_bet_limit=250), ActionKind.RAISE)
        assert t.state.current_bet == 250

    def test_no_raise_at_limit(self):
        s = _act(_start(max_bet_limit=300), ActionKind.RAISE).state
        assert s.current_bet == 300
        assert ActionKind.RAISE not in legal_actions(s, _action_pid(s))
        with pytest.raises(IllegalActionError):
            _act(s, ActionKind.RAISE)


# ── Compare ──────────────────────────────────────────────────────────

class TestCompareCost:
    def test_blind_compare_costs_two_calls(self):
        t = _act(_start(), ActionKind.COMPARE)
        assert t.ledger[0] == BalanceChange("p0", -200, "compare")

    def test_seen_compare_costs_two_seen_calls(self):
        s = _act(_start(), ActionKind.LOOK).state
        t = _act(s, ActionKind.COMPARE)
        assert t.ledger[0] == BalanceChange("p0", -400, "compare")

    def test_compare_folds_exactly_one(self):
        t = _act(_start(), ActionKind.COMPARE)
        assert len(t.state.players_in()) == 2


# ── Balance guards ───────────────────────────────────────────────────

class TestBalanceGuards:
    def test_only_fold_when_call_unaffordable(self):
        s = _start(balance=150)  # 50 left after the ante
        assert legal_actions(s, "p0") == [ActionKind.FOLD]
        with pytest.raises(InsufficientBalanceError):
            _act(s, ActionKind.CALL)

    def test_unaffordable_raise_rejected(self):
        s = _start(balance=350)  # 250 left: call 100, compare 200, raise 300
        legal = legal_actions(s, "p0")
        assert legal == [ActionKind.LOOK, ActionKind.FOLD, ActionKind.CALL, ActionKind.COMPARE]
        with pytest.raises(InsufficientBalanceError):
            _act(s, ActionKind.RAISE)

    def test_unaffordable_compare_rejected(self):
        s = _start(balance=250)  # 150 left: call 100 only
        assert ActionKind.COMPARE not in legal_actions(s, "p0")
        with pytest.raises(InsufficientBalanceError):
            _act(s, ActionKind.COMPARE)

    def test_rejection_leaves_state_untouched(self):
        s = _start(balance=150)
        pot = s.pot
        with pytest.raises(InsufficientBalanceError):
            _act(s, ActionKind.CALL)
        assert s.pot == pot
        assert s.players[0].balance == 50


# ── Rejections ───────────────────────────────────────────────────────

class TestRejections:
    def test_wrong_turn(self):
        s = _start()
        with pytest.raises(IllegalActionError, match="Not your turn"):
            apply_action(s, "p1", ActionKind.CALL)
        assert legal_actions(s, "p1") == []

    def test_folded_player(self):
        s = _act(_start(), ActionKind.FOLD).state
        with pytest.raises(IllegalActionError, match="folded"):
            apply_action(s, "p0", ActionKind.CALL)

    def test_unknown_player(self):
        with pytest.raises(IllegalActionError):
            apply_action(_start(), "nobody", ActionKind.CALL)

    def test_unknown_action(self):
        with pytest.raises(IllegalActionError, match="Unknown action"):
            _act(_start(), "bet")

    def test_string_actions_accepted(self):
        t = _act(_start(), "call")
        assert t.ledger == [BalanceChange("p0", -100, "call")]
