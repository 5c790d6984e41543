"""Core round engine for three-card Golden Flower.

Owns the per-round lifecycle (ante, dealing, turn order, betting,
compare, termination and payout).  Every public operation takes a
:class:`RoundState` and returns a :class:`Transition` holding a *new*
state plus the balance changes the caller must write to the ledger, in
order.  The input state is never mutated.
"""

from __future__ import annotations

import copy
import os
import random
import time
from enum import Enum
from typing import Any, Callable, NamedTuple, Optional, Sequence

from golden_flower.cards import HAND_SIZE, Card, Deck
from golden_flower.evaluator import HandEvaluation, compare_evaluations, evaluate

ANTE = int(os.getenv("GF_ANTE", "100"))
MAX_ROUNDS = int(os.getenv("GF_MAX_ROUNDS", "15"))
MAX_BET_LIMIT = int(os.getenv("GF_MAX_BET_LIMIT", "2000"))

MIN_PLAYERS = 3
MAX_PLAYERS = 6


class Phase(str, Enum):
    SETUP = "setup"
    DEALING = "dealing"
    PLAYING = "playing"
    ENDED = "ended"


class ActionKind(str, Enum):
    LOOK = "look"
    FOLD = "fold"
    CALL = "call"
    RAISE = "raise"
    COMPARE = "compare"


ECONOMIC_ACTIONS = frozenset({ActionKind.CALL, ActionKind.RAISE, ActionKind.COMPARE})


class Status(str, Enum):
    WAITING = "Waiting"
    IN = "In"
    LOOKED = "Looked"
    FOLDED = "Folded"
    CALLED = "Called"
    RAISED = "Raised"
    COMPARED = "Compared"
    LOST_COMPARE = "Lost compare"
    WINNER = "Winner"


class GameError(ValueError):
    """Base class for rejected game operations."""


class CannotStartError(GameError):
    """A game could not be set up; no round was created."""


class IllegalActionError(GameError):
    """The action is not legal for this player right now."""


class InsufficientBalanceError(IllegalActionError):
    """The player's balance cannot cover the action's cost."""


class BalanceChange(NamedTuple):
    """A ledger write produced by a transition."""

    player_id: str
    delta: int
    reason: str


class PlayerState:
    """Per-round state for a single seat."""

    def __init__(
        self,
        player_id: str,
        name: str,
        balance: int,
        *,
        title: str = "",
        is_human: bool = False,
        ai_tier: Optional[str] = None,
    ) -> None:
        self.player_id = player_id
        self.name = name
        self.title = title
        self.balance = balance
        self.is_human = is_human
        self.ai_tier = ai_tier
        self.hand: list[Card] = []
        self.has_folded: bool = False
        self.has_seen: bool = False
        self.is_revealed: bool = False
        self.is_turn: bool = False
        self.total_bet: int = 0
        self.status: Status = Status.WAITING

    @property
    def evaluation(self) -> HandEvaluation:
        return evaluate(self.hand)

    @property
    def stake_multiplier(self) -> int:
        """Open (seen) players pay double."""
        return 2 if self.has_seen else 1

    def to_dict(self, reveal_cards: bool = False) -> dict[str, Any]:
        d: dict[str, Any] = {
            "player_id": self.player_id,
            "name": self.name,
            "title": self.title,
            "balance": self.balance,
            "is_human": self.is_human,
            "ai_tier": self.ai_tier,
            "has_folded": self.has_folded,
            "has_seen": self.has_seen,
            "is_revealed": self.is_revealed,
            "is_turn": self.is_turn,
            "total_bet": self.total_bet,
            "status": self.status.value,
            "card_count": len(self.hand),
        }
        if reveal_cards and self.hand:
            d["hand"] = [c.to_dict() for c in self.hand]
            d["hand_name"] = self.evaluation.name
        return d


class RoundState:
    """Authoritative state of one round.  Treat as immutable outside this module."""

    def __init__(
        self,
        players: list[PlayerState],
        deck: Deck,
        *,
        ante: int = ANTE,
        dealer_idx: int = 0,
        max_rounds: int = MAX_ROUNDS,
        max_bet_limit: int = MAX_BET_LIMIT,
    ) -> None:
        self.players = players
        self.deck = deck
        self.ante = ante
        self.dealer_idx = dealer_idx
        self.max_rounds = max_rounds
        self.max_bet_limit = max_bet_limit
        self.phase: Phase = Phase.SETUP
        self.pot: int = 0
        self.current_bet: int = ante
        self.round_of_betting: int = 1
        self.active_idx: Optional[int] = None
        self.winner_id: Optional[str] = None
        self.log_lines: list[str] = []

    def copy(self) -> RoundState:
        return copy.deepcopy(self)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def start_idx(self) -> int:
        """First seat to act: immediately clockwise of the dealer."""
        return (self.dealer_idx + 1) % len(self.players)

    @property
    def active_player(self) -> Optional[PlayerState]:
        if self.active_idx is None:
            return None
        return self.players[self.active_idx]

    @property
    def winner(self) -> Optional[PlayerState]:
        if self.winner_id is None:
            return None
        return self._find_player(self.winner_id)

    def players_in(self) -> list[int]:
        """Indices of un-folded players."""
        return [i for i, p in enumerate(self.players) if not p.has_folded]

    def next_unfolded(self, idx: int) -> tuple[int, bool]:
        """Next un-folded seat after idx, and whether the scan passed the start seat."""
        n = len(self.players)
        wrapped = False
        for offset in range(1, n + 1):
            i = (idx + offset) % n
            if i == self.start_idx:
                wrapped = True
            if not self.players[i].has_folded:
                return i, wrapped
        return idx, wrapped

    def find_player_idx(self, player_id: str) -> Optional[int]:
        for i, p in enumerate(self.players):
            if p.player_id == player_id:
                return i
        return None

    def _find_player(self, player_id: str) -> Optional[PlayerState]:
        idx = self.find_player_idx(player_id)
        return self.players[idx] if idx is not None else None

    def call_cost(self, p: PlayerState) -> int:
        return self.current_bet * p.stake_multiplier

    def raise_target(self) -> int:
        return min(self.current_bet + 2 * self.ante, self.max_bet_limit)

    def action_cost(self, p: PlayerState, action: ActionKind) -> int:
        if action == ActionKind.CALL:
            return self.call_cost(p)
        if action == ActionKind.RAISE:
            return self.raise_target() * p.stake_multiplier
        if action == ActionKind.COMPARE:
            return 2 * self.call_cost(p)
        return 0

    def _set_turn(self, idx: Optional[int]) -> None:
        self.active_idx = idx
        for i, p in enumerate(self.players):
            p.is_turn = i == idx

    def _log(self, message: str) -> None:
        self.log_lines.append(f"[{time.strftime('%H:%M:%S')}] {message}")

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def can_view_hand(self, p: PlayerState, viewer_id: Optional[str]) -> bool:
        """Public once revealed; before that only the holder, after looking."""
        if self.phase == Phase.ENDED or p.is_revealed:
            return True
        return viewer_id == p.player_id and p.has_seen

    def snapshot(self, viewer_id: Optional[str] = None) -> dict[str, Any]:
        """Read-only view for a viewer (None = generic observer)."""
        active = self.active_player
        return {
            "phase": self.phase.value,
            "pot": self.pot,
            "current_bet": self.current_bet,
            "ante": self.ante,
            "round_of_betting": self.round_of_betting,
            "max_rounds": self.max_rounds,
            "max_bet_limit": self.max_bet_limit,
            "dealer_index": self.dealer_idx,
            "active_player_id": active.player_id if active else None,
            "winner_id": self.winner_id,
            "players": [
                p.to_dict(reveal_cards=self.can_view_hand(p, viewer_id))
                for p in self.players
            ],
            "log_lines": list(self.log_lines),
            "legal_actions": (
                [a.value for a in legal_actions(self, viewer_id)] if viewer_id else []
            ),
        }


class Transition(NamedTuple):
    state: RoundState
    ledger: list[BalanceChange]

    @property
    def ended(self) -> bool:
        return self.state.phase == Phase.ENDED


# ----------------------------------------------------------------------
# Lifecycle
# ----------------------------------------------------------------------


def deal_round(
    players: Sequence[PlayerState],
    *,
    ante: int = ANTE,
    dealer_idx: int = 0,
    deck: Optional[Deck] = None,
    rng: Optional[random.Random] = None,
    max_rounds: int = MAX_ROUNDS,
    max_bet_limit: int = MAX_BET_LIMIT,
) -> Transition:
    """Setup -> Dealing: collect antes and deal three cards to every seat."""
    n = len(players)
    if not MIN_PLAYERS <= n <= MAX_PLAYERS:
        raise CannotStartError(
            f"Player count must be between {MIN_PLAYERS} and {MAX_PLAYERS}"
        )
    if not 0 <= dealer_idx < n:
        raise CannotStartError("Dealer seat out of range")
    short = [p.name for p in players if p.balance < ante]
    if short:
        raise CannotStartError(f"Cannot afford the ante of {ante}: {', '.join(short)}")

    seats = copy.deepcopy(list(players))
    state = RoundState(
        seats,
        copy.deepcopy(deck) if deck is not None else Deck(rng=rng),
        ante=ante,
        dealer_idx=dealer_idx,
        max_rounds=max_rounds,
        max_bet_limit=max_bet_limit,
    )
    ledger: list[BalanceChange] = []

    for p in state.players:
        p.balance -= ante
        p.total_bet = ante
        p.status = Status.IN
        ledger.append(BalanceChange(p.player_id, -ante, "ante"))
    for p in state.players:
        p.hand = state.deck.deal(HAND_SIZE)

    state.pot = ante * n
    state.current_bet = ante
    state.round_of_betting = 1
    state.phase = Phase.DEALING
    state._log(f"--- {n}-player game opened, ante {ante} ---")
    state._log(f"Dealer: {state.players[dealer_idx].name}")
    return Transition(state, ledger)


def abandon_round(state: RoundState) -> Transition:
    """Dealing/Playing -> Ended with no winner: every seat gets its stake back."""
    if state.phase not in (Phase.DEALING, Phase.PLAYING):
        raise IllegalActionError("No round in progress")
    new = state.copy()
    ledger: list[BalanceChange] = []
    for p in new.players:
        if p.total_bet:
            p.balance += p.total_bet
            ledger.append(BalanceChange(p.player_id, p.total_bet, "refund"))
    new._log(f"=== Round abandoned: pot of {new.pot} returned to the seats ===")
    new.pot = 0
    new.phase = Phase.ENDED
    new._set_turn(None)
    return Transition(new, ledger)


def begin_play(state: RoundState) -> Transition:
    """Dealing -> Playing: hand the turn to the seat after the dealer."""
    if state.phase != Phase.DEALING:
        raise IllegalActionError("Round is not dealing")
    new = state.copy()
    new.phase = Phase.PLAYING
    new._set_turn(new.start_idx)
    return Transition(new, [])


# ----------------------------------------------------------------------
# Action Processing
# ----------------------------------------------------------------------


def legal_actions(state: RoundState, player_id: Optional[str]) -> list[ActionKind]:
    """Actions the given player may submit now (empty when it is not their turn)."""
    p = state.active_player
    if state.phase != Phase.PLAYING or p is None or p.player_id != player_id:
        return []
    if p.balance < state.call_cost(p):
        return [ActionKind.FOLD]

    actions: list[ActionKind] = []
    if not p.has_seen:
        actions.append(ActionKind.LOOK)
    actions.extend([ActionKind.FOLD, ActionKind.CALL])
    if (
        state.current_bet < state.max_bet_limit
        and p.balance >= state.action_cost(p, ActionKind.RAISE)
    ):
        actions.append(ActionKind.RAISE)
    if p.balance >= state.action_cost(p, ActionKind.COMPARE):
        actions.append(ActionKind.COMPARE)
    return actions


def apply_action(
    state: RoundState, player_id: str, action: ActionKind | str
) -> Transition:
    """Apply one action by the active player.  Rejections leave state untouched."""
    try:
        kind = ActionKind(action)
    except ValueError:
        raise IllegalActionError(f"Unknown action: {action}") from None

    if state.phase != Phase.PLAYING:
        raise IllegalActionError("No round in play")
    idx = state.find_player_idx(player_id)
    if idx is None:
        raise IllegalActionError("Player not found")
    p = state.players[idx]
    if p.has_folded:
        raise IllegalActionError("Player has folded")
    if idx != state.active_idx:
        raise IllegalActionError("Not your turn")

    if kind not in legal_actions(state, player_id):
        cost = state.action_cost(p, kind)
        if kind in ECONOMIC_ACTIONS and cost > p.balance:
            raise InsufficientBalanceError(
                f"{kind.value} costs {cost}, balance is {p.balance}"
            )
        raise IllegalActionError(f"Cannot {kind.value} now")

    new = state.copy()
    ledger: list[BalanceChange] = []
    _HANDLERS[kind](new, idx, ledger)

    # Looking keeps the turn
    if kind != ActionKind.LOOK:
        _advance_turn(new, idx, ledger)
    return Transition(new, ledger)


def _wager(
    state: RoundState, p: PlayerState, cost: int, reason: str,
    ledger: list[BalanceChange],
) -> None:
    p.balance -= cost
    p.total_bet += cost
    state.pot += cost
    ledger.append(BalanceChange(p.player_id, -cost, reason))


def _do_look(state: RoundState, idx: int, ledger: list[BalanceChange]) -> None:
    p = state.players[idx]
    # Seen by the holder only; is_revealed is set by a compare or the round end
    p.has_seen = True
    p.status = Status.LOOKED
    state._log(f"{p.name} looks at their cards")


def _do_fold(state: RoundState, idx: int, ledger: list[BalanceChange]) -> None:
    p = state.players[idx]
    p.has_folded = True
    p.status = Status.FOLDED
    state._log(f"{p.name} folds")


def _do_call(state: RoundState, idx: int, ledger: list[BalanceChange]) -> None:
    p = state.players[idx]
    cost = state.call_cost(p)
    _wager(state, p, cost, "call", ledger)
    p.status = Status.CALLED
    state._log(f"{p.name} calls ({cost})")


def _do_raise(state: RoundState, idx: int, ledger: list[BalanceChange]) -> None:
    p = state.players[idx]
    target = state.raise_target()
    cost = target * p.stake_multiplier
    _wager(state, p, cost, "raise", ledger)
    state.current_bet = target
    p.status = Status.RAISED
    state._log(f"{p.name} raises to {target} ({cost})")


def _do_compare(state: RoundState, idx: int, ledger: list[BalanceChange]) -> None:
    p = state.players[idx]
    cost = state.action_cost(p, ActionKind.COMPARE)
    _wager(state, p, cost, "compare", ledger)
    _resolve_compare(state, idx, cost=cost)


def _resolve_compare(state: RoundState, idx: int, cost: Optional[int] = None) -> None:
    """Showdown between seat idx and the next un-folded seat; the loser folds."""
    challenger = state.players[idx]
    target_idx, _ = state.next_unfolded(idx)
    defender = state.players[target_idx]

    if cost is None:
        state._log(f"Round limit reached: {challenger.name} must compare with {defender.name}")
    else:
        state._log(f"{challenger.name} compares with {defender.name} ({cost})")

    challenger_wins = compare_evaluations(challenger.evaluation, defender.evaluation)
    challenger.is_revealed = True
    defender.is_revealed = True
    if challenger_wins:
        defender.has_folded = True
        defender.status = Status.LOST_COMPARE
        challenger.status = Status.COMPARED
        state._log(f"{defender.name} loses the compare")
    else:
        challenger.has_folded = True
        challenger.status = Status.LOST_COMPARE
        defender.status = Status.COMPARED
        state._log(f"{challenger.name} loses the challenge")


_HANDLERS: dict[ActionKind, Callable[[RoundState, int, list[BalanceChange]], None]] = {
    ActionKind.LOOK: _do_look,
    ActionKind.FOLD: _do_fold,
    ActionKind.CALL: _do_call,
    ActionKind.RAISE: _do_raise,
    ActionKind.COMPARE: _do_compare,
}


# ----------------------------------------------------------------------
# Turn / Round Management
# ----------------------------------------------------------------------


def _advance_turn(state: RoundState, idx: int, ledger: list[BalanceChange]) -> None:
    """Move the turn on from idx, forcing compares once the round limit is hit."""
    while True:
        in_play = state.players_in()
        if len(in_play) == 1:
            _finish(state, in_play[0], ledger)
            return

        nxt, wrapped = state.next_unfolded(idx)
        if wrapped:
            state.round_of_betting += 1
            state._log(f"--- Round {state.round_of_betting} ---")
        state._set_turn(nxt)

        if state.round_of_betting < state.max_rounds:
            return
        _resolve_compare(state, nxt)
        idx = nxt


def _finish(state: RoundState, winner_idx: int, ledger: list[BalanceChange]) -> None:
    """Playing -> Ended: reveal every hand and pay the whole pot to the winner."""
    winner = state.players[winner_idx]
    state.phase = Phase.ENDED
    state.winner_id = winner.player_id
    state._set_turn(None)
    for p in state.players:
        p.has_seen = True
        p.is_revealed = True

    winner.balance += state.pot
    winner.status = Status.WINNER
    ledger.append(BalanceChange(winner.player_id, state.pot, "pot"))
    state._log(f"=== Game over: {winner.name} takes the pot of {state.pot} ===")
