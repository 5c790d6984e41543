"""Table — async adapter around the round engine for one human seat.

Owns the current round, samples opponents from the ledger, issues the
round's ledger writes in order, schedules AI turns and pushes events to
listeners after every transition.  All mutation happens under one lock.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Awaitable, Callable, NamedTuple, Optional

from golden_flower.ai import decide_for, tier_for_balance
from golden_flower.engine import (
    ActionKind,
    BalanceChange,
    CannotStartError,
    IllegalActionError,
    Phase,
    PlayerState,
    RoundState,
    Transition,
    abandon_round,
    apply_action,
    begin_play,
    deal_round,
)
from golden_flower.ledger import ActivitySink, Ledger
from golden_flower.models import TableSettings
from golden_flower.settlement import LeaderTracker, seat_title, settle
from golden_flower.timer import TurnScheduler, turn_scheduler

logger = logging.getLogger(__name__)

# listener(table, kind, data) where kind is "snapshot" or "succession"
Listener = Callable[["Table", str, Optional[dict[str, Any]]], Awaitable[None]]


class PendingWrite(NamedTuple):
    change: BalanceChange
    key: str


class Table:
    """One human player against simulated opponents drawn from the directory."""

    def __init__(
        self,
        table_id: str,
        human_id: str,
        ledger: Ledger,
        activity: ActivitySink,
        *,
        settings: Optional[TableSettings] = None,
        scheduler: Optional[TurnScheduler] = None,
        tracker: Optional[LeaderTracker] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.table_id = table_id
        self.human_id = human_id
        self.ledger = ledger
        self.activity = activity
        self.settings = settings or TableSettings()
        self.scheduler = scheduler or turn_scheduler
        self.tracker = tracker or LeaderTracker()
        self.rng = rng or random.Random()

        self.lock = asyncio.Lock()
        self.state: Optional[RoundState] = None
        self.generation: int = 0  # bumps on every new game and on close
        self.dealer_idx: Optional[int] = None
        self.pending: list[PendingWrite] = []
        self.last_activity: float = time.time()
        self.closed: bool = False

        self._version: int = 0  # bumps on every committed transition
        self._seq: int = 0
        self._listeners: list[Listener] = []

    @property
    def scheduler_key(self) -> str:
        return f"table:{self.table_id}"

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def snapshot(self, viewer_id: Optional[str] = None) -> dict[str, Any]:
        """State view for viewer_id (defaults to the human seat)."""
        viewer = viewer_id if viewer_id is not None else self.human_id
        if self.state is None:
            view: dict[str, Any] = {
                "phase": Phase.SETUP.value,
                "pot": 0,
                "current_bet": self.settings.ante,
                "ante": self.settings.ante,
                "round_of_betting": 0,
                "max_rounds": self.settings.max_rounds,
                "max_bet_limit": self.settings.max_bet_limit,
                "dealer_index": self.dealer_idx,
                "active_player_id": None,
                "winner_id": None,
                "players": [],
                "log_lines": [],
                "legal_actions": [],
            }
        else:
            view = self.state.snapshot(viewer)
        view["table_id"] = self.table_id
        view["generation"] = self.generation
        view["pending_ledger_writes"] = len(self.pending)
        return view

    def observer_snapshot(self) -> dict[str, Any]:
        """Generic-observer view: only revealed hands are visible."""
        if self.state is None:
            return self.snapshot()
        view = self.state.snapshot(None)
        view["table_id"] = self.table_id
        view["generation"] = self.generation
        view["pending_ledger_writes"] = len(self.pending)
        return view

    # ------------------------------------------------------------------
    # Game lifecycle
    # ------------------------------------------------------------------

    async def start_game(self, player_count: int) -> dict[str, Any]:
        """Sample seats, collect antes and deal.  Raises CannotStartError."""
        async with self.lock:
            if self.closed:
                raise CannotStartError("Table is closed")

            if not await self._flush():
                logger.warning(
                    "Table %s starting with %d unreconciled ledger write(s)",
                    self.table_id,
                    len(self.pending),
                )

            seats = await self._sample_seats(player_count)
            refund: Optional[Transition] = None
            if self.state is not None and self.state.phase != Phase.ENDED:
                refund = abandon_round(self.state)
                returned = {c.player_id: c.delta for c in refund.ledger}
                for seat in seats:
                    seat.balance += returned.get(seat.player_id, 0)

            if self.dealer_idx is None:
                dealer_idx = self.rng.randrange(player_count)
            else:
                dealer_idx = (self.dealer_idx + 1) % player_count

            transition = deal_round(
                seats,
                ante=self.settings.ante,
                dealer_idx=dealer_idx,
                rng=self.rng,
                max_rounds=self.settings.max_rounds,
                max_bet_limit=self.settings.max_bet_limit,
            )

            # Any timer still pending belongs to the round being replaced
            self.scheduler.cancel(self.scheduler_key)
            if refund is not None:
                logger.info(
                    "Abandoning unfinished round: table=%s generation=%d refunded=%d",
                    self.table_id,
                    self.generation,
                    self.state.pot,
                )
                # Refunds go out under the old generation, ahead of the new antes
                self._enqueue(refund.ledger)
            self.generation += 1
            self.dealer_idx = dealer_idx
            logger.info(
                "Game started: table=%s generation=%d seats=%d dealer=%s",
                self.table_id,
                self.generation,
                player_count,
                seats[dealer_idx].name,
            )
            await self._commit(transition)

            if self.settings.deal_delay > 0:
                generation = self.generation
                self.scheduler.schedule(
                    self.scheduler_key,
                    self.settings.deal_delay,
                    lambda: self._deal_timer_fired(generation),
                )
            else:
                await self._begin_play()
            return self.snapshot()

    async def submit_action(self, player_id: str, action: ActionKind | str) -> dict[str, Any]:
        """The human seat's single entry point.  Rejections leave state untouched."""
        async with self.lock:
            if self.state is None:
                raise IllegalActionError("No game in progress")
            if player_id != self.human_id:
                raise IllegalActionError("Only the human seat may submit actions")
            transition = apply_action(self.state, player_id, action)
            logger.debug(
                "Action: table=%s player=%s action=%s", self.table_id, player_id, action
            )
            await self._commit(transition)
            await self._drive_ai()
            return self.snapshot()

    async def reconcile(self) -> int:
        """Retry queued ledger writes.  Returns how many remain queued."""
        async with self.lock:
            await self._flush()
            return len(self.pending)

    async def close(self) -> None:
        async with self.lock:
            self.closed = True
            self.generation += 1
            self.scheduler.cancel(self.scheduler_key)
            logger.info("Table closed: %s", self.table_id)

    async def _sample_seats(self, player_count: int) -> list[PlayerState]:
        ante = self.settings.ante
        try:
            await self.tracker.prime(self.ledger)
            human = await self.ledger.get_player(self.human_id)
            eligible = await self.ledger.list_eligible_players(ante)
        except Exception as e:
            raise CannotStartError(f"Player directory unavailable: {e}") from e

        if human is None or human.status != "active":
            raise CannotStartError("Human player is not an active directory member")
        if human.balance < ante:
            raise CannotStartError(f"Balance {human.balance} cannot cover the ante of {ante}")

        opponents = [e for e in eligible if e.id != self.human_id and e.balance >= ante]
        needed = player_count - 1
        if len(opponents) < needed:
            raise CannotStartError(
                f"Not enough eligible opponents: need {needed}, found {len(opponents)}"
            )

        leader_id = self.tracker.leader_id
        seats = [
            PlayerState(
                human.id,
                human.name,
                human.balance,
                title=seat_title(human.balance, human.id == leader_id),
                is_human=True,
            )
        ]
        for entry in self.rng.sample(opponents, needed):
            seats.append(
                PlayerState(
                    entry.id,
                    entry.name,
                    entry.balance,
                    title=seat_title(entry.balance, entry.id == leader_id),
                    ai_tier=tier_for_balance(entry.balance).value,
                )
            )
        return seats

    async def _deal_timer_fired(self, generation: int) -> None:
        async with self.lock:
            if (
                generation != self.generation
                or self.state is None
                or self.state.phase != Phase.DEALING
            ):
                logger.debug("Ignoring stale deal timer for %s", self.table_id)
                return
            await self._begin_play()

    async def _begin_play(self) -> None:
        await self._commit(begin_play(self.state))
        await self._drive_ai()

    # ------------------------------------------------------------------
    # AI turns
    # ------------------------------------------------------------------

    async def _drive_ai(self) -> None:
        """Play or schedule AI turns until the human is to act or the round ends."""
        while True:
            state = self.state
            if state is None or state.phase != Phase.PLAYING:
                return
            p = state.active_player
            if p is None or p.is_human:
                return

            if self.settings.ai_delay_max > 0:
                delay = self.rng.uniform(self.settings.ai_delay_min, self.settings.ai_delay_max)
                generation, version = self.generation, self._version
                self.scheduler.schedule(
                    self.scheduler_key,
                    delay,
                    lambda: self._ai_timer_fired(generation, version),
                )
                return
            await self._play_ai_turn()

    async def _ai_timer_fired(self, generation: int, version: int) -> None:
        async with self.lock:
            if generation != self.generation or version != self._version:
                logger.debug("Ignoring stale AI timer for %s", self.table_id)
                return
            await self._play_ai_turn()
            await self._drive_ai()

    async def _play_ai_turn(self) -> None:
        state = self.state
        p = state.active_player
        action = decide_for(state, self.rng)
        try:
            transition = apply_action(state, p.player_id, action)
        except IllegalActionError as e:
            logger.warning(
                "AI %s chose %s which is not legal (%s); folding", p.name, action.value, e
            )
            transition = apply_action(state, p.player_id, ActionKind.FOLD)
        logger.debug("AI action: table=%s player=%s action=%s", self.table_id, p.name, action.value)
        await self._commit(transition)

    # ------------------------------------------------------------------
    # Commit / ledger / events
    # ------------------------------------------------------------------

    async def _commit(self, transition: Transition) -> None:
        self.state = transition.state
        self._version += 1
        self.last_activity = time.time()

        self._enqueue(transition.ledger)
        await self._flush()

        await self._emit("snapshot", None)
        if transition.ended:
            await self._settle()

    def _enqueue(self, changes: list[BalanceChange]) -> None:
        for change in changes:
            self._seq += 1
            key = f"{self.table_id}:{self.generation}:{self._seq}"
            self.pending.append(PendingWrite(change, key))

    async def _flush(self) -> bool:
        """Issue queued ledger writes in order, stopping at the first failure."""
        while self.pending:
            write = self.pending[0]
            try:
                await self.ledger.adjust_balance(
                    write.change.player_id, write.change.delta, write.key
                )
            except Exception as e:
                logger.warning(
                    "Ledger write %s (%s %+d) failed: %s; %d write(s) queued for retry",
                    write.key,
                    write.change.player_id,
                    write.change.delta,
                    e,
                    len(self.pending),
                )
                return False
            self.pending.pop(0)
        return True

    async def _settle(self) -> None:
        state = self.state
        winner = state.winner
        logger.info(
            "Game ended: table=%s generation=%d winner=%s pot=%d",
            self.table_id,
            self.generation,
            winner.name if winner else None,
            state.pot,
        )
        event = await settle(state, self.ledger, self.activity, self.tracker)
        if event is not None:
            await self._emit("succession", event.model_dump())

    async def _emit(self, kind: str, data: Optional[dict[str, Any]]) -> None:
        for listener in list(self._listeners):
            try:
                await listener(self, kind, data)
            except Exception:
                logger.debug("Listener failed for %s on %s", kind, self.table_id, exc_info=True)
