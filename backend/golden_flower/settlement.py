"""Settlement follow-up: win activity, leaderboard succession and seat titles.

The pot itself is credited by the round engine as a single ledger write
when the round ends; this module runs after that write has been issued.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from golden_flower.engine import Phase, RoundState
from golden_flower.ledger import ActivitySink, Ledger
from golden_flower.models import DirectoryEntry, SuccessionEvent

logger = logging.getLogger(__name__)

LEADER_TITLE = "Emperor"

# Balance strictly above the bound earns the title
SEAT_TITLES: list[tuple[int, str]] = [
    (60_000, "Emperor"),
    (35_000, "Grand Tutor"),
    (20_000, "Chancellor"),
    (10_000, "Minister of Revenue"),
    (6_000, "Eastern Depot Chief"),
    (3_000, "Provincial Graduate"),
    (1_000, "Commoner"),
]
DEFAULT_TITLE = "Servant"


def seat_title(balance: int, is_leader: bool = False) -> str:
    if is_leader:
        return LEADER_TITLE
    for bound, title in SEAT_TITLES:
        if balance > bound:
            return title
    return DEFAULT_TITLE


class LeaderTracker:
    """Remembers the directory's top-balance holder between rounds."""

    def __init__(self) -> None:
        self.leader: Optional[DirectoryEntry] = None

    @property
    def leader_id(self) -> Optional[str]:
        return self.leader.id if self.leader else None

    async def _load_top(self, ledger: Ledger) -> Optional[DirectoryEntry]:
        top_id = await ledger.get_top_balance_holder()
        if top_id is None:
            return None
        return await ledger.get_player(top_id)

    async def prime(self, ledger: Ledger) -> None:
        """Load the current leader without emitting anything."""
        if self.leader is None:
            self.leader = await self._load_top(ledger)

    async def check(self, ledger: Ledger) -> Optional[SuccessionEvent]:
        """Re-read the leaderboard; return an event if the leader changed."""
        top = await self._load_top(ledger)
        if top is None:
            return None
        previous = self.leader
        self.leader = top
        if previous is None or previous.id == top.id:
            return None
        return SuccessionEvent(
            previous_leader_name=previous.name,
            new_leader_name=top.name,
            new_leader_balance=top.balance,
            timestamp=time.time(),
        )


async def _record(activity: ActivitySink, player_id: str, kind: str, message: str) -> None:
    try:
        await activity.record(player_id, kind, message)
    except Exception:
        logger.warning("Activity record failed (%s for %s)", kind, player_id, exc_info=True)


async def settle(
    state: RoundState,
    ledger: Ledger,
    activity: ActivitySink,
    tracker: LeaderTracker,
) -> Optional[SuccessionEvent]:
    """Run once per ended round.  Returns a succession event if the leader changed."""
    if state.phase != Phase.ENDED or state.winner is None:
        raise ValueError("Round has not ended")

    winner = state.winner
    if winner.is_human:
        await _record(
            activity,
            winner.player_id,
            "win",
            f"Golden Flower: {winner.name} won {state.pot} points",
        )

    try:
        event = await tracker.check(ledger)
    except Exception:
        logger.warning("Leaderboard check failed after round", exc_info=True)
        return None

    if event is not None:
        logger.info(
            "Succession: %s -> %s (%d)",
            event.previous_leader_name,
            event.new_leader_name,
            event.new_leader_balance,
        )
        await _record(
            activity,
            tracker.leader_id or "",
            "succession",
            f"{event.new_leader_name} takes the throne from "
            f"{event.previous_leader_name} with {event.new_leader_balance} points",
        )
    return event
