"""
Vote/Engagement Ledger.

Optimistic up/down voting over a shared remote counter. The local state
changes immediately; the same delta is then persisted with increment
operations and rolled back if persistence fails.

Transition table (current vote x pressed direction):
- same direction  -> remove vote (-1 on that counter)
- opposite        -> flip (-1 on old, +1 on new)
- no prior vote   -> add (+1 on pressed)

Phases: IDLE -> OPTIMISTIC -> COMMITTED | ROLLED_BACK
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from loguru import logger

from .items import FeedItem
from .protocols import VotePersistence


class VoteDirection(str, Enum):
    """Vote direction."""

    UP = "up"
    DOWN = "down"


class VotePhase(Enum):
    """Reconciliation phase of the last vote."""

    IDLE = "idle"
    OPTIMISTIC = "optimistic"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True)
class VoteDelta:
    """Counter changes and resulting vote for one button press."""

    delta_up: int
    delta_down: int
    new_vote: VoteDirection | None


@dataclass(frozen=True)
class VoteSnapshot:
    """Local counters and the user's vote."""

    up: int = 0
    down: int = 0
    vote: VoteDirection | None = None

    @property
    def score(self) -> int:
        return self.up - self.down


def compute_vote_delta(
    current: VoteDirection | str | None,
    direction: VoteDirection | str,
) -> VoteDelta:
    """Apply the vote transition table. Plain "up"/"down" strings are accepted."""
    direction = VoteDirection(direction)
    current = VoteDirection(current) if current else None

    if current == direction:
        if direction is VoteDirection.UP:
            return VoteDelta(-1, 0, None)
        return VoteDelta(0, -1, None)

    delta_up = 1 if direction is VoteDirection.UP else 0
    delta_down = 1 if direction is VoteDirection.DOWN else 0
    if current is VoteDirection.UP:
        delta_up -= 1
    elif current is VoteDirection.DOWN:
        delta_down -= 1

    return VoteDelta(delta_up, delta_down, direction)


class VoteLedger:
    """
    Local optimistic overlay for one item's votes by one user.

    No lock guards rapid repeated presses; each press races its own
    persistence call.
    """

    def __init__(self, item_id: str, user_id: str, persistence: VotePersistence):
        self.item_id = item_id
        self.user_id = user_id
        self.persistence = persistence
        self.state = VoteSnapshot()
        self.phase = VotePhase.IDLE
        self.last_error: str | None = None

    @property
    def score(self) -> int:
        return self.state.score

    @property
    def local_vote(self) -> VoteDirection | None:
        return self.state.vote

    def sync(self, item: FeedItem) -> None:
        """Resynchronize from an authoritative remote snapshot."""
        raw = item.vote_of(self.user_id)
        self.state = VoteSnapshot(
            up=item.upvotes,
            down=item.downvotes,
            vote=VoteDirection(raw) if raw else None,
        )

    async def vote(self, direction: VoteDirection | str) -> bool:
        """
        Press a vote button.

        Returns:
            True if the delta was persisted, False if it was rolled back
        """
        previous = self.state
        delta = compute_vote_delta(previous.vote, direction)

        self.state = VoteSnapshot(
            up=previous.up + delta.delta_up,
            down=previous.down + delta.delta_down,
            vote=delta.new_vote,
        )
        self.phase = VotePhase.OPTIMISTIC

        try:
            persisted = await self.persistence.apply_vote_delta(
                self.item_id,
                self.user_id,
                delta.delta_up,
                delta.delta_down,
                delta.new_vote.value if delta.new_vote else None,
            )
            error = None if persisted else "persistence rejected the vote"
        except Exception as e:
            error = str(e) or type(e).__name__

        if error is None:
            self.phase = VotePhase.COMMITTED
            self.last_error = None
            return True

        self.state = previous
        self.phase = VotePhase.ROLLED_BACK
        self.last_error = error
        logger.error(f"Vote on {self.item_id} failed, reverted: {error}")
        return False
