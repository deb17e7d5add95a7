"""
Unit tests for optimistic voting and rollback.
"""

import pytest

from cascade.feed.votes import (
    VoteDelta,
    VoteDirection,
    VoteLedger,
    VotePhase,
    compute_vote_delta,
)

UP, DOWN = VoteDirection.UP, VoteDirection.DOWN


class RecordingPersistence:
    """Vote persistence that records calls and returns a fixed result."""

    def __init__(self, result=True, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def apply_vote_delta(self, item_id, user_id, delta_up, delta_down, new_vote):
        self.calls.append((item_id, user_id, delta_up, delta_down, new_vote))
        if self.error:
            raise self.error
        return self.result


class TestTransitionTable:
    """Tests for compute_vote_delta."""

    @pytest.mark.parametrize(
        "current,pressed,expected",
        [
            (None, UP, VoteDelta(1, 0, UP)),
            (None, DOWN, VoteDelta(0, 1, DOWN)),
            (UP, UP, VoteDelta(-1, 0, None)),
            (DOWN, DOWN, VoteDelta(0, -1, None)),
            (UP, DOWN, VoteDelta(-1, 1, DOWN)),
            (DOWN, UP, VoteDelta(1, -1, UP)),
        ],
    )
    def test_transitions(self, current, pressed, expected):
        """Every (current, pressed) pair maps to its delta."""
        assert compute_vote_delta(current, pressed) == expected

    def test_plain_strings_toggle_off(self):
        """String directions follow the same table as the enum."""
        assert compute_vote_delta("up", "up") == VoteDelta(-1, 0, None)
        assert compute_vote_delta(UP, "up") == VoteDelta(-1, 0, None)
        assert compute_vote_delta("down", "up") == VoteDelta(1, -1, UP)


class TestVoteLedger:
    """Tests for VoteLedger."""

    @pytest.fixture
    def item(self, item_factory):
        return item_factory("post", item_id="p1", upvotes=3, downvotes=1)

    @pytest.mark.asyncio
    async def test_upvote_commits(self, item):
        """3 up / 1 down, no vote, press up -> 4/1 and committed."""
        persistence = RecordingPersistence()
        ledger = VoteLedger("p1", "u1", persistence)
        ledger.sync(item)

        assert await ledger.vote(UP) is True

        assert (ledger.state.up, ledger.state.down) == (4, 1)
        assert ledger.local_vote is UP
        assert ledger.score == 3
        assert ledger.phase is VotePhase.COMMITTED
        assert persistence.calls == [("p1", "u1", 1, 0, "up")]

    @pytest.mark.asyncio
    async def test_flip_vote(self, item):
        """Press down after up flips both counters."""
        ledger = VoteLedger("p1", "u1", RecordingPersistence())
        ledger.sync(item)

        await ledger.vote(UP)
        await ledger.vote(DOWN)

        assert (ledger.state.up, ledger.state.down) == (3, 2)
        assert ledger.local_vote is DOWN

    @pytest.mark.asyncio
    async def test_same_direction_removes_vote(self, item):
        """Pressing the active direction again removes the vote."""
        persistence = RecordingPersistence()
        ledger = VoteLedger("p1", "u1", persistence)
        ledger.sync(item)

        await ledger.vote(UP)
        await ledger.vote(UP)

        assert (ledger.state.up, ledger.state.down) == (3, 1)
        assert ledger.local_vote is None
        assert persistence.calls[-1] == ("p1", "u1", -1, 0, None)

    @pytest.mark.asyncio
    async def test_string_direction_removes_vote(self, item):
        """Pressing "up" twice as plain strings removes the vote."""
        persistence = RecordingPersistence()
        ledger = VoteLedger("p1", "u1", persistence)
        ledger.sync(item)

        await ledger.vote("up")
        await ledger.vote("up")

        assert (ledger.state.up, ledger.state.down) == (3, 1)
        assert ledger.local_vote is None
        assert persistence.calls[-1] == ("p1", "u1", -1, 0, None)

    @pytest.mark.asyncio
    async def test_rejected_persistence_rolls_back(self, item):
        """A False result restores the previous local state."""
        ledger = VoteLedger("p1", "u1", RecordingPersistence(result=False))
        ledger.sync(item)

        assert await ledger.vote(UP) is False

        assert (ledger.state.up, ledger.state.down) == (3, 1)
        assert ledger.local_vote is None
        assert ledger.phase is VotePhase.ROLLED_BACK
        assert ledger.last_error

    @pytest.mark.asyncio
    async def test_raising_persistence_rolls_back(self, item):
        """Exceptions from persistence are treated as failure."""
        ledger = VoteLedger("p1", "u1", RecordingPersistence(error=ConnectionError("offline")))
        ledger.sync(item)

        assert await ledger.vote(DOWN) is False

        assert ledger.state.down == 1
        assert ledger.last_error == "offline"

    def test_sync_reads_existing_vote(self, item_factory):
        """sync picks up the user's stored vote."""
        item = item_factory("post", upvotes=2, votedBy={"u1": "up", "u2": "down"})
        ledger = VoteLedger(item.id, "u1", RecordingPersistence())

        ledger.sync(item)

        assert ledger.local_vote is UP
        assert ledger.phase is VotePhase.IDLE
