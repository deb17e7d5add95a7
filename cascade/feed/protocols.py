"""
Collaborator protocols for the feed engine.

The engine never talks to a document store or HTTP API directly; it is
handed objects satisfying these protocols. Push subscriptions are
callbacks returning an unsubscribe callable.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

# (item_id, stored record) pairs, newest first
PoolRecords = list[tuple[str, dict[str, Any]]]
PoolCallback = Callable[[PoolRecords], None]
UserStateCallback = Callable[[dict[str, Any]], None]
Unsubscribe = Callable[[], None]


class EngagementKind(str, Enum):
    """Engagement signal categories."""

    VIEWED = "viewed"
    AVOIDED = "avoided"


@dataclass(frozen=True)
class EngagementReport:
    """Payload sent to the engagement signal sink."""

    user_id: str
    item_id: str
    topic: str
    kind: EngagementKind
    duration_ms: int | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "userId": self.user_id,
            "feedId": self.item_id,
            "topic": self.topic,
            "engagementType": self.kind.value,
        }
        if self.duration_ms is not None:
            payload["durationMs"] = self.duration_ms
        return payload


class ItemPoolSource(Protocol):
    """Live item pool query, filtered by subject (None = all subjects)."""

    def subscribe_pool(self, subject: str | None, callback: PoolCallback) -> Unsubscribe:
        ...


class UserStateSource(Protocol):
    """Live user-state document (viewed ids, retry ids)."""

    def subscribe_user_state(self, user_id: str, callback: UserStateCallback) -> Unsubscribe:
        ...


class GenerationClient(Protocol):
    """Fire-and-forget generation request."""

    async def generate(self, user_id: str, subject: str, difficulty: str) -> None:
        ...


class EngagementSink(Protocol):
    """Best-effort engagement signal sink."""

    async def report(self, report: EngagementReport) -> None:
        ...


class VotePersistence(Protocol):
    """Remote vote counter store. Returns False (or raises) on failure."""

    async def apply_vote_delta(
        self,
        item_id: str,
        user_id: str,
        delta_up: int,
        delta_down: int,
        new_vote: str | None,
    ) -> bool:
        ...


class QuizEngagementClient(Protocol):
    """Records quiz answers; mutates the retry set remotely."""

    async def record_quiz_answer(
        self,
        user_id: str,
        item_id: str,
        topic: str,
        is_correct: bool,
    ) -> str | None:
        ...


class CommentSink(Protocol):
    """Posts a comment and increments the item's comment counter."""

    async def add_comment(self, item_id: str, user_id: str, text: str) -> None:
        ...


@dataclass
class FeedBackend:
    """Bundle of collaborators a feed session depends on."""

    pool: ItemPoolSource
    user_state: UserStateSource
    generator: GenerationClient
    engagement: EngagementSink
    votes: VotePersistence
    quizzes: QuizEngagementClient
    comments: CommentSink
