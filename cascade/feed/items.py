"""
Feed Items: Generated Learning Units.

A FeedItem is one card in the feed. Its payload is written once by the
generation backend; only the engagement counters change afterwards.

Kinds:
- summary: title + bullet points
- post: hook + body text
- visual_concept: title + analogy + explanation
- quiz: question + options + correct index + explanation
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from loguru import logger

from cascade.errors import MalformedFeedItemError


class FeedKind(str, Enum):
    """Closed set of feed item kinds."""

    SUMMARY = "summary"
    POST = "post"
    VISUAL_CONCEPT = "visual_concept"
    QUIZ = "quiz"


# Payload fields each kind must carry (camelCase, as stored)
REQUIRED_FIELDS: dict[FeedKind, tuple[str, ...]] = {
    FeedKind.SUMMARY: ("title", "points"),
    FeedKind.POST: ("hook", "content"),
    FeedKind.VISUAL_CONCEPT: ("title", "analogy", "explanation"),
    FeedKind.QUIZ: ("question", "options", "correctIndex", "explanation"),
}

OPTIONAL_FIELDS = ("imageQuery",)

VOTE_VALUES = frozenset({"up", "down"})


@dataclass
class FeedItem:
    """
    A generated learning unit in the feed.

    Items without a subject belong to the generic "for you" pool.
    """

    id: str
    kind: FeedKind
    topic: str
    payload: dict[str, Any]
    subject: str | None = None

    # Engagement counters (mutated remotely via increments)
    upvotes: int = 0
    downvotes: int = 0
    comment_count: int = 0
    voted_by: dict[str, str] = field(default_factory=dict)

    created_at: datetime | None = None

    @property
    def is_quiz(self) -> bool:
        return self.kind is FeedKind.QUIZ

    @property
    def score(self) -> int:
        return self.upvotes - self.downvotes

    def vote_of(self, user_id: str) -> str | None:
        """Return the user's recorded vote direction, if any."""
        return self.voted_by.get(user_id)

    def check_answer(self, option_index: int) -> bool:
        """
        Check a quiz answer.

        Raises:
            ValueError: If this item is not a quiz
        """
        if not self.is_quiz:
            raise ValueError(f"Item {self.id} is a {self.kind.value}, not a quiz")
        return option_index == self.payload["correctIndex"]

    @classmethod
    def from_dict(cls, item_id: str, data: dict[str, Any]) -> FeedItem:
        """
        Create a FeedItem from a document-store record.

        Args:
            item_id: Document id assigned by the store
            data: Stored fields (``type`` or ``kind`` plus payload)

        Returns:
            FeedItem instance

        Raises:
            MalformedFeedItemError: If the kind or required payload is missing
        """
        raw_kind = data.get("type") or data.get("kind")
        if not raw_kind:
            raise MalformedFeedItemError(item_id, "missing kind")
        try:
            kind = FeedKind(raw_kind)
        except ValueError:
            raise MalformedFeedItemError(item_id, f"unknown kind {raw_kind!r}") from None

        missing = [name for name in REQUIRED_FIELDS[kind] if data.get(name) in (None, "")]
        if missing:
            raise MalformedFeedItemError(item_id, f"missing {', '.join(missing)}")

        payload = {name: data[name] for name in REQUIRED_FIELDS[kind]}
        for name in OPTIONAL_FIELDS:
            if data.get(name):
                payload[name] = data[name]

        _validate_payload(item_id, kind, payload)

        voted_by = dict(data.get("votedBy") or {})
        bad_votes = {uid: v for uid, v in voted_by.items() if v not in VOTE_VALUES}
        if bad_votes:
            raise MalformedFeedItemError(item_id, f"invalid votes {bad_votes}")

        counters = {
            "upvotes": data.get("upvotes", 0) or 0,
            "downvotes": data.get("downvotes", 0) or 0,
            "comment_count": data.get("commentCount", data.get("comments", 0)) or 0,
        }
        for name, value in counters.items():
            if not isinstance(value, int) or value < 0:
                raise MalformedFeedItemError(item_id, f"{name} must be a non-negative integer")

        return cls(
            id=item_id,
            kind=kind,
            topic=data.get("topic") or "",
            payload=payload,
            subject=data.get("subject") or None,
            voted_by=voted_by,
            created_at=data.get("createdAt"),
            **counters,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert back to the stored record shape (without the id)."""
        record: dict[str, Any] = {
            "type": self.kind.value,
            "topic": self.topic,
            **self.payload,
            "upvotes": self.upvotes,
            "downvotes": self.downvotes,
            "commentCount": self.comment_count,
            "votedBy": dict(self.voted_by),
        }
        if self.subject:
            record["subject"] = self.subject
        if self.created_at:
            record["createdAt"] = self.created_at
        return record


def _validate_payload(item_id: str, kind: FeedKind, payload: dict[str, Any]) -> None:
    """Check kind-specific payload shapes beyond presence."""
    if kind is FeedKind.SUMMARY and not isinstance(payload["points"], list):
        raise MalformedFeedItemError(item_id, "points must be a list")

    if kind is FeedKind.QUIZ:
        options = payload["options"]
        correct = payload["correctIndex"]
        if not isinstance(options, list) or len(options) < 2:
            raise MalformedFeedItemError(item_id, "quiz needs at least two options")
        if not isinstance(correct, int) or not 0 <= correct < len(options):
            raise MalformedFeedItemError(item_id, "correctIndex out of range")


def parse_pool(records: Iterable[tuple[str, dict[str, Any]]]) -> list[FeedItem]:
    """
    Parse (id, record) pairs from a pool snapshot, skipping malformed ones.

    Order is preserved.
    """
    items: list[FeedItem] = []
    for item_id, data in records:
        try:
            items.append(FeedItem.from_dict(item_id, data))
        except MalformedFeedItemError as e:
            logger.debug(f"Skipping pool record: {e}")
    return items
