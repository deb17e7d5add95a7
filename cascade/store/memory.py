"""
In-Memory Feed Store.

A process-local stand-in for the managed document store behind the feed.
Implements every collaborator protocol the feed session needs, using the
same primitives the real store offers: atomic increments, array-union /
array-removal, newest-first pool queries and push subscriptions.

Collections:
- feeds: generated items (type, topic, subject, payload, counters, votedBy)
- users: viewedIds, retryIds, topicExpertise, xp, avoidedTopics
- comments: per-item comment threads
"""

from __future__ import annotations

import asyncio
import copy
import itertools
import random
from collections import defaultdict
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

from loguru import logger

from cascade.feed.generation import LOWEST_DIFFICULTY, next_difficulty
from cascade.feed.protocols import (
    EngagementKind,
    EngagementReport,
    FeedBackend,
    GenerationClient,
    PoolCallback,
    PoolRecords,
    Unsubscribe,
    UserStateCallback,
)

XP_PER_CORRECT_QUIZ = 10


class InMemoryFeedStore:
    """Document store with synchronous push subscriptions."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self.clock = clock
        self._items: dict[str, dict[str, Any]] = {}
        self._sequence: dict[str, int] = {}
        self._users: dict[str, dict[str, Any]] = {}
        self._comments: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self._pool_subs: dict[int, tuple[str | None, PoolCallback]] = {}
        self._user_subs: dict[int, tuple[str, UserStateCallback]] = {}
        self._sub_ids = itertools.count()
        self._item_ids = itertools.count(1)
        self._created = itertools.count()

    # =========================================================================
    # Documents
    # =========================================================================

    def add_item(self, record: dict[str, Any], item_id: str | None = None) -> str:
        """Insert one feed item and notify pool subscribers."""
        item_id = self._insert(record, item_id)
        self._notify_pool()
        return item_id

    def add_items(self, records: Iterable[dict[str, Any]]) -> list[str]:
        """Insert a batch of items with a single pool notification."""
        ids = [self._insert(record, None) for record in records]
        if ids:
            self._notify_pool()
        return ids

    def _insert(self, record: dict[str, Any], item_id: str | None) -> str:
        item_id = item_id or f"feed-{next(self._item_ids):05d}"
        data = copy.deepcopy(record)
        data.setdefault("upvotes", 0)
        data.setdefault("downvotes", 0)
        data.setdefault("commentCount", 0)
        data.setdefault("votedBy", {})
        data.setdefault("createdAt", self.clock())
        self._items[item_id] = data
        self._sequence[item_id] = next(self._created)
        return item_id

    def get_item(self, item_id: str) -> dict[str, Any] | None:
        data = self._items.get(item_id)
        return copy.deepcopy(data) if data is not None else None

    def ensure_user(self, user_id: str, **fields: Any) -> dict[str, Any]:
        """Create the user document if missing; merge any given fields."""
        user = self._users.setdefault(
            user_id,
            {
                "viewedIds": [],
                "retryIds": [],
                "topicExpertise": {},
                "xp": 0,
                "avoidedTopics": [],
            },
        )
        if fields:
            user.update(copy.deepcopy(fields))
            self._notify_user(user_id)
        return copy.deepcopy(user)

    def get_user(self, user_id: str) -> dict[str, Any]:
        return copy.deepcopy(self._users.get(user_id) or {})

    def comments_for(self, item_id: str) -> list[dict[str, Any]]:
        """Comments on an item, newest first."""
        return list(reversed(copy.deepcopy(self._comments.get(item_id, []))))

    def pool_snapshot(self, subject: str | None = None) -> PoolRecords:
        """Items for a subject (or all), newest first."""
        ids = sorted(self._items, key=self._sequence.__getitem__, reverse=True)
        return [
            (item_id, copy.deepcopy(self._items[item_id]))
            for item_id in ids
            if subject is None or self._items[item_id].get("subject") == subject
        ]

    # =========================================================================
    # Atomic primitives
    # =========================================================================

    def increment(self, item_id: str, field: str, amount: int) -> None:
        data = self._items[item_id]
        data[field] = data.get(field, 0) + amount

    def array_union(self, user_id: str, field: str, value: str) -> None:
        values = self._user_doc(user_id).setdefault(field, [])
        if value not in values:
            values.append(value)

    def array_remove(self, user_id: str, field: str, value: str) -> None:
        values = self._user_doc(user_id).setdefault(field, [])
        if value in values:
            values.remove(value)

    def _user_doc(self, user_id: str) -> dict[str, Any]:
        if user_id not in self._users:
            self.ensure_user(user_id)
        return self._users[user_id]

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def subscribe_pool(self, subject: str | None, callback: PoolCallback) -> Unsubscribe:
        sub_id = next(self._sub_ids)
        self._pool_subs[sub_id] = (subject, callback)
        callback(self.pool_snapshot(subject))
        return lambda: self._pool_subs.pop(sub_id, None)

    def subscribe_user_state(self, user_id: str, callback: UserStateCallback) -> Unsubscribe:
        sub_id = next(self._sub_ids)
        self._user_subs[sub_id] = (user_id, callback)
        callback(self.get_user(user_id))
        return lambda: self._user_subs.pop(sub_id, None)

    def _notify_pool(self) -> None:
        for subject, callback in list(self._pool_subs.values()):
            callback(self.pool_snapshot(subject))

    def _notify_user(self, user_id: str) -> None:
        for subscribed_id, callback in list(self._user_subs.values()):
            if subscribed_id == user_id:
                callback(self.get_user(user_id))

    # =========================================================================
    # Collaborator protocols
    # =========================================================================

    async def report(self, report: EngagementReport) -> None:
        """Engagement sink: viewed ids are unioned, avoided topics logged."""
        if report.kind is EngagementKind.VIEWED:
            self.array_union(report.user_id, "viewedIds", report.item_id)
        else:
            self._user_doc(report.user_id).setdefault("avoidedTopics", []).append(
                {"topic": report.topic, "durationMs": report.duration_ms or 0}
            )
            logger.debug(f"Avoided topic logged for {report.user_id}: {report.topic}")
        self._notify_user(report.user_id)

    async def apply_vote_delta(
        self,
        item_id: str,
        user_id: str,
        delta_up: int,
        delta_down: int,
        new_vote: str | None,
    ) -> bool:
        if item_id not in self._items:
            return False
        if delta_up:
            self.increment(item_id, "upvotes", delta_up)
        if delta_down:
            self.increment(item_id, "downvotes", delta_down)

        voted_by = self._items[item_id].setdefault("votedBy", {})
        if new_vote is None:
            voted_by.pop(user_id, None)
        else:
            voted_by[user_id] = new_vote

        self._notify_pool()
        return True

    async def record_quiz_answer(
        self,
        user_id: str,
        item_id: str,
        topic: str,
        is_correct: bool,
    ) -> str | None:
        """
        Quiz engagement: correct answers raise topic expertise one tier and
        clear the retry flag; wrong answers flag the quiz for retry and
        make it deliverable again.
        """
        user = self._user_doc(user_id)
        expertise = user.setdefault("topicExpertise", {})
        current = expertise.get(topic, LOWEST_DIFFICULTY)

        if is_correct:
            expertise[topic] = next_difficulty(current)
            self.array_remove(user_id, "retryIds", item_id)
            user["xp"] = user.get("xp", 0) + XP_PER_CORRECT_QUIZ
        else:
            self.array_union(user_id, "retryIds", item_id)
            self.array_remove(user_id, "viewedIds", item_id)

        self._notify_user(user_id)
        return expertise.get(topic, current)

    async def add_comment(self, item_id: str, user_id: str, text: str) -> None:
        if item_id not in self._items:
            raise KeyError(f"Unknown feed item {item_id}")
        self._comments[item_id].append(
            {"text": text, "userId": user_id, "createdAt": self.clock()}
        )
        self.increment(item_id, "commentCount", 1)
        self._notify_pool()

    def as_backend(self, generator: GenerationClient | None = None) -> FeedBackend:
        """Bundle this store (and a generator) as a feed backend."""
        return FeedBackend(
            pool=self,
            user_state=self,
            generator=generator or SyntheticGenerator(self),
            engagement=self,
            votes=self,
            quizzes=self,
            comments=self,
        )


# =============================================================================
# Synthetic Generator
# =============================================================================

GENERAL_KINDS = ("summary", "post", "visual_concept")


class SyntheticGenerator:
    """
    Writes batches of placeholder items into an InMemoryFeedStore.

    Every ``quiz_every``-th item is a quiz; the rest cycle through the
    general kinds.
    """

    def __init__(
        self,
        store: InMemoryFeedStore,
        batch_size: int = 10,
        quiz_every: int = 4,
        rng: random.Random | None = None,
    ):
        self.store = store
        self.batch_size = batch_size
        self.quiz_every = quiz_every
        self.rng = rng or random.Random()
        self.calls: list[tuple[str, str, str]] = []
        self._counter = itertools.count(1)

    async def generate(self, user_id: str, subject: str, difficulty: str) -> None:
        self.calls.append((user_id, subject, difficulty))
        # Generation is remote in production; yield like a network call
        await asyncio.sleep(0)

        records = [self._make_record(subject, difficulty) for _ in range(self.batch_size)]
        self.store.add_items(records)
        logger.debug(f"Generated {len(records)} items for {subject} ({difficulty})")

    def _make_record(self, subject: str, difficulty: str) -> dict[str, Any]:
        n = next(self._counter)
        topic = f"{subject} concept {n}"
        base = {"topic": topic, "subject": subject, "generatedBy": "synthetic", "difficulty": difficulty}

        if self.quiz_every and n % self.quiz_every == 0:
            correct = self.rng.randrange(4)
            return {
                **base,
                "type": "quiz",
                "question": f"Which statement about {topic} is true?",
                "options": [f"Option {i + 1}" for i in range(4)],
                "correctIndex": correct,
                "explanation": f"Option {correct + 1} describes {topic}.",
            }

        kind = GENERAL_KINDS[n % len(GENERAL_KINDS)]
        if kind == "summary":
            return {**base, "type": kind, "title": topic.title(), "points": [f"Key idea {i}" for i in range(1, 4)]}
        if kind == "post":
            return {**base, "type": kind, "hook": f"Ever wondered about {topic}?", "content": f"A short take on {topic}."}
        return {
            **base,
            "type": kind,
            "title": topic.title(),
            "analogy": f"{topic} is like a library index.",
            "explanation": f"Why the analogy fits {topic}.",
        }
