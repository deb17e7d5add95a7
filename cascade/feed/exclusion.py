"""
Retry/Exclusion Tracker.

Each learner has two id sets pushed from the user-state document:
- viewed: items already shown (excluded from future pools)
- retry: quiz items answered incorrectly (re-injected with priority)

A retry id always overrides the viewed exclusion.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from .items import FeedItem


@dataclass(frozen=True)
class ExclusionState:
    """Snapshot of a learner's exclusion sets."""

    viewed_ids: frozenset[str] = field(default_factory=frozenset)
    retry_ids: frozenset[str] = field(default_factory=frozenset)

    def is_excluded(self, item_id: str) -> bool:
        """Viewed items are excluded unless flagged for retry."""
        return item_id in self.viewed_ids and item_id not in self.retry_ids

    def is_retry(self, item_id: str) -> bool:
        return item_id in self.retry_ids

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ExclusionState:
        """
        Build from a user-state document.

        Accepts ``viewedIds``/``retryIds`` and the older
        ``viewedReels``/``retryQuizzes`` field names.
        """
        data = data or {}
        viewed = data.get("viewedIds", data.get("viewedReels")) or []
        retry = data.get("retryIds", data.get("retryQuizzes")) or []
        return cls(viewed_ids=frozenset(viewed), retry_ids=frozenset(retry))


class RetryExclusionTracker:
    """
    Holds the latest exclusion snapshot for one feed session.

    The session reads it before every pool-filtering pass.
    """

    def __init__(self, state: ExclusionState | None = None):
        self.state = state or ExclusionState()

    def update(self, state: ExclusionState) -> None:
        """Replace the snapshot with a freshly pushed one."""
        logger.debug(
            f"Exclusion state: {len(state.viewed_ids)} viewed, {len(state.retry_ids)} retry"
        )
        self.state = state

    def is_excluded(self, item: FeedItem) -> bool:
        return self.state.is_excluded(item.id)

    def filter_pool(self, items: Iterable[FeedItem]) -> list[FeedItem]:
        """Drop excluded items, preserving order."""
        return [item for item in items if not self.state.is_excluded(item.id)]

    def partition(
        self,
        items: Iterable[FeedItem],
    ) -> tuple[list[FeedItem], list[FeedItem], list[FeedItem]]:
        """
        Split items into (general, quiz, retry) buckets.

        Retry holds quiz items flagged for re-injection; ordinary quizzes
        go to the quiz bucket and everything else is general content.
        """
        general: list[FeedItem] = []
        quiz: list[FeedItem] = []
        retry: list[FeedItem] = []

        for item in items:
            if not item.is_quiz:
                general.append(item)
            elif self.state.is_retry(item.id):
                retry.append(item)
            else:
                quiz.append(item)

        return general, quiz, retry
