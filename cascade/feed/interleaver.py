"""
Quiz/Content Interleaver.

Merges unseen quiz and general items into one delivery order so that
quizzes never cluster and general content is never starved.

Strategy:
- Shuffle general, quiz and retry buckets independently (Fisher-Yates)
- Pick a random target gap (7-10 by default)
- Append general items until the trailing run reaches the gap
- Inject one retry item (preferred) or quiz, then reset the run
- Hold remaining quizzes back once general content runs out
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from loguru import logger

from .items import FeedItem

T = TypeVar("T")


@dataclass
class InterleaveConfig:
    """Configuration for quiz spacing."""

    min_gap: int = 7
    max_gap: int = 10

    def __post_init__(self) -> None:
        if self.min_gap < 1 or self.max_gap < self.min_gap:
            raise ValueError(
                f"Invalid quiz gap range {self.min_gap}-{self.max_gap}"
            )


@dataclass
class InterleaveResult:
    """Output of one interleaving pass."""

    items: list[FeedItem] = field(default_factory=list)
    trailing_run: int = 0
    held_quiz: list[FeedItem] = field(default_factory=list)
    held_retry: list[FeedItem] = field(default_factory=list)

    @property
    def quiz_count(self) -> int:
        return sum(1 for item in self.items if item.is_quiz)


def shuffle(items: Sequence[T], rng: random.Random) -> list[T]:
    """Return a uniformly shuffled copy (Fisher-Yates)."""
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = rng.randint(0, i)
        result[i], result[j] = result[j], result[i]
    return result


def trailing_general_run(sequence: Sequence[FeedItem]) -> int:
    """Count consecutive non-quiz items at the tail of a sequence."""
    run = 0
    for item in reversed(sequence):
        if item.is_quiz:
            break
        run += 1
    return run


class FeedInterleaver:
    """
    Builds the append order for newly available feed items.

    The random source is injectable so tests can pin a seed.
    """

    def __init__(
        self,
        config: InterleaveConfig | None = None,
        rng: random.Random | None = None,
    ):
        self.config = config or InterleaveConfig()
        self.rng = rng or random.Random()

    def interleave(
        self,
        general: Sequence[FeedItem],
        quiz: Sequence[FeedItem],
        retry: Sequence[FeedItem],
        trailing_run: int = 0,
    ) -> InterleaveResult:
        """
        Interleave pending buckets behind an existing sequence.

        Args:
            general: Pending non-quiz items
            quiz: Pending ordinary quiz items
            retry: Pending retry quiz items (take priority over quiz)
            trailing_run: Non-quiz items already at the tail of the feed

        Returns:
            InterleaveResult with the items to append and held quizzes
        """
        general_queue = shuffle(general, self.rng)
        quiz_queue = shuffle(quiz, self.rng)
        retry_queue = shuffle(retry, self.rng)

        result: list[FeedItem] = []
        run = trailing_run

        while general_queue:
            target_gap = self.rng.randint(self.config.min_gap, self.config.max_gap)

            while run < target_gap and general_queue:
                result.append(general_queue.pop())
                run += 1

            # Never end a batch on a quiz: it waits for more general content
            if not general_queue:
                break

            if retry_queue:
                result.append(retry_queue.pop())
            elif quiz_queue:
                result.append(quiz_queue.pop())
            else:
                run += len(general_queue)
                result.extend(reversed(general_queue))
                general_queue.clear()
                break
            run = 0

        if quiz_queue or retry_queue:
            logger.debug(
                f"Holding {len(retry_queue)} retry + {len(quiz_queue)} quiz items "
                "until more general content arrives"
            )

        return InterleaveResult(
            items=result,
            trailing_run=run,
            held_quiz=quiz_queue,
            held_retry=retry_queue,
        )
