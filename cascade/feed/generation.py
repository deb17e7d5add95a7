"""
Generation Trigger.

Keeps the item pool from running dry. At most one generation request is
in flight per feed session; new items arrive later through the pool
subscription, never as a return value.

Subject resolution (priority order):
1. Explicit active subject (user choice or timetable override)
2. Random enrolled subject, with its stored difficulty
3. Generic subject at the lowest difficulty tier
"""

from __future__ import annotations

import math
import random
from collections.abc import Sequence
from dataclasses import dataclass, field

from loguru import logger

from .protocols import GenerationClient

DIFFICULTY_TIERS = ("beginner", "intermediate", "advanced")
LOWEST_DIFFICULTY = DIFFICULTY_TIERS[0]
GENERIC_SUBJECT = "general knowledge"


def next_difficulty(level: str) -> str:
    """Step one tier up, capped at the highest tier."""
    try:
        index = DIFFICULTY_TIERS.index(level)
    except ValueError:
        return LOWEST_DIFFICULTY
    return DIFFICULTY_TIERS[min(index + 1, len(DIFFICULTY_TIERS) - 1)]


@dataclass(frozen=True)
class SubjectEnrollment:
    """A subject the learner is enrolled in, with its stored difficulty."""

    name: str
    difficulty: str = LOWEST_DIFFICULTY


@dataclass
class GenerationContext:
    """Inputs to subject/difficulty resolution for one trigger."""

    user_id: str
    active_subject: str | None = None
    difficulty_override: str | None = None
    enrolled: Sequence[SubjectEnrollment] = field(default_factory=tuple)


@dataclass(frozen=True)
class GenerationTarget:
    """Concrete (subject, difficulty) pair sent to the generator."""

    subject: str
    difficulty: str


def resolve_target(
    context: GenerationContext,
    rng: random.Random | None = None,
    generic_subject: str = GENERIC_SUBJECT,
    default_difficulty: str = LOWEST_DIFFICULTY,
) -> GenerationTarget:
    """
    Resolve the subject and difficulty for the next generation request.

    Args:
        context: Active subject, override and enrollments
        rng: Random source for picking among enrolled subjects
        generic_subject: Fallback subject when nothing is enrolled
        default_difficulty: Lowest tier, used as the final fallback

    Returns:
        GenerationTarget
    """
    if context.active_subject:
        difficulty = context.difficulty_override
        if not difficulty:
            enrolled = {e.name: e.difficulty for e in context.enrolled}
            difficulty = enrolled.get(context.active_subject)
        return GenerationTarget(context.active_subject, difficulty or default_difficulty)

    if context.enrolled:
        choice = (rng or random).choice(list(context.enrolled))
        return GenerationTarget(choice.name, choice.difficulty or default_difficulty)

    return GenerationTarget(generic_subject, default_difficulty)


def should_trigger_at(
    index: int,
    delivered_count: int,
    depth: float = 0.75,
    min_items: int = 5,
) -> bool:
    """
    Check whether reaching ``index`` passes the refill trigger point.

    The trigger sits at ``floor(delivered_count * depth)`` and is only
    evaluated when more than ``min_items`` items are delivered.
    """
    if delivered_count <= min_items:
        return False
    return index >= math.floor(delivered_count * depth)


class GenerationTrigger:
    """
    Single-flight wrapper around the generation collaborator.

    Failures are logged and swallowed; the in-flight flag is always
    cleared so a later trigger can retry.
    """

    def __init__(
        self,
        client: GenerationClient,
        rng: random.Random | None = None,
        generic_subject: str = GENERIC_SUBJECT,
        default_difficulty: str = LOWEST_DIFFICULTY,
    ):
        self.client = client
        self.rng = rng or random.Random()
        self.generic_subject = generic_subject
        self.default_difficulty = default_difficulty
        self._is_generating = False
        self.requests_issued = 0
        self.failures = 0

    @property
    def is_generating(self) -> bool:
        return self._is_generating

    async def trigger(self, context: GenerationContext) -> bool:
        """
        Request more content unless a request is already in flight.

        Returns:
            True if a request was issued (whether or not it succeeded)
        """
        if self._is_generating:
            logger.debug("Generation already in flight, skipping trigger")
            return False

        self._is_generating = True
        try:
            target = resolve_target(
                context,
                self.rng,
                generic_subject=self.generic_subject,
                default_difficulty=self.default_difficulty,
            )
            self.requests_issued += 1
            logger.info(
                f"Requesting generation for {context.user_id}: "
                f"{target.subject} ({target.difficulty})"
            )
            await self.client.generate(context.user_id, target.subject, target.difficulty)
        except Exception as e:
            self.failures += 1
            logger.error(f"Feed generation failed: {e}")
        finally:
            self._is_generating = False

        return True
