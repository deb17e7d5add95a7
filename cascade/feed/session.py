"""
Feed Session: Orchestration for One Scroller.

Owns all mutable state of a single feed instance (delivered sequence,
pending buffers, exclusion snapshot, generation flag, vote ledgers) and
wires the interleaver, generation trigger and viewport tracker to the
backend collaborators.

Event flow:
- pool push      -> filter -> interleave -> append (refill if empty)
- user-state push -> exclusion snapshot (applied on the next pool pass)
- item in view   -> viewed/avoided signals, 75% depth refill trigger
- class in progress -> subject override and immediate refill (once)
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Callable, Coroutine, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from loguru import logger

from .exclusion import ExclusionState, RetryExclusionTracker
from .focus import FocusMonitor, ScheduleEntry
from .generation import (
    GENERIC_SUBJECT,
    LOWEST_DIFFICULTY,
    GenerationContext,
    GenerationTrigger,
    SubjectEnrollment,
    should_trigger_at,
)
from .interleaver import FeedInterleaver, InterleaveConfig
from .items import FeedItem, parse_pool
from .protocols import EngagementReport, FeedBackend, PoolRecords, Unsubscribe
from .summary import SessionSummary
from .viewport import (
    AVOIDED_DWELL_MS,
    VISIBILITY_THRESHOLD,
    EngagementSignal,
    ViewportTracker,
    ViewState,
    monotonic_ms,
)
from .votes import VoteDirection, VoteLedger


@dataclass
class FeedConfig:
    """Tunable constants for a feed session."""

    min_quiz_gap: int = 7
    max_quiz_gap: int = 10
    trigger_depth: float = 0.75
    trigger_min_items: int = 5
    avoided_dwell_ms: int = AVOIDED_DWELL_MS
    visibility_threshold: float = VISIBILITY_THRESHOLD
    generic_subject: str = GENERIC_SUBJECT
    default_difficulty: str = LOWEST_DIFFICULTY
    focus_poll_seconds: float = 60.0

    @classmethod
    def from_settings(cls, settings: Any) -> FeedConfig:
        """Build from the application Settings object."""
        return cls(
            min_quiz_gap=settings.quiz_gap_min,
            max_quiz_gap=settings.quiz_gap_max,
            trigger_depth=settings.trigger_depth,
            trigger_min_items=settings.trigger_min_items,
            avoided_dwell_ms=settings.avoided_dwell_ms,
            visibility_threshold=settings.visibility_threshold,
            generic_subject=settings.generic_subject,
            default_difficulty=settings.default_difficulty,
            focus_poll_seconds=settings.focus_poll_seconds,
        )


class FeedSession:
    """
    State and behaviour of one endless-scroll feed.

    Nothing here is module-level, so several sessions (tabs, tests) can
    run side by side without interfering.
    """

    def __init__(
        self,
        user_id: str,
        backend: FeedBackend,
        subject: str | None = None,
        difficulty: str | None = None,
        enrolled: Sequence[SubjectEnrollment] = (),
        config: FeedConfig | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = monotonic_ms,
        summary: SessionSummary | None = None,
        schedule: Iterable[ScheduleEntry] | None = None,
        focus_clock: Callable[[], datetime] = datetime.now,
    ):
        self.user_id = user_id
        self.backend = backend
        self.config = config or FeedConfig()
        self.rng = rng or random.Random()

        self.active_subject = subject
        self.difficulty_override = difficulty
        self.enrolled = list(enrolled)

        self.summary = summary or SessionSummary()
        self.exclusions = RetryExclusionTracker()
        self.interleaver = FeedInterleaver(
            InterleaveConfig(self.config.min_quiz_gap, self.config.max_quiz_gap),
            self.rng,
        )
        self.trigger = GenerationTrigger(
            backend.generator,
            self.rng,
            generic_subject=self.config.generic_subject,
            default_difficulty=self.config.default_difficulty,
        )
        self.tracker = ViewportTracker(
            self._on_signal,
            summary=self.summary,
            clock=clock,
            avoided_dwell_ms=self.config.avoided_dwell_ms,
            visibility_threshold=self.config.visibility_threshold,
        )

        self.focus: FocusMonitor | None = None
        if schedule is not None:
            self.focus = FocusMonitor(
                self.apply_focus_override,
                poll_seconds=self.config.focus_poll_seconds,
                clock=focus_clock,
            )
            self.focus.update_schedule(schedule)

        self.delivered: list[FeedItem] = []
        # Each pass drains every general item; only quizzes are held back
        self.pending_quiz: list[FeedItem] = []
        self.pending_retry: list[FeedItem] = []
        self.ledgers: dict[str, VoteLedger] = {}
        self.loading = True

        self._pool: list[FeedItem] = []
        self._known: dict[str, FeedItem] = {}
        self._ever_delivered: set[str] = set()
        self._trailing_run = 0
        self._quiz_answers: dict[str, bool] = {}
        self._unsubscribers: list[Unsubscribe] = []
        self._pool_unsubscribe: Unsubscribe | None = None
        self._tasks: set[asyncio.Task] = set()
        self._focus_task: asyncio.Task | None = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def started(self) -> bool:
        return bool(self._unsubscribers) or self._pool_unsubscribe is not None

    @property
    def is_generating(self) -> bool:
        return self.trigger.is_generating

    def start(self) -> None:
        """Subscribe to the user-state and pool feeds and start the focus monitor."""
        if self.started:
            return
        logger.info(f"Starting feed session for {self.user_id} (subject={self.active_subject})")
        self._unsubscribers.append(
            self.backend.user_state.subscribe_user_state(self.user_id, self._on_user_state)
        )
        self._subscribe_pool()
        self._start_focus()

    def _start_focus(self) -> None:
        if self.focus is None or self.focus.dismissed:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; focus monitor not started")
            return
        self._focus_task = loop.create_task(self.focus.run())

    def stop(self) -> None:
        """Unsubscribe from all feeds, stop the focus monitor and end the current view."""
        if self._focus_task is not None:
            self._focus_task.cancel()
        self.tracker.close()
        if self._pool_unsubscribe is not None:
            self._pool_unsubscribe()
            self._pool_unsubscribe = None
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    async def close(self) -> None:
        """Stop and wait for outstanding background work."""
        self.stop()
        if self._focus_task is not None:
            await asyncio.gather(self._focus_task, return_exceptions=True)
            self._focus_task = None
        await self.wait_idle()

    async def wait_idle(self) -> None:
        """Wait until no background tasks (reports, generation) remain."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _subscribe_pool(self) -> None:
        self._pool_unsubscribe = self.backend.pool.subscribe_pool(
            self.active_subject, self.on_pool_update
        )

    # =========================================================================
    # Push handlers
    # =========================================================================

    def _on_user_state(self, data: dict[str, Any]) -> None:
        self.on_exclusion_state_update(ExclusionState.from_dict(data))

    def on_exclusion_state_update(self, state: ExclusionState) -> None:
        """Store the snapshot; it is applied on the next pool pass."""
        self.exclusions.update(state)

    def on_pool_update(self, records: PoolRecords) -> None:
        """Handle a fresh pool snapshot (newest first)."""
        self._pool = parse_pool(records)
        self._refresh()

    def _refresh(self) -> None:
        fresh = {item.id: item for item in self._pool}
        self._known.update(fresh)
        visible_pool = self.exclusions.filter_pool(self._pool)

        self.delivered = [
            fresh.get(item.id, item)
            for item in self.delivered
            if not self.exclusions.is_excluded(item)
        ]

        unseen = [item for item in visible_pool if item.id not in self._ever_delivered]
        general, quiz, retry = self.exclusions.partition(unseen)
        result = self.interleaver.interleave(general, quiz, retry, self._trailing_run)

        self.delivered.extend(result.items)
        self._ever_delivered.update(item.id for item in result.items)
        self._trailing_run = result.trailing_run
        self.pending_quiz = result.held_quiz
        self.pending_retry = result.held_retry

        for item_id, ledger in self.ledgers.items():
            if item_id in fresh:
                ledger.sync(fresh[item_id])

        self.loading = False
        if result.items:
            logger.debug(
                f"Appended {len(result.items)} items ({result.quiz_count} quiz), "
                f"{len(self.delivered)} delivered"
            )

        # Empty pool, or every pooled item was already delivered earlier
        if not visible_pool or not self.delivered:
            self._spawn(self.request_more())

    # =========================================================================
    # Subject selection
    # =========================================================================

    def generation_context(self) -> GenerationContext:
        return GenerationContext(
            user_id=self.user_id,
            active_subject=self.active_subject,
            difficulty_override=self.difficulty_override,
            enrolled=tuple(self.enrolled),
        )

    def set_active_subject(self, subject: str | None, difficulty: str | None = None) -> None:
        """
        Switch the feed to another subject (None = "for you").

        Delivered and pending items are reset and the pool subscription
        is re-opened with the new filter.
        """
        if subject == self.active_subject and difficulty == self.difficulty_override:
            return

        logger.info(f"Switching feed subject: {self.active_subject} -> {subject}")
        self.active_subject = subject
        self.difficulty_override = difficulty

        self.tracker.close()
        self.delivered = []
        self.pending_quiz, self.pending_retry = [], []
        self._pool = []
        self._trailing_run = 0
        self.loading = True

        if self._pool_unsubscribe is not None:
            self._pool_unsubscribe()
            self._subscribe_pool()

    def apply_focus_override(self, subject: str) -> None:
        """Steer the feed to a class in progress and refill immediately."""
        self.set_active_subject(subject)
        if not self.is_generating:
            self._spawn(self.request_more())

    async def request_more(self) -> bool:
        """Trigger generation with the current subject context."""
        return await self.trigger.trigger(self.generation_context())

    # =========================================================================
    # Viewport
    # =========================================================================

    def observe(self, item_id: str, visible_fraction: float) -> ViewState:
        """
        Feed a visibility sample for a delivered item.

        Entering an item at or past 75% depth of the delivered sequence
        triggers a refill. Repeat samples of the current item do not.
        """
        item = self._known.get(item_id)
        if item is None:
            logger.debug(f"Ignoring visibility sample for unknown item {item_id}")
            return ViewState.OFFSCREEN

        previous = self.tracker.current
        state = self.tracker.observe(item, visible_fraction)
        entered = state is ViewState.INTERSECTING and (previous is None or previous.id != item_id)

        if entered and not self.is_generating:
            index = self.index_of(item_id)
            if index is not None and should_trigger_at(
                index,
                len(self.delivered),
                depth=self.config.trigger_depth,
                min_items=self.config.trigger_min_items,
            ):
                self._spawn(self.request_more())

        return state

    def index_of(self, item_id: str) -> int | None:
        for index, item in enumerate(self.delivered):
            if item.id == item_id:
                return index
        return None

    def _on_signal(self, signal: EngagementSignal) -> None:
        report = EngagementReport(
            user_id=self.user_id,
            item_id=signal.item_id,
            topic=signal.topic,
            kind=signal.kind,
            duration_ms=signal.duration_ms,
        )
        self._spawn(self._report(report))

    async def _report(self, report: EngagementReport) -> None:
        try:
            await self.backend.engagement.report(report)
        except Exception as e:
            logger.warning(f"Engagement signal {report.kind.value} for {report.item_id} dropped: {e}")

    # =========================================================================
    # Interactions
    # =========================================================================

    async def answer_quiz(self, item_id: str, option_index: int) -> bool:
        """
        Answer a delivered quiz. Only the first answer per item counts.

        Returns:
            Whether the answer was correct
        """
        if item_id in self._quiz_answers:
            return self._quiz_answers[item_id]

        item = self._known.get(item_id)
        if item is None:
            raise KeyError(f"Unknown feed item {item_id}")

        is_correct = item.check_answer(option_index)
        self._quiz_answers[item_id] = is_correct
        self.summary.record_quiz(is_correct)

        try:
            expertise = await self.backend.quizzes.record_quiz_answer(
                self.user_id, item_id, item.topic, is_correct
            )
            logger.debug(f"Quiz {item_id} answered ({'correct' if is_correct else 'wrong'}), expertise={expertise}")
        except Exception as e:
            logger.error(f"Failed to record quiz engagement for {item_id}: {e}")

        return is_correct

    def ledger_for(self, item_id: str) -> VoteLedger:
        """Get (or create and sync) the vote ledger for an item."""
        ledger = self.ledgers.get(item_id)
        if ledger is None:
            item = self._known.get(item_id)
            if item is None:
                raise KeyError(f"Unknown feed item {item_id}")
            ledger = VoteLedger(item_id, self.user_id, self.backend.votes)
            ledger.sync(item)
            self.ledgers[item_id] = ledger
        return ledger

    async def vote(self, item_id: str, direction: VoteDirection) -> bool:
        return await self.ledger_for(item_id).vote(direction)

    async def post_comment(self, item_id: str, text: str) -> bool:
        """Post a comment; blank text is ignored."""
        text = text.strip()
        if not text:
            return False
        try:
            await self.backend.comments.add_comment(item_id, self.user_id, text)
        except Exception as e:
            logger.error(f"Failed to post comment on {item_id}: {e}")
            return False
        return True

    # =========================================================================
    # Background work
    # =========================================================================

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.warning("No running event loop; dropping background work")
            return None
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
