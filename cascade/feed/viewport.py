"""
Viewport Tracker and Dwell Signals.

Detects which single item is in view and emits engagement signals:
- viewed: first time an item enters the viewport in this session
- avoided: item left the viewport after a short dwell (< 2500ms)

Per-item state machine: Offscreen -> Intersecting -> Offscreen.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from .items import FeedItem
from .protocols import EngagementKind
from .summary import SessionSummary

AVOIDED_DWELL_MS = 2500
VISIBILITY_THRESHOLD = 0.9


def monotonic_ms() -> float:
    """Default clock: monotonic milliseconds."""
    return time.monotonic() * 1000


class ViewState(Enum):
    """Visibility state of the tracked item."""

    OFFSCREEN = "offscreen"
    INTERSECTING = "intersecting"


@dataclass(frozen=True)
class EngagementSignal:
    """A viewed/avoided signal emitted by the tracker."""

    kind: EngagementKind
    item_id: str
    topic: str
    duration_ms: int | None = None


class ViewportTracker:
    """
    Tracks the current item of one scroller and measures dwell time.

    Exactly one item is current at a time. The viewed signal fires at
    most once per item per tracker, however often the item re-enters.
    """

    def __init__(
        self,
        on_signal: Callable[[EngagementSignal], None],
        summary: SessionSummary | None = None,
        clock: Callable[[], float] = monotonic_ms,
        avoided_dwell_ms: int = AVOIDED_DWELL_MS,
        visibility_threshold: float = VISIBILITY_THRESHOLD,
    ):
        self.on_signal = on_signal
        self.summary = summary
        self.clock = clock
        self.avoided_dwell_ms = avoided_dwell_ms
        self.visibility_threshold = visibility_threshold

        self._current: FeedItem | None = None
        self._view_start: float | None = None
        self._viewed_ids: set[str] = set()

    @property
    def current(self) -> FeedItem | None:
        return self._current

    def state_of(self, item_id: str) -> ViewState:
        if self._current is not None and self._current.id == item_id:
            return ViewState.INTERSECTING
        return ViewState.OFFSCREEN

    def has_viewed(self, item_id: str) -> bool:
        return item_id in self._viewed_ids

    def observe(self, item: FeedItem, visible_fraction: float) -> ViewState:
        """
        Feed a visibility sample for an item.

        Args:
            item: The observed item
            visible_fraction: Share of the viewport the item occupies (0-1)

        Returns:
            The item's state after the sample
        """
        intersecting = visible_fraction >= self.visibility_threshold

        if intersecting:
            if self._current is not None and self._current.id == item.id:
                return ViewState.INTERSECTING
            if self._current is not None:
                self._end_current()
            self._begin(item)
            return ViewState.INTERSECTING

        if self._current is not None and self._current.id == item.id:
            self._end_current()
        return ViewState.OFFSCREEN

    def close(self) -> None:
        """End the current item, if any (scroller teardown)."""
        if self._current is not None:
            self._end_current()

    def _begin(self, item: FeedItem) -> None:
        self._current = item
        self._view_start = self.clock()

        if item.id not in self._viewed_ids:
            self._viewed_ids.add(item.id)
            self.on_signal(EngagementSignal(EngagementKind.VIEWED, item.id, item.topic))

    def _end_current(self) -> None:
        item = self._current
        started = self._view_start
        self._current = None
        self._view_start = None
        if item is None or started is None:
            return

        dwell_ms = int(self.clock() - started)

        if self.summary is not None:
            self.summary.record_view(item, dwell_ms)

        if dwell_ms < self.avoided_dwell_ms:
            logger.debug(f"Avoided {item.id} ({item.topic}) after {dwell_ms}ms")
            if self.summary is not None:
                self.summary.record_avoided(item.topic)
            self.on_signal(
                EngagementSignal(EngagementKind.AVOIDED, item.id, item.topic, dwell_ms)
            )
        elif self.summary is not None:
            self.summary.record_engaged(item.topic)
