"""
Unit tests for the viewport tracker and dwell signals.
"""

import pytest

from cascade.feed.protocols import EngagementKind
from cascade.feed.summary import SessionSummary
from cascade.feed.viewport import ViewportTracker, ViewState


@pytest.fixture
def signals():
    return []


@pytest.fixture
def summary():
    return SessionSummary()


@pytest.fixture
def tracker(signals, summary, clock):
    return ViewportTracker(signals.append, summary=summary, clock=clock)


def kinds(signals):
    return [(s.kind, s.item_id) for s in signals]


class TestVisibility:
    """Threshold and state transitions."""

    def test_below_threshold_is_offscreen(self, tracker, item_factory, signals):
        """89% occupancy does not count as in view."""
        item = item_factory("post")

        assert tracker.observe(item, 0.89) is ViewState.OFFSCREEN
        assert signals == []

    def test_at_threshold_is_intersecting(self, tracker, item_factory, signals):
        """90% occupancy enters the item and emits viewed."""
        item = item_factory("post")

        assert tracker.observe(item, 0.9) is ViewState.INTERSECTING
        assert tracker.current is item
        assert kinds(signals) == [(EngagementKind.VIEWED, item.id)]

    def test_repeated_samples_do_not_restart(self, tracker, item_factory, clock, signals):
        """Staying in view keeps the original start time."""
        item = item_factory("post")
        tracker.observe(item, 1.0)
        clock.advance(2000)
        tracker.observe(item, 0.95)
        clock.advance(1000)
        tracker.observe(item, 0.1)

        assert kinds(signals) == [(EngagementKind.VIEWED, item.id)]

    def test_entering_new_item_ends_current(self, tracker, item_factory, clock, signals):
        """Only one item is current; the previous one is ended first."""
        first, second = item_factory("post"), item_factory("quiz")
        tracker.observe(first, 1.0)
        clock.advance(500)
        tracker.observe(second, 1.0)

        assert tracker.current is second
        assert tracker.state_of(first.id) is ViewState.OFFSCREEN
        assert kinds(signals) == [
            (EngagementKind.VIEWED, first.id),
            (EngagementKind.AVOIDED, first.id),
            (EngagementKind.VIEWED, second.id),
        ]


class TestSignals:
    """Viewed and avoided signal rules."""

    def test_viewed_fires_once(self, tracker, item_factory, clock, signals):
        """Re-entering an item never re-emits viewed."""
        item = item_factory("post")
        for _ in range(3):
            tracker.observe(item, 1.0)
            clock.advance(3000)
            tracker.observe(item, 0.0)

        viewed = [s for s in signals if s.kind is EngagementKind.VIEWED]
        assert len(viewed) == 1
        assert tracker.has_viewed(item.id)

    def test_short_dwell_is_avoided(self, tracker, item_factory, clock, signals):
        """2400ms dwell emits avoided with the duration."""
        item = item_factory("post", topic="mitosis")
        tracker.observe(item, 1.0)
        clock.advance(2400)
        tracker.observe(item, 0.2)

        avoided = signals[-1]
        assert avoided.kind is EngagementKind.AVOIDED
        assert avoided.topic == "mitosis"
        assert avoided.duration_ms == 2400

    def test_long_dwell_is_not_avoided(self, tracker, item_factory, clock, signals):
        """2600ms dwell emits nothing on exit."""
        item = item_factory("post")
        tracker.observe(item, 1.0)
        clock.advance(2600)
        tracker.observe(item, 0.2)

        assert kinds(signals) == [(EngagementKind.VIEWED, item.id)]

    def test_close_ends_current(self, tracker, item_factory, clock, signals):
        """Teardown ends the current view."""
        item = item_factory("post")
        tracker.observe(item, 1.0)
        clock.advance(100)
        tracker.close()

        assert tracker.current is None
        assert signals[-1].kind is EngagementKind.AVOIDED

    def test_close_without_current_is_noop(self, tracker, signals):
        """Closing an idle tracker emits nothing."""
        tracker.close()
        assert signals == []

    def test_custom_threshold(self, item_factory, clock):
        """The avoided threshold is configurable."""
        signals = []
        tracker = ViewportTracker(signals.append, clock=clock, avoided_dwell_ms=1000)
        item = item_factory("post")
        tracker.observe(item, 1.0)
        clock.advance(1500)
        tracker.close()

        assert [s.kind for s in signals] == [EngagementKind.VIEWED]


class TestSummaryRecording:
    """Dwell bookkeeping in the session summary."""

    def test_short_dwell_not_recorded(self, tracker, summary, item_factory, clock):
        """Views under two seconds are not interactions."""
        item = item_factory("post")
        tracker.observe(item, 1.0)
        clock.advance(1999)
        tracker.close()

        assert summary.interactions == []
        assert summary.avoided_topics == [item.topic]

    def test_engaged_topic_recorded(self, tracker, summary, item_factory, clock):
        """Long dwells count as engaged topics and subject time."""
        item = item_factory("post", topic="osmosis", subject="Biology")
        tracker.observe(item, 1.0)
        clock.advance(4000)
        tracker.close()

        assert summary.engaged_topics == ["osmosis"]
        assert summary.subject_dwell_ms["Biology"] == 4000
        assert len(summary.interactions) == 1
