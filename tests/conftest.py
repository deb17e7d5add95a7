"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import random
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from cascade.feed.items import FeedItem, FeedKind  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (in-memory backend)")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def rng():
    """Fixed-seed random source."""
    return random.Random(1234)


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock():
    """Fake millisecond clock starting at 0."""
    return FakeClock()


def make_record(kind: str = "post", topic: str = "photosynthesis", subject: str = "Biology", **extra):
    """Build a well-formed store record of the given kind."""
    payloads = {
        "summary": {"title": topic.title(), "points": ["one", "two"]},
        "post": {"hook": f"Why {topic}?", "content": f"All about {topic}."},
        "visual_concept": {
            "title": topic.title(),
            "analogy": "like a kitchen",
            "explanation": "because it cooks",
        },
        "quiz": {
            "question": f"What is {topic}?",
            "options": ["A", "B", "C", "D"],
            "correctIndex": 2,
            "explanation": "C is right",
        },
    }
    record = {"type": kind, "topic": topic, "subject": subject, **payloads[kind]}
    record.update(extra)
    return record


@pytest.fixture
def record_factory():
    """Factory for raw store records."""
    return make_record


@pytest.fixture
def item_factory():
    """Factory for parsed FeedItems with sequential ids."""
    counter = iter(range(1, 100_000))

    def _make(kind: str = "post", item_id: str | None = None, **kwargs) -> FeedItem:
        item_id = item_id or f"{kind}-{next(counter)}"
        return FeedItem.from_dict(item_id, make_record(kind, **kwargs))

    return _make


@pytest.fixture
def general_items(item_factory):
    """Twenty general items of mixed kinds."""
    kinds = [FeedKind.SUMMARY, FeedKind.POST, FeedKind.VISUAL_CONCEPT]
    return [item_factory(kinds[i % 3].value, item_id=f"g{i}", topic=f"topic {i}") for i in range(20)]


@pytest.fixture
def quiz_items(item_factory):
    """Five quiz items."""
    return [item_factory("quiz", item_id=f"q{i}", topic=f"quiz topic {i}") for i in range(5)]
