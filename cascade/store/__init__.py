"""In-process document store backing the feed engine."""

from .memory import InMemoryFeedStore, SyntheticGenerator

__all__ = ["InMemoryFeedStore", "SyntheticGenerator"]
