"""
Session Summary.

Collects what the learner genuinely engaged with during one feed session:
topics dwelt on, per-subject time, quiz results and avoided topics.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime

from .items import FeedItem

XP_PER_TOPIC = 15
XP_PER_CORRECT_QUIZ = 10
MIN_INTERACTION_MS = 2000


@dataclass
class Interaction:
    """A recorded view of one item."""

    item_id: str
    subject: str | None
    duration_ms: int
    timestamp: datetime = field(default_factory=datetime.now)


class SessionSummary:
    """Engagement recap for one session."""

    def __init__(self):
        self.started_at = datetime.now()
        self.interactions: list[Interaction] = []
        self.engaged_topics: list[str] = []
        self.avoided_topics: list[str] = []
        self.subject_dwell_ms: Counter[str] = Counter()
        self.quiz_correct = 0
        self.quiz_incorrect = 0

    def record_view(self, item: FeedItem, duration_ms: int) -> None:
        """Log a view; dwells under two whole seconds are ignored."""
        if duration_ms < MIN_INTERACTION_MS:
            return
        self.interactions.append(Interaction(item.id, item.subject, duration_ms))
        if item.subject:
            self.subject_dwell_ms[item.subject] += duration_ms

    def record_engaged(self, topic: str) -> None:
        """Note a topic the learner stayed on past the avoidance threshold."""
        if topic and topic not in self.engaged_topics:
            self.engaged_topics.append(topic)

    def record_avoided(self, topic: str) -> None:
        self.avoided_topics.append(topic)

    def record_quiz(self, is_correct: bool) -> None:
        if is_correct:
            self.quiz_correct += 1
        else:
            self.quiz_incorrect += 1

    @property
    def xp_estimate(self) -> int:
        return len(self.engaged_topics) * XP_PER_TOPIC

    @property
    def quiz_xp(self) -> int:
        return self.quiz_correct * XP_PER_CORRECT_QUIZ

    @property
    def top_subject(self) -> str | None:
        if not self.subject_dwell_ms:
            return None
        return self.subject_dwell_ms.most_common(1)[0][0]

    def as_dict(self) -> dict:
        return {
            "engaged_topics": list(self.engaged_topics),
            "avoided_topics": len(self.avoided_topics),
            "interactions": len(self.interactions),
            "top_subject": self.top_subject,
            "quiz_correct": self.quiz_correct,
            "quiz_incorrect": self.quiz_incorrect,
            "xp": self.xp_estimate + self.quiz_xp,
        }
