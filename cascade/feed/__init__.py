"""
Feed engine: interleaving, adaptive generation and engagement tracking.

Components:
- FeedItem: generated learning unit (summary, post, visual concept, quiz)
- RetryExclusionTracker: viewed/retry exclusion sets
- FeedInterleaver: quiz spacing with randomized gaps
- GenerationTrigger: single-flight refill requests
- ViewportTracker: dwell-based viewed/avoided signals
- VoteLedger: optimistic voting with rollback
- FocusMonitor: timetable-driven subject override
- FeedSession: per-scroller orchestration
"""

from .exclusion import ExclusionState, RetryExclusionTracker
from .focus import FocusMonitor, ScheduleEntry, find_active_class
from .generation import (
    GenerationContext,
    GenerationTarget,
    GenerationTrigger,
    SubjectEnrollment,
    resolve_target,
    should_trigger_at,
)
from .interleaver import FeedInterleaver, InterleaveConfig, InterleaveResult
from .items import FeedItem, FeedKind, parse_pool
from .protocols import EngagementKind, EngagementReport, FeedBackend
from .session import FeedConfig, FeedSession
from .summary import SessionSummary
from .viewport import EngagementSignal, ViewportTracker, ViewState
from .votes import VoteDelta, VoteDirection, VoteLedger, VotePhase, compute_vote_delta

__all__ = [
    # Items
    "FeedItem",
    "FeedKind",
    "parse_pool",
    # Exclusion
    "ExclusionState",
    "RetryExclusionTracker",
    # Interleaving
    "FeedInterleaver",
    "InterleaveConfig",
    "InterleaveResult",
    # Generation
    "GenerationContext",
    "GenerationTarget",
    "GenerationTrigger",
    "SubjectEnrollment",
    "resolve_target",
    "should_trigger_at",
    # Viewport
    "EngagementSignal",
    "ViewportTracker",
    "ViewState",
    "SessionSummary",
    # Votes
    "VoteDelta",
    "VoteDirection",
    "VoteLedger",
    "VotePhase",
    "compute_vote_delta",
    # Focus
    "FocusMonitor",
    "ScheduleEntry",
    "find_active_class",
    # Session
    "EngagementKind",
    "EngagementReport",
    "FeedBackend",
    "FeedConfig",
    "FeedSession",
]
