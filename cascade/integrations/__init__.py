"""HTTP collaborators for the feed engine."""

from .feed_api_client import ApiConfig, FeedApiClient
from .polling import PollingFeedSource

__all__ = ["ApiConfig", "FeedApiClient", "PollingFeedSource"]
