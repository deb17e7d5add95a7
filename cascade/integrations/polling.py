"""
Polling subscriptions over the feed API.

Stands in for live document-store listeners: each subscription runs an
asyncio task that re-reads its query every interval and invokes the
callback whenever the result changes. A failed read or a failing
callback is logged and the task keeps polling.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from loguru import logger

from cascade.errors import FeedApiError
from cascade.feed.protocols import PoolCallback, Unsubscribe, UserStateCallback

if TYPE_CHECKING:
    from .feed_api_client import FeedApiClient


class PollingFeedSource:
    """Pool and user-state subscriptions backed by periodic GETs."""

    def __init__(self, client: FeedApiClient, interval_seconds: float = 5.0):
        self.client = client
        self.interval_seconds = interval_seconds
        self._tasks: set[asyncio.Task] = set()

    def subscribe_pool(self, subject: str | None, callback: PoolCallback) -> Unsubscribe:
        return self._start(
            f"pool:{subject or '*'}",
            lambda: self.client.fetch_pool(subject),
            callback,
        )

    def subscribe_user_state(self, user_id: str, callback: UserStateCallback) -> Unsubscribe:
        return self._start(
            f"user:{user_id}",
            lambda: self.client.fetch_user_state(user_id),
            callback,
        )

    def _start(
        self,
        name: str,
        fetch: Callable[[], Awaitable[Any]],
        callback: Callable[[Any], None],
    ) -> Unsubscribe:
        task = asyncio.get_running_loop().create_task(self._poll(name, fetch, callback))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task.cancel

    async def _poll(
        self,
        name: str,
        fetch: Callable[[], Awaitable[Any]],
        callback: Callable[[Any], None],
    ) -> None:
        last: Any = None
        first = True
        while True:
            try:
                result = await fetch()
            except FeedApiError as e:
                logger.warning(f"Polling {name} failed: {e}")
            except Exception:
                logger.exception(f"Polling {name} failed unexpectedly")
            else:
                if first or result != last:
                    last, first = result, False
                    try:
                        callback(result)
                    except Exception:
                        logger.exception(f"Subscriber for {name} raised")
            await asyncio.sleep(self.interval_seconds)

    async def close(self) -> None:
        """Cancel all polling tasks."""
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
