"""
Feed API Client

HTTP client for the feed backend routes (generation, engagement tracking,
quiz engagement, votes and comments).

Usage:
    async with FeedApiClient(ApiConfig(base_url="http://localhost:3000")) as client:
        await client.generate(user_id, "Biology", "beginner")
        await client.report(EngagementReport(...))
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel

from cascade.errors import FeedApiError
from cascade.feed.protocols import EngagementReport, FeedBackend, PoolRecords

from .polling import PollingFeedSource


class ApiConfig(BaseModel):
    """Configuration for the feed backend API."""

    base_url: str = "http://localhost:3000"
    api_key: str | None = None
    timeout_seconds: float = 30.0
    poll_interval_seconds: float = 5.0

    # Endpoints
    generate_endpoint: str = "/api/generate-feed"
    engagement_endpoint: str = "/api/track-engagement"
    quiz_endpoint: str = "/api/quiz-engagement"
    vote_endpoint: str = "/api/feeds/{item_id}/vote"
    comments_endpoint: str = "/api/feeds/{item_id}/comments"
    feeds_endpoint: str = "/api/feeds"
    user_state_endpoint: str = "/api/users/{user_id}/state"

    @classmethod
    def from_settings(cls, settings: Any) -> ApiConfig:
        return cls(
            base_url=settings.api_base_url,
            api_key=settings.api_key,
            timeout_seconds=settings.api_timeout_seconds,
            poll_interval_seconds=settings.poll_interval_seconds,
        )


class FeedApiClient:
    """
    HTTP client for the feed backend.

    Supports:
    - Generation requests (raise FeedApiError on failure)
    - Engagement reports (best effort, failures logged)
    - Quiz engagement (retry set and expertise updates)
    - Vote persistence (False on failure, caller rolls back)
    - Comments
    - Pool and user-state reads for polling
    """

    def __init__(self, config: ApiConfig, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        headers = {"Content-Type": "application/json"}
        if config.api_key:
            headers["X-API-Key"] = config.api_key

        self.client = httpx.AsyncClient(
            base_url=config.base_url,
            headers=headers,
            timeout=httpx.Timeout(config.timeout_seconds),
            follow_redirects=True,
            transport=transport,
        )

    async def __aenter__(self) -> "FeedApiClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self.client.post(path, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FeedApiError(
                f"POST {path} returned {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            raise FeedApiError(f"Connection error on POST {path}: {e}") from e

        if not response.content:
            return {}
        return self._decode(response, f"POST {path}")

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            response = await self.client.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FeedApiError(
                f"GET {path} returned {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            raise FeedApiError(f"Connection error on GET {path}: {e}") from e
        return self._decode(response, f"GET {path}")

    @staticmethod
    def _decode(response: httpx.Response, label: str) -> dict[str, Any]:
        """Parse a JSON object body; anything else is a FeedApiError."""
        try:
            data = response.json()
        except ValueError as e:
            raise FeedApiError(f"{label} returned a non-JSON body", status_code=response.status_code) from e
        if not isinstance(data, dict):
            raise FeedApiError(
                f"{label} returned {type(data).__name__}, expected an object",
                status_code=response.status_code,
            )
        return data

    # =========================================================================
    # Generation
    # =========================================================================

    async def generate(self, user_id: str, subject: str, difficulty: str) -> None:
        """
        Request a batch of new items for a subject.

        Raises:
            FeedApiError: On transport or HTTP failure
        """
        await self._post(
            self.config.generate_endpoint,
            {"userId": user_id, "subject": subject, "difficulty": difficulty},
        )
        logger.debug(f"Generation requested for {user_id}: {subject} ({difficulty})")

    # =========================================================================
    # Engagement
    # =========================================================================

    async def report(self, report: EngagementReport) -> None:
        """Send a viewed/avoided signal. Failures are logged, never raised."""
        try:
            await self._post(self.config.engagement_endpoint, report.to_dict())
        except FeedApiError as e:
            logger.warning(f"Engagement report for {report.item_id} failed: {e}")

    async def record_quiz_answer(
        self,
        user_id: str,
        item_id: str,
        topic: str,
        is_correct: bool,
    ) -> str | None:
        """
        Record a quiz answer.

        Returns:
            The learner's updated expertise for the topic, if reported
        """
        data = await self._post(
            self.config.quiz_endpoint,
            {"userId": user_id, "feedId": item_id, "topic": topic, "isCorrect": is_correct},
        )
        return data.get("expertise")

    # =========================================================================
    # Votes & Comments
    # =========================================================================

    async def apply_vote_delta(
        self,
        item_id: str,
        user_id: str,
        delta_up: int,
        delta_down: int,
        new_vote: str | None,
    ) -> bool:
        try:
            await self._post(
                self.config.vote_endpoint.format(item_id=item_id),
                {
                    "userId": user_id,
                    "upvotes": delta_up,
                    "downvotes": delta_down,
                    "vote": new_vote,
                },
            )
        except FeedApiError as e:
            logger.error(f"Vote persistence failed for {item_id}: {e}")
            return False
        return True

    async def add_comment(self, item_id: str, user_id: str, text: str) -> None:
        await self._post(
            self.config.comments_endpoint.format(item_id=item_id),
            {"userId": user_id, "text": text},
        )

    # =========================================================================
    # Reads
    # =========================================================================

    async def fetch_pool(self, subject: str | None = None) -> PoolRecords:
        """Fetch the item pool (newest first) as (id, record) pairs."""
        params = {"subject": subject} if subject else None
        data = await self._get(self.config.feeds_endpoint, params=params)

        records: PoolRecords = []
        for raw in data.get("feeds") or []:
            if not isinstance(raw, dict):
                logger.debug(f"Skipping non-object pool entry: {raw!r}")
                continue
            record = dict(raw)
            item_id = record.pop("id", None)
            if item_id:
                records.append((item_id, record))
        return records

    async def fetch_user_state(self, user_id: str) -> dict[str, Any]:
        return await self._get(self.config.user_state_endpoint.format(user_id=user_id))

    def as_backend(self, poll_interval_seconds: float | None = None) -> FeedBackend:
        """Bundle this client with a polling source as a feed backend."""
        source = PollingFeedSource(
            self,
            interval_seconds=poll_interval_seconds or self.config.poll_interval_seconds,
        )
        return FeedBackend(
            pool=source,
            user_state=source,
            generator=self,
            engagement=self,
            votes=self,
            quizzes=self,
            comments=self,
        )
