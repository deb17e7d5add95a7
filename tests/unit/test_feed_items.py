"""
Unit tests for FeedItem parsing and validation.
"""

import pytest

from cascade.errors import MalformedFeedItemError
from cascade.feed.items import FeedItem, FeedKind, parse_pool


class TestFeedItemFromDict:
    """Tests for FeedItem.from_dict."""

    @pytest.mark.parametrize("kind", ["summary", "post", "visual_concept", "quiz"])
    def test_parses_every_kind(self, kind, record_factory):
        """Each kind parses with its required payload."""
        item = FeedItem.from_dict("item-1", record_factory(kind))

        assert item.id == "item-1"
        assert item.kind is FeedKind(kind)
        assert item.topic == "photosynthesis"
        assert item.subject == "Biology"

    def test_counters_default_to_zero(self, record_factory):
        """Missing counters default to zero and no votes."""
        item = FeedItem.from_dict("p1", record_factory("post"))

        assert item.upvotes == 0
        assert item.downvotes == 0
        assert item.comment_count == 0
        assert item.voted_by == {}

    def test_kind_field_is_accepted(self, record_factory):
        """'kind' works as an alias for 'type'."""
        record = record_factory("post")
        record["kind"] = record.pop("type")

        assert FeedItem.from_dict("p1", record).kind is FeedKind.POST

    def test_legacy_comments_counter(self, record_factory):
        """The older 'comments' counter maps to comment_count."""
        item = FeedItem.from_dict("p1", record_factory("post", comments=4))
        assert item.comment_count == 4

    def test_image_query_is_optional(self, record_factory):
        """imageQuery is kept when present."""
        item = FeedItem.from_dict("p1", record_factory("post", imageQuery="leaf macro"))
        assert item.payload["imageQuery"] == "leaf macro"
        assert "imageQuery" not in FeedItem.from_dict("p2", record_factory("post")).payload

    def test_missing_kind_raises(self, record_factory):
        """Records without a kind are malformed."""
        record = record_factory("post")
        del record["type"]

        with pytest.raises(MalformedFeedItemError, match="missing kind"):
            FeedItem.from_dict("p1", record)

    def test_unknown_kind_raises(self, record_factory):
        """Kinds outside the closed set are malformed."""
        with pytest.raises(MalformedFeedItemError, match="unknown kind"):
            FeedItem.from_dict("p1", record_factory("post", type="video"))

    def test_missing_payload_field_raises(self, record_factory):
        """A quiz without options is malformed."""
        record = record_factory("quiz")
        del record["options"]

        with pytest.raises(MalformedFeedItemError, match="options"):
            FeedItem.from_dict("q1", record)

    def test_correct_index_out_of_range_raises(self, record_factory):
        """correctIndex must point at an option."""
        with pytest.raises(MalformedFeedItemError, match="correctIndex"):
            FeedItem.from_dict("q1", record_factory("quiz", correctIndex=4))

    def test_negative_counter_raises(self, record_factory):
        """Counters cannot be negative."""
        with pytest.raises(MalformedFeedItemError, match="upvotes"):
            FeedItem.from_dict("p1", record_factory("post", upvotes=-1))

    def test_invalid_vote_value_raises(self, record_factory):
        """votedBy values must be 'up' or 'down'."""
        with pytest.raises(MalformedFeedItemError, match="invalid votes"):
            FeedItem.from_dict("p1", record_factory("post", votedBy={"u1": "sideways"}))

    def test_error_is_a_value_error(self):
        """MalformedFeedItemError can be caught as ValueError."""
        with pytest.raises(ValueError):
            FeedItem.from_dict("p1", {"type": "post"})


class TestFeedItemBehaviour:
    """Tests for FeedItem helpers."""

    def test_check_answer(self, item_factory):
        """Only the correct index is accepted."""
        quiz = item_factory("quiz")

        assert quiz.check_answer(2) is True
        assert quiz.check_answer(0) is False

    def test_check_answer_rejects_non_quiz(self, item_factory):
        """Answering a non-quiz item is an error."""
        with pytest.raises(ValueError):
            item_factory("post").check_answer(0)

    def test_score_and_vote_of(self, record_factory):
        """Score is up minus down; vote_of reads votedBy."""
        item = FeedItem.from_dict(
            "p1", record_factory("post", upvotes=5, downvotes=2, votedBy={"u1": "up"})
        )

        assert item.score == 3
        assert item.vote_of("u1") == "up"
        assert item.vote_of("u2") is None

    def test_to_dict_keeps_stored_shape(self, item_factory):
        """to_dict writes camelCase fields and the type."""
        data = item_factory("quiz", item_id="q1").to_dict()

        assert data["type"] == "quiz"
        assert data["correctIndex"] == 2
        assert data["commentCount"] == 0
        assert FeedItem.from_dict("q1", data).payload["options"] == ["A", "B", "C", "D"]


class TestParsePool:
    """Tests for parse_pool."""

    def test_skips_malformed_records(self, record_factory):
        """Malformed records are dropped; order is preserved."""
        records = [
            ("a", record_factory("post")),
            ("b", {"type": "quiz", "question": "?"}),
            ("c", record_factory("summary")),
        ]

        assert [item.id for item in parse_pool(records)] == ["a", "c"]

    def test_empty_pool(self):
        """An empty snapshot parses to an empty list."""
        assert parse_pool([]) == []
