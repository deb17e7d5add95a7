"""
Integration tests: full scroll sessions against the in-memory backend.
"""

import json

import pytest
from typer.testing import CliRunner

from cascade.cli.feed_cli import app, quiz_gaps, run_simulation

runner = CliRunner()


class TestScrollSession:
    """End-to-end scrolling through several generated batches."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("seed", [1, 2, 3])
    async def test_spacing_and_uniqueness(self, seed):
        """Across batches quizzes stay spaced and no id repeats."""
        session, seen, store = await run_simulation(
            "u1", "Biology", scrolls=80, seed=seed, batch_size=12, skim_rate=0.3, accuracy=0.5
        )

        ids = [item.id for item in seen]
        assert len(ids) == 80
        assert len(set(ids)) == len(ids)
        assert all(gap >= 7 for gap in quiz_gaps(seen))
        assert any(item.is_quiz for item in seen)
        assert session.trigger.requests_issued > 1

    @pytest.mark.asyncio
    async def test_remote_state_reflects_session(self):
        """Viewed ids, retry flags and XP land in the user document."""
        session, seen, store = await run_simulation(
            "u1", None, scrolls=40, seed=4, batch_size=12, skim_rate=0.0, accuracy=0.0
        )

        user = store.get_user("u1")
        general_seen = {item.id for item in seen if not item.is_quiz}
        quizzes_seen = {item.id for item in seen if item.is_quiz}

        assert general_seen <= set(user["viewedIds"])
        assert set(user["retryIds"]) == quizzes_seen
        assert user["xp"] == 0
        assert session.summary.quiz_incorrect == len(quizzes_seen)

    @pytest.mark.asyncio
    async def test_for_you_feed_uses_generic_subject(self):
        """Without a subject or enrollments the generic subject is generated."""
        session, seen, store = await run_simulation(
            "u1", None, scrolls=5, seed=5, batch_size=12, skim_rate=0.0, accuracy=1.0
        )

        assert {item.subject for item in seen} == {"general knowledge"}
        assert session.summary.xp_estimate == 15 * len(session.summary.engaged_topics)


class TestCli:
    """Smoke tests for the cascade CLI."""

    def test_simulate(self):
        """simulate prints the sequence and passes the spacing check."""
        result = runner.invoke(app, ["simulate", "--scrolls", "30", "--subject", "Biology"])

        assert result.exit_code == 0
        assert "Delivered Sequence" in result.output
        assert "OK" in result.output

    def test_focus_active_class(self, tmp_path):
        """focus reports the class in progress."""
        timetable = tmp_path / "timetable.json"
        timetable.write_text(json.dumps([
            {"subject": "Chemistry", "day": "Monday", "startTime": "10:00", "endTime": "11:00"},
        ]))

        result = runner.invoke(app, ["focus", str(timetable), "--at", "2026-10-19T10:30"])

        assert result.exit_code == 0
        assert "Chemistry" in result.output

    def test_focus_no_class(self, tmp_path):
        """focus says so when nothing is scheduled."""
        timetable = tmp_path / "timetable.json"
        timetable.write_text("[]")

        result = runner.invoke(app, ["focus", str(timetable), "--at", "2026-10-19T10:30"])

        assert result.exit_code == 0
        assert "No class in progress" in result.output

    def test_focus_bad_timetable(self, tmp_path):
        """Invalid entries exit with an error."""
        timetable = tmp_path / "timetable.json"
        timetable.write_text(json.dumps([{"subject": "Art", "day": "Monday", "startTime": "9am", "endTime": "10:00"}]))

        result = runner.invoke(app, ["focus", str(timetable)])

        assert result.exit_code == 1
