"""
Cascade: Feed Engine CLI.

Commands:
- cascade simulate  - Scroll a simulated feed against the in-memory store
- cascade focus     - Show which class in a timetable is in progress
- cascade generate  - Ask the configured backend for a new batch
"""
from __future__ import annotations

import asyncio
import json
import random
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import get_settings
from cascade.errors import FeedApiError, InvalidScheduleError
from cascade.feed import FeedConfig, FeedItem, FeedSession, ScheduleEntry, find_active_class
from cascade.feed.votes import VoteDirection
from cascade.integrations import ApiConfig, FeedApiClient
from cascade.logging_config import configure_logging
from cascade.store import InMemoryFeedStore, SyntheticGenerator


# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="cascade",
    help="Cascade: adaptive learning feed engine",
    no_args_is_help=True,
)
console = Console()

KIND_STYLES = {
    "summary": "blue",
    "post": "magenta",
    "visual_concept": "cyan",
    "quiz": "bold yellow",
}


class SimulatedClock:
    """Millisecond clock advanced manually by the simulation."""

    def __init__(self, start_ms: float = 0.0):
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, ms: float) -> None:
        self.now_ms += ms


def quiz_gaps(sequence: list[FeedItem]) -> list[int]:
    """General-item counts before each quiz in a delivered sequence."""
    gaps = []
    run = 0
    for item in sequence:
        if item.is_quiz:
            gaps.append(run)
            run = 0
        else:
            run += 1
    return gaps


# =============================================================================
# Simulation
# =============================================================================

async def run_simulation(
    user_id: str,
    subject: Optional[str],
    scrolls: int,
    seed: int,
    batch_size: int,
    skim_rate: float,
    accuracy: float,
) -> tuple[FeedSession, list[FeedItem], InMemoryFeedStore]:
    """
    Scroll through ``scrolls`` items, dwelling on each and answering quizzes.

    Returns:
        The closed session, the items in the order they were seen, and
        the store holding the final remote state
    """
    settings = get_settings()
    rng = random.Random(seed)
    clock = SimulatedClock()

    store = InMemoryFeedStore()
    store.ensure_user(user_id)
    generator = SyntheticGenerator(store, batch_size=batch_size, rng=random.Random(seed))
    session = FeedSession(
        user_id,
        store.as_backend(generator),
        subject=subject,
        config=FeedConfig.from_settings(settings),
        rng=rng,
        clock=clock,
    )

    session.start()
    await session.wait_idle()

    seen: list[FeedItem] = []
    shown: set[str] = set()
    for _ in range(scrolls):
        upcoming = next((item for item in session.delivered if item.id not in shown), None)
        if upcoming is None:
            await session.request_more()
            await session.wait_idle()
            upcoming = next((item for item in session.delivered if item.id not in shown), None)
            if upcoming is None:
                break

        session.observe(upcoming.id, 1.0)
        seen.append(upcoming)
        shown.add(upcoming.id)

        skimmed = rng.random() < skim_rate
        clock.advance(rng.uniform(400, 2400) if skimmed else rng.uniform(3000, 9000))

        if upcoming.is_quiz:
            options = upcoming.payload["options"]
            correct = upcoming.payload["correctIndex"]
            answer = correct if rng.random() < accuracy else (correct + 1) % len(options)
            await session.answer_quiz(upcoming.id, answer)
        elif not skimmed and rng.random() < 0.2:
            await session.vote(upcoming.id, VoteDirection.UP)

        await session.wait_idle()

    await session.close()
    return session, seen, store


@app.command()
def simulate(
    user: str = typer.Option("demo-user", "--user", "-u", help="Learner id"),
    subject: Optional[str] = typer.Option(
        None,
        "--subject", "-s",
        help="Subject to study (omit for the 'for you' feed)",
    ),
    scrolls: int = typer.Option(40, "--scrolls", "-n", help="Items to scroll past"),
    seed: int = typer.Option(7, "--seed", help="Random seed"),
    batch_size: int = typer.Option(12, "--batch-size", "-b", help="Items per generation batch"),
    skim_rate: float = typer.Option(0.3, "--skim-rate", help="Share of items skimmed quickly"),
    accuracy: float = typer.Option(0.7, "--accuracy", help="Share of quizzes answered correctly"),
) -> None:
    """Run a simulated scroll session against the in-memory store."""
    session, seen, store = asyncio.run(
        run_simulation(user, subject, scrolls, seed, batch_size, skim_rate, accuracy)
    )

    table = Table(title="Delivered Sequence")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Kind")
    table.add_column("Topic")
    table.add_column("Score", justify="right")

    for index, item in enumerate(seen, start=1):
        color = KIND_STYLES.get(item.kind.value, "white")
        score = session.ledgers[item.id].score if item.id in session.ledgers else item.score
        table.add_row(str(index), f"[{color}]{item.kind.value}[/{color}]", item.topic, str(score))

    console.print(table)

    gaps = quiz_gaps(seen)
    min_gap = session.config.min_quiz_gap
    spacing_ok = all(gap >= min_gap for gap in gaps)
    verdict = "[green]OK[/green]" if spacing_ok else "[red]VIOLATED[/red]"
    console.print(f"\nQuiz gaps: {gaps or '-'}  (minimum {min_gap}): {verdict}")

    summary = session.summary.as_dict()
    user_doc = store.get_user(user)
    console.print(Panel(
        f"Topics engaged: {len(summary['engaged_topics'])}\n"
        f"Avoided topics: {summary['avoided_topics']}\n"
        f"Quizzes: {summary['quiz_correct']}/{summary['quiz_correct'] + summary['quiz_incorrect']} correct\n"
        f"Top subject: {summary['top_subject'] or '-'}\n"
        f"XP estimate: {summary['xp']}\n"
        f"Generation requests: {session.trigger.requests_issued}\n"
        f"Flagged for retry: {len(user_doc.get('retryIds', []))}",
        title="Session Summary",
        border_style="green" if spacing_ok else "red",
    ))

    if not spacing_ok:
        raise typer.Exit(1)


# =============================================================================
# Focus
# =============================================================================

@app.command()
def focus(
    timetable: Path = typer.Argument(..., help="JSON file with a list of class entries"),
    at: Optional[str] = typer.Option(
        None,
        "--at",
        help="ISO timestamp to check instead of now (e.g. 2026-10-19T10:15)",
    ),
) -> None:
    """Show which class in a timetable is in progress."""
    try:
        raw = json.loads(timetable.read_text(encoding="utf-8"))
        entries = [ScheduleEntry.from_dict(entry) for entry in raw]
        now = datetime.fromisoformat(at) if at else datetime.now()
    except (OSError, json.JSONDecodeError, InvalidScheduleError, ValueError) as e:
        console.print(f"[red]Cannot read timetable: {e}[/red]")
        raise typer.Exit(1)

    active = find_active_class(entries, now)
    if active is None:
        console.print(f"[dim]No class in progress at {now:%A %H:%M}[/dim]")
        return

    console.print(Panel(
        f"[bold]{active.subject}[/bold]\n{active.day} {active.start_time}-{active.end_time}",
        title="Class in progress",
        border_style="yellow",
    ))


# =============================================================================
# Backend
# =============================================================================

@app.command()
def generate(
    user: str = typer.Option(..., "--user", "-u", help="Learner id"),
    subject: str = typer.Option(..., "--subject", "-s", help="Subject to generate for"),
    difficulty: str = typer.Option("beginner", "--difficulty", "-d", help="Difficulty tier"),
) -> None:
    """Request a new batch from the configured backend."""

    async def _generate() -> None:
        async with FeedApiClient(ApiConfig.from_settings(get_settings())) as client:
            await client.generate(user, subject, difficulty)

    try:
        asyncio.run(_generate())
    except FeedApiError as e:
        console.print(f"[red]Generation failed: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Generation requested: {subject} ({difficulty})[/green]")


# =============================================================================
# Entry Point
# =============================================================================

def main() -> None:
    """CLI entry point."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_file)

    app()


if __name__ == "__main__":
    main()
