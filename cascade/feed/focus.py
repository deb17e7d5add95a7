"""
Focus Interrupter: Timetable-Driven Subject Override.

Polls the learner's class timetable (once per minute by default). When a
scheduled class is in progress, the feed is steered to that class's
subject, once per session.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from loguru import logger

from cascade.errors import InvalidScheduleError

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


@dataclass(frozen=True)
class ScheduleEntry:
    """One weekly class slot. Times are zero-padded "HH:MM"."""

    subject: str
    day: str
    start_time: str
    end_time: str

    def __post_init__(self) -> None:
        for value in (self.start_time, self.end_time):
            if not _TIME_RE.match(value):
                raise InvalidScheduleError(f"Invalid time {value!r} for {self.subject}")
        if self.day.lower() not in {d.lower() for d in WEEKDAYS}:
            raise InvalidScheduleError(f"Invalid day {self.day!r} for {self.subject}")

    def is_active(self, now: datetime) -> bool:
        current_day = WEEKDAYS[now.weekday()]
        current_time = now.strftime("%H:%M")
        return (
            self.day.lower() == current_day.lower()
            and self.start_time <= current_time <= self.end_time
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScheduleEntry:
        try:
            return cls(
                subject=data["subject"],
                day=data["day"],
                start_time=data["startTime"],
                end_time=data["endTime"],
            )
        except KeyError as e:
            raise InvalidScheduleError(f"Schedule entry missing {e.args[0]}") from None


def find_active_class(
    schedule: Iterable[ScheduleEntry],
    now: datetime,
) -> ScheduleEntry | None:
    """Return the first class in progress at ``now``."""
    for entry in schedule:
        if entry.is_active(now):
            return entry
    return None


class FocusMonitor:
    """
    Watches the timetable and fires one intervention per session.

    After the first intervention the monitor is dismissed and stops
    checking.
    """

    def __init__(
        self,
        on_intervention: Callable[[str], None],
        poll_seconds: float = 60.0,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.on_intervention = on_intervention
        self.poll_seconds = poll_seconds
        self.clock = clock
        self.schedule: list[ScheduleEntry] = []
        self.active_class: ScheduleEntry | None = None
        self.dismissed = False
        self._stopped = asyncio.Event()

    def update_schedule(self, entries: Iterable[ScheduleEntry]) -> None:
        """Replace the timetable (pushed from the user's schedule document)."""
        self.schedule = list(entries)
        logger.debug(f"Timetable updated: {len(self.schedule)} entries")

    def check(self, now: datetime | None = None) -> ScheduleEntry | None:
        """
        Check the timetable once.

        Returns:
            The class that triggered an intervention, or None
        """
        if self.dismissed or not self.schedule:
            return None

        self.active_class = find_active_class(self.schedule, now or self.clock())
        if self.active_class is None:
            return None

        self.dismissed = True
        logger.info(f"Class in progress: steering feed to {self.active_class.subject}")
        self.on_intervention(self.active_class.subject)
        return self.active_class

    async def run(self) -> None:
        """Poll until stopped or dismissed."""
        self._stopped.clear()
        while not self.dismissed and not self._stopped.is_set():
            if self.check() is not None:
                break
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.poll_seconds)
            except asyncio.TimeoutError:
                continue

    def stop(self) -> None:
        self._stopped.set()
