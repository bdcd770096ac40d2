"""Streak bookkeeping for habit completions and the periodic maintenance sweep."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, Iterable, Optional

from ..domain.repositories.habit import HabitStore
from ..models.habit import Habit
from .streaks import breaks_streak, days_between, is_due, utc_date

logger = logging.getLogger("apto.tracker")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class CompletionResult:
    """Outcome of recording a completion."""

    completion_id: int
    current_streak: int
    longest_streak: int


def next_streak(
    frequency,
    last_completed: Optional[datetime],
    current_streak: int,
    completion_date: date,
) -> int:
    """Streak value after a completion on ``completion_date``.

    A second completion on the same day leaves the streak unchanged; a missed
    scheduled day restarts it at 1.
    """

    if last_completed is None:
        return 1
    if utc_date(last_completed) == completion_date:
        return current_streak
    if breaks_streak(frequency, last_completed, completion_date):
        return 1
    return current_streak + 1


def missed_since(frequency, last_completed: datetime, today: date) -> bool:
    """True when a due day passed between the last completion and ``today``."""

    return any(
        is_due(frequency, day, last_completed)
        for day in days_between(utc_date(last_completed), today)
    )


def due_habits(habits: Iterable[Habit], today: date) -> list[Habit]:
    """Active habits that are scheduled and still open on ``today``."""

    return [
        habit
        for habit in habits
        if habit.is_active
        and habit.is_within_schedule(today)
        and is_due(habit.frequency(), today, habit.last_completed)
    ]


class StreakTracker:
    """Applies streak rules on top of a :class:`HabitStore`."""

    def __init__(self, store: HabitStore, *, clock: Callable[[], datetime] = _utc_now):
        self.store = store
        self.clock = clock

    def record_completion(
        self,
        habit_id: int,
        *,
        value: Optional[float] = None,
        notes: Optional[str] = None,
        mood: Optional[int] = None,
        difficulty: Optional[int] = None,
        completed_at: Optional[datetime] = None,
    ) -> CompletionResult:
        """Store a completion and advance, keep or reset the habit's streak.

        The insert and the habit update share a transaction, so a failure in
        either leaves both the completion log and the habit untouched.
        """

        moment = completed_at or self.clock()
        if moment.tzinfo is None:
            raise ValueError("completed_at must be timezone-aware")

        with self.store.atomic() as store:
            snapshot = store.load_habit_for_streak(habit_id)
            last = snapshot.last_completed
            if last is not None and moment < last:
                if completed_at is not None:
                    raise ValueError(
                        f"Completion at {moment.isoformat()} predates the last completion "
                        f"of habit {habit_id} ({last.isoformat()})"
                    )
                # Clock stepped backwards: log the completion, keep the streak as is.
                current = snapshot.current_streak
                latest = last
            else:
                current = next_streak(
                    snapshot.frequency, last, snapshot.current_streak, utc_date(moment)
                )
                latest = moment
            longest = max(snapshot.longest_streak, current)

            completion_id = store.insert_completion(
                habit_id, moment, value, notes, mood, difficulty
            )
            store.update_habit_streak_fields(habit_id, latest, current, longest)

        logger.info(
            "Added completion %s for habit %s, streak %s (longest %s)",
            completion_id,
            habit_id,
            current,
            longest,
        )
        return CompletionResult(completion_id, current, longest)

    def sweep(self, today: Optional[date] = None) -> set[int]:
        """Zero the current streak of every active habit that missed a due day.

        Returns the ids of habits whose streak was reset. Habits without a
        running streak are skipped, so a repeated sweep changes nothing.
        """

        today = today or utc_date(self.clock())
        reset: set[int] = set()

        with self.store.atomic() as store:
            for snapshot in store.load_active_habits_for_sweep():
                if snapshot.current_streak <= 0 or snapshot.last_completed is None:
                    continue
                if missed_since(snapshot.frequency, snapshot.last_completed, today):
                    store.reset_streak(snapshot.habit_id)
                    reset.add(snapshot.habit_id)
                    logger.info(
                        "Reset streak for habit %s due to missed days",
                        snapshot.habit_id,
                        extra={"previous_streak": snapshot.current_streak},
                    )

        logger.debug("Streak sweep for %s reset %d habit(s)", today.isoformat(), len(reset))
        return reset


__all__ = ["CompletionResult", "StreakTracker", "due_habits", "missed_since", "next_streak"]
