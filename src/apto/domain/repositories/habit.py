"""Habit persistence protocol consumed by the streak and statistics services."""

from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterator, Optional, Protocol

from ...models.frequency import FrequencyPattern


@dataclass(slots=True)
class StreakSnapshot:
    """The habit fields the streak engine reads."""

    habit_id: int
    frequency: FrequencyPattern
    last_completed: Optional[datetime]
    current_streak: int
    longest_streak: int
    is_active: bool


class HabitStore(Protocol):
    """Storage operations the streak tracker and stats aggregator rely on."""

    def atomic(self) -> AbstractContextManager["HabitStore"]:
        """Yield a store whose calls share one transaction."""
        ...

    def load_habit_for_streak(self, habit_id: int) -> StreakSnapshot:
        """Load streak fields for a habit; raises HabitNotFoundError."""
        ...

    def load_active_habits_for_sweep(self) -> Iterator[StreakSnapshot]:
        """Iterate over every active habit."""
        ...

    def insert_completion(
        self,
        habit_id: int,
        completed_at: datetime,
        value: Optional[float] = None,
        notes: Optional[str] = None,
        mood: Optional[int] = None,
        difficulty: Optional[int] = None,
    ) -> int:
        """Append a completion event and return its id."""
        ...

    def update_habit_streak_fields(
        self,
        habit_id: int,
        last_completed: datetime,
        current_streak: int,
        longest_streak: int,
    ) -> None:
        """Write back the streak counters and last completion timestamp."""
        ...

    def reset_streak(self, habit_id: int) -> None:
        """Set current_streak to zero, leaving longest_streak alone."""
        ...

    def count_completions(self, habit_id: int) -> int:
        ...

    def average_completion_value(self, habit_id: int) -> Optional[float]:
        ...

    def completion_dates_in_window(self, habit_id: int, window_start: datetime) -> set[date]:
        """UTC dates having at least one completion at or after ``window_start``."""
        ...
