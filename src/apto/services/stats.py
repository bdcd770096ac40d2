"""Completion statistics for a single habit."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional

from ..domain.repositories.habit import HabitStore
from ..models.frequency import Daily, FrequencyPattern, Interval, Monthly, Weekly

WINDOW_DAYS = 30


@dataclass(slots=True)
class HabitStats:
    """Read-only report derived from a habit and its completion log."""

    habit_id: int
    completion_rate: float
    current_streak: int
    longest_streak: int
    total_completions: int
    last_30_days: dict[str, bool] = field(default_factory=dict)
    average_value: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def expected_completions(frequency: FrequencyPattern) -> int:
    """Rough number of occurrences a pattern schedules in a 30-day window."""

    if isinstance(frequency, Daily):
        return WINDOW_DAYS
    if isinstance(frequency, Weekly):
        return (WINDOW_DAYS // 7) * len(frequency.days) + 1
    if isinstance(frequency, Monthly):
        return 1
    if isinstance(frequency, Interval):
        return WINDOW_DAYS // frequency.days
    # Custom and anything unrecognized count as daily.
    return WINDOW_DAYS


def completion_rate(total_completions: int, expected: int) -> float:
    """All-time completions over the 30-day expectation, clamped to [0, 1]."""

    if expected <= 0:
        return 0.0
    return min(max(total_completions / expected, 0.0), 1.0)


def window_days(today: date, days: int = WINDOW_DAYS) -> list[date]:
    """The ``days`` calendar days ending with ``today``, oldest first."""

    return [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]


def compute_stats(store: HabitStore, habit_id: int, today: Optional[date] = None) -> HabitStats:
    """Build the statistics report for ``habit_id``.

    Raises:
        HabitNotFoundError: the habit does not exist.
        FrequencyDecodeError: the stored frequency is malformed.
    """

    today = today or datetime.now(timezone.utc).date()

    with store.atomic() as tx:
        snapshot = tx.load_habit_for_streak(habit_id)
        total = tx.count_completions(habit_id)
        average = tx.average_completion_value(habit_id)

        days = window_days(today)
        window_start = datetime.combine(days[0], time.min, tzinfo=timezone.utc)
        completed_days = tx.completion_dates_in_window(habit_id, window_start)

    last_30_days = {day.isoformat(): day in completed_days for day in days}

    return HabitStats(
        habit_id=habit_id,
        completion_rate=completion_rate(total, expected_completions(snapshot.frequency)),
        current_streak=snapshot.current_streak,
        longest_streak=snapshot.longest_streak,
        total_completions=total,
        last_30_days=last_30_days,
        average_value=average,
    )


__all__ = [
    "HabitStats",
    "WINDOW_DAYS",
    "completion_rate",
    "compute_stats",
    "expected_completions",
    "window_days",
]
