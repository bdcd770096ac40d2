"""Due-date and streak-break rules for every frequency pattern.

Both functions are pure: they look only at their arguments. Timestamps are
reduced to their UTC calendar date before comparison.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Optional

from ..models.frequency import Custom, Daily, FrequencyPattern, Interval, Monthly, Weekly


def utc_date(moment: datetime) -> date:
    """Calendar date of ``moment`` in UTC."""

    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(timezone.utc).date()


def days_between(start: date, end: date) -> Iterator[date]:
    """Yield each day strictly after ``start`` and strictly before ``end``."""

    cursor = start + timedelta(days=1)
    while cursor < end:
        yield cursor
        cursor += timedelta(days=1)


def _matches_day(frequency: FrequencyPattern, day: date) -> bool:
    if isinstance(frequency, Weekly):
        return day.isoweekday() in frequency.days
    if isinstance(frequency, Monthly):
        return day.day in frequency.days
    return False


def is_due(
    frequency: FrequencyPattern,
    reference_date: date,
    last_completed: Optional[datetime],
) -> bool:
    """Return True when the habit should be completed on ``reference_date``."""

    last_date = utc_date(last_completed) if last_completed is not None else None

    if isinstance(frequency, Daily):
        return last_date is None or last_date < reference_date

    if isinstance(frequency, (Weekly, Monthly)):
        if not _matches_day(frequency, reference_date):
            return False
        return last_date is None or last_date < reference_date

    if isinstance(frequency, Interval):
        if last_date is None:
            return True
        return (reference_date - last_date).days >= frequency.days

    if isinstance(frequency, Custom):
        # Custom patterns have no evaluation rules yet.
        return True

    raise TypeError(f"Unsupported frequency pattern: {frequency!r}")


def breaks_streak(
    frequency: FrequencyPattern,
    previous_completion: datetime,
    current_date: date,
) -> bool:
    """Return True when a scheduled day was missed between two completions.

    Only days strictly between the previous completion's date and
    ``current_date`` count; ``current_date`` itself is never a miss.
    """

    prev_date = utc_date(previous_completion)

    if isinstance(frequency, Daily):
        return (current_date - prev_date).days > 1

    if isinstance(frequency, (Weekly, Monthly)):
        return any(_matches_day(frequency, day) for day in days_between(prev_date, current_date))

    if isinstance(frequency, Interval):
        return (current_date - prev_date).days > frequency.days

    if isinstance(frequency, Custom):
        return False

    raise TypeError(f"Unsupported frequency pattern: {frequency!r}")


__all__ = ["breaks_streak", "days_between", "is_due", "utc_date"]
