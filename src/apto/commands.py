"""Command handlers invoked by the front end.

Every handler takes the :class:`AppContext` first and runs while holding the
context lock, so storage access is serialized process-wide. Errors from the
repository and services are logged here and re-raised as
:class:`CommandError`, the only place they are reduced to a message.
"""

from __future__ import annotations

import functools
import logging
from datetime import date
from typing import Any, Callable, Optional, TypeVar

from .context import AppContext
from .errors import AptoError
from .models.frequency import FrequencyPattern
from .models.habit import Habit, HabitCompletion, HabitReminder
from .services.stats import HabitStats, compute_stats
from .services.tracker import CompletionResult, due_habits

logger = logging.getLogger("apto.commands")

T = TypeVar("T")


class CommandError(Exception):
    """A command failed; ``message`` is safe to show to the user."""

    def __init__(self, message: str, *, kind: str = "error"):
        super().__init__(message)
        self.message = message
        self.kind = kind


def command(func: Callable[..., T]) -> Callable[..., T]:
    """Run ``func`` under the context lock and flatten domain errors."""

    @functools.wraps(func)
    def wrapper(ctx: AppContext, *args: Any, **kwargs: Any) -> T:
        with ctx.lock:
            try:
                return func(ctx, *args, **kwargs)
            except (AptoError, ValueError) as exc:
                kind = getattr(exc, "kind", "invalid")
                logger.warning(
                    "Command %s failed: %s",
                    func.__name__,
                    exc,
                    extra={"command": func.__name__, "kind": kind},
                )
                raise CommandError(str(exc), kind=kind) from exc

    return wrapper


# Habits
@command
def add_habit(
    ctx: AppContext,
    name: str,
    frequency: FrequencyPattern,
    *,
    description: Optional[str] = None,
    category: Optional[str] = None,
    target_value: Optional[float] = None,
    target_unit: Optional[str] = None,
    color: Optional[str] = None,
    icon: Optional[str] = None,
    is_active: bool = True,
    priority: int = 2,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    reminder_time: Optional[str] = None,
) -> Habit:
    """Create a habit; a reminder time also creates an every-day reminder."""
    if not name.strip():
        raise ValueError("Habit name cannot be empty")
    habit = Habit(
        name=name.strip(),
        description=description,
        category=category,
        target_value=target_value,
        target_unit=target_unit,
        color=color,
        icon=icon,
        is_active=is_active,
        priority=priority,
        start_date=start_date or ctx.today(),
        end_date=end_date,
        reminder_time=reminder_time,
    )
    habit.set_frequency(frequency)
    with ctx.habit_repo.atomic() as repo:
        habit = repo.create_habit(habit)
        if reminder_time is not None:
            repo.sync_daily_reminder(habit.id, reminder_time)
    logger.info("Added habit '%s' with ID: %s", habit.name, habit.id)
    return habit


@command
def get_habits(ctx: AppContext, include_inactive: bool = True) -> list[Habit]:
    return ctx.habit_repo.list_habits(include_inactive=include_inactive)


@command
def get_habit_by_id(ctx: AppContext, habit_id: int) -> Habit:
    return ctx.habit_repo.get_habit(habit_id)


@command
def update_habit(
    ctx: AppContext,
    habit_id: int,
    *,
    frequency: Optional[FrequencyPattern] = None,
    **changes: Any,
) -> Habit:
    """Edit habit details; passing ``reminder_time`` also re-syncs its reminders."""
    with ctx.habit_repo.atomic() as repo:
        habit = repo.update_habit(habit_id, frequency=frequency, **changes)
        if "reminder_time" in changes:
            repo.sync_daily_reminder(habit_id, changes["reminder_time"])
    logger.info("Updated habit with ID: %s", habit_id)
    return habit


@command
def delete_habit(ctx: AppContext, habit_id: int) -> None:
    ctx.habit_repo.delete_habit(habit_id)
    logger.info("Deleted habit with ID: %s", habit_id)


@command
def toggle_habit_active(ctx: AppContext, habit_id: int, is_active: bool) -> Habit:
    return ctx.habit_repo.set_active(habit_id, is_active)


@command
def get_due_habits(ctx: AppContext, today: Optional[date] = None) -> list[Habit]:
    """Active habits still open for ``today`` (defaults to the context date)."""
    return due_habits(ctx.habit_repo.list_habits(), today or ctx.today())


# Completions and streaks
@command
def add_habit_completion(
    ctx: AppContext,
    habit_id: int,
    value: Optional[float] = None,
    notes: Optional[str] = None,
    mood: Optional[int] = None,
    difficulty: Optional[int] = None,
) -> CompletionResult:
    return ctx.tracker.record_completion(
        habit_id, value=value, notes=notes, mood=mood, difficulty=difficulty
    )


@command
def get_habit_completions(ctx: AppContext, habit_id: int) -> list[HabitCompletion]:
    return ctx.habit_repo.list_completions(habit_id)


@command
def update_habit_completion(
    ctx: AppContext,
    completion_id: int,
    value: Optional[float] = None,
    notes: Optional[str] = None,
    mood: Optional[int] = None,
    difficulty: Optional[int] = None,
) -> HabitCompletion:
    return ctx.habit_repo.update_completion(
        completion_id, value=value, notes=notes, mood=mood, difficulty=difficulty
    )


@command
def delete_habit_completion(ctx: AppContext, completion_id: int) -> None:
    ctx.habit_repo.delete_completion(completion_id)


@command
def update_habit_streaks(ctx: AppContext) -> set[int]:
    """Run the maintenance sweep for the context's current date."""
    return ctx.tracker.sweep(ctx.today())


@command
def get_habit_stats(ctx: AppContext, habit_id: int) -> HabitStats:
    return compute_stats(ctx.habit_repo, habit_id, today=ctx.today())


# Reminders
@command
def get_habit_reminders(ctx: AppContext, habit_id: int) -> list[HabitReminder]:
    return ctx.habit_repo.list_reminders(habit_id)


@command
def create_habit_reminder(
    ctx: AppContext, habit_id: int, time: str, days: list[int], is_enabled: bool = True
) -> HabitReminder:
    return ctx.habit_repo.create_reminder(habit_id, time, days, is_enabled)


@command
def update_habit_reminder(
    ctx: AppContext, reminder_id: int, time: str, days: list[int], is_enabled: bool
) -> HabitReminder:
    return ctx.habit_repo.update_reminder(reminder_id, time, days, is_enabled)


@command
def delete_habit_reminder(ctx: AppContext, reminder_id: int) -> None:
    ctx.habit_repo.delete_reminder(reminder_id)


@command
def toggle_reminder(ctx: AppContext, reminder_id: int, is_enabled: bool) -> HabitReminder:
    return ctx.habit_repo.set_reminder_enabled(reminder_id, is_enabled)
