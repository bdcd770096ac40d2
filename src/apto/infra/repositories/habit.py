"""SQLModel implementation of the habit repository."""

from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Callable, Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, func, select

from ...domain.repositories.habit import StreakSnapshot
from ...errors import (
    CompletionNotFoundError,
    HabitNotFoundError,
    ReminderNotFoundError,
    StorageError,
)
from ...models.frequency import FrequencyPattern
from ...models.habit import Habit, HabitCompletion, HabitReminder, utcnow
from ...services.streaks import utc_date

# Columns callers may change through update_habit; streak fields only move
# through the tracker.
EDITABLE_HABIT_FIELDS = frozenset(
    {
        "name",
        "description",
        "category",
        "target_value",
        "target_unit",
        "color",
        "icon",
        "is_active",
        "priority",
        "start_date",
        "end_date",
        "reminder_time",
    }
)

ALL_WEEKDAYS = [1, 2, 3, 4, 5, 6, 7]


def _validate_time(value: str) -> str:
    datetime.strptime(value, "%H:%M")
    return value


def _validate_priority(value: int) -> int:
    if value not in (1, 2, 3):
        raise ValueError(f"Priority must be 1, 2 or 3, got {value!r}")
    return value


class SQLModelHabitRepository:
    """SQLModel-based habit repository implementation.

    Each call opens and commits its own session unless the repository was
    produced by :meth:`atomic`, in which case every call joins that session
    and nothing is committed until the ``with`` block exits cleanly.
    """

    def __init__(self, session_factory: Callable[[], Session], *, session: Session | None = None):
        self.session_factory = session_factory
        self._session = session

    @contextmanager
    def _scope(self) -> Iterator[Session]:
        try:
            if self._session is not None:
                yield self._session
                self._session.flush()
            else:
                with self.session_factory() as session:
                    yield session
                    session.commit()
        except SQLAlchemyError as exc:
            raise StorageError(f"Database operation failed: {exc}") from exc

    @contextmanager
    def atomic(self) -> Iterator["SQLModelHabitRepository"]:
        """Group several calls into one transaction, rolled back on any error."""
        if self._session is not None:
            yield self
            return
        try:
            with self.session_factory() as session:
                yield SQLModelHabitRepository(self.session_factory, session=session)
                session.commit()
        except SQLAlchemyError as exc:
            raise StorageError(f"Database transaction failed: {exc}") from exc

    @staticmethod
    def _require_habit(session: Session, habit_id: int) -> Habit:
        habit = session.get(Habit, habit_id)
        if habit is None:
            raise HabitNotFoundError(habit_id)
        return habit

    @staticmethod
    def _snapshot(habit: Habit) -> StreakSnapshot:
        return StreakSnapshot(
            habit_id=habit.id,
            frequency=habit.frequency(),
            last_completed=habit.last_completed,
            current_streak=habit.current_streak,
            longest_streak=habit.longest_streak,
            is_active=habit.is_active,
        )

    # Streak engine operations
    def load_habit_for_streak(self, habit_id: int) -> StreakSnapshot:
        with self._scope() as session:
            return self._snapshot(self._require_habit(session, habit_id))

    def load_active_habits_for_sweep(self) -> Iterator[StreakSnapshot]:
        with self._scope() as session:
            habits = session.exec(
                select(Habit).where(Habit.is_active == True).order_by(Habit.id)  # noqa: E712
            ).all()
            snapshots = [self._snapshot(habit) for habit in habits]
        return iter(snapshots)

    def insert_completion(
        self,
        habit_id: int,
        completed_at: datetime,
        value: Optional[float] = None,
        notes: Optional[str] = None,
        mood: Optional[int] = None,
        difficulty: Optional[int] = None,
    ) -> int:
        with self._scope() as session:
            self._require_habit(session, habit_id)
            completion = HabitCompletion(
                habit_id=habit_id,
                completed_at=completed_at,
                value=value,
                notes=notes,
                mood=mood,
                difficulty=difficulty,
            )
            session.add(completion)
            session.flush()
            return completion.id

    def update_habit_streak_fields(
        self,
        habit_id: int,
        last_completed: datetime,
        current_streak: int,
        longest_streak: int,
    ) -> None:
        with self._scope() as session:
            habit = self._require_habit(session, habit_id)
            habit.last_completed = last_completed
            habit.current_streak = current_streak
            habit.longest_streak = longest_streak
            session.add(habit)

    def reset_streak(self, habit_id: int) -> None:
        with self._scope() as session:
            habit = self._require_habit(session, habit_id)
            habit.current_streak = 0
            session.add(habit)

    def count_completions(self, habit_id: int) -> int:
        with self._scope() as session:
            return session.exec(
                select(func.count())
                .select_from(HabitCompletion)
                .where(HabitCompletion.habit_id == habit_id)
            ).one()

    def average_completion_value(self, habit_id: int) -> Optional[float]:
        with self._scope() as session:
            average = session.exec(
                select(func.avg(HabitCompletion.value))
                .where(HabitCompletion.habit_id == habit_id)
                .where(col(HabitCompletion.value).is_not(None))
            ).one()
            return float(average) if average is not None else None

    def completion_dates_in_window(self, habit_id: int, window_start: datetime) -> set[date]:
        with self._scope() as session:
            stamps = session.exec(
                select(HabitCompletion.completed_at)
                .where(HabitCompletion.habit_id == habit_id)
                .where(HabitCompletion.completed_at >= window_start)
            ).all()
            return {utc_date(stamp) for stamp in stamps}

    # Habit CRUD
    def create_habit(self, habit: Habit) -> Habit:
        """Persist a new habit with fresh streak counters."""
        habit.frequency()
        _validate_priority(habit.priority)
        if habit.reminder_time is not None:
            _validate_time(habit.reminder_time)
        habit.current_streak = 0
        habit.longest_streak = 0
        habit.last_completed = None
        with self._scope() as session:
            session.add(habit)
            session.flush()
            session.refresh(habit)
            return habit

    def get_habit(self, habit_id: int) -> Habit:
        with self._scope() as session:
            return self._require_habit(session, habit_id)

    def list_habits(self, include_inactive: bool = False) -> list[Habit]:
        """List habits by priority then name, optionally including inactive ones."""
        with self._scope() as session:
            statement = select(Habit).order_by(Habit.priority, Habit.name)  # type: ignore
            if not include_inactive:
                statement = statement.where(Habit.is_active == True)  # noqa: E712
            return list(session.exec(statement).all())

    def update_habit(
        self,
        habit_id: int,
        *,
        frequency: FrequencyPattern | None = None,
        **changes: Any,
    ) -> Habit:
        """Apply field changes to a habit; streak counters are not editable here."""
        unknown = set(changes) - EDITABLE_HABIT_FIELDS
        if unknown:
            raise ValueError(f"Cannot update habit fields: {', '.join(sorted(unknown))}")
        if "priority" in changes:
            _validate_priority(changes["priority"])
        if changes.get("reminder_time") is not None:
            _validate_time(changes["reminder_time"])

        with self._scope() as session:
            habit = self._require_habit(session, habit_id)
            for field, value in changes.items():
                setattr(habit, field, value)
            if frequency is not None:
                habit.set_frequency(frequency)
            habit.updated_at = utcnow()
            session.add(habit)
            session.flush()
            session.refresh(habit)
            return habit

    def set_active(self, habit_id: int, is_active: bool) -> Habit:
        return self.update_habit(habit_id, is_active=is_active)

    def delete_habit(self, habit_id: int) -> None:
        """Delete a habit together with its completions and reminders."""
        with self._scope() as session:
            habit = self._require_habit(session, habit_id)
            for model in (HabitCompletion, HabitReminder):
                for row in session.exec(select(model).where(model.habit_id == habit_id)).all():
                    session.delete(row)
            session.flush()
            session.delete(habit)

    # Completion operations
    def list_completions(self, habit_id: int) -> list[HabitCompletion]:
        """Completions for a habit, newest first."""
        with self._scope() as session:
            self._require_habit(session, habit_id)
            statement = (
                select(HabitCompletion)
                .where(HabitCompletion.habit_id == habit_id)
                .order_by(col(HabitCompletion.completed_at).desc(), col(HabitCompletion.id).desc())
            )
            return list(session.exec(statement).all())

    def update_completion(
        self,
        completion_id: int,
        *,
        value: Optional[float] = None,
        notes: Optional[str] = None,
        mood: Optional[int] = None,
        difficulty: Optional[int] = None,
    ) -> HabitCompletion:
        """Overwrite the detail fields of a completion (the timestamp is fixed)."""
        with self._scope() as session:
            completion = session.get(HabitCompletion, completion_id)
            if completion is None:
                raise CompletionNotFoundError(completion_id)
            completion.value = value
            completion.notes = notes
            completion.mood = mood
            completion.difficulty = difficulty
            session.add(completion)
            session.flush()
            session.refresh(completion)
            return completion

    def delete_completion(self, completion_id: int) -> None:
        with self._scope() as session:
            completion = session.get(HabitCompletion, completion_id)
            if completion is None:
                raise CompletionNotFoundError(completion_id)
            session.delete(completion)

    # Reminder operations
    def list_reminders(self, habit_id: int) -> list[HabitReminder]:
        with self._scope() as session:
            self._require_habit(session, habit_id)
            statement = (
                select(HabitReminder)
                .where(HabitReminder.habit_id == habit_id)
                .order_by(HabitReminder.time, HabitReminder.id)  # type: ignore
            )
            return list(session.exec(statement).all())

    def create_reminder(
        self, habit_id: int, time: str, days: list[int], is_enabled: bool = True
    ) -> HabitReminder:
        _validate_time(time)
        with self._scope() as session:
            self._require_habit(session, habit_id)
            reminder = HabitReminder(
                habit_id=habit_id,
                time=time,
                days=json.dumps(sorted(set(days))),
                is_enabled=is_enabled,
            )
            session.add(reminder)
            session.flush()
            session.refresh(reminder)
            return reminder

    def update_reminder(
        self, reminder_id: int, time: str, days: list[int], is_enabled: bool
    ) -> HabitReminder:
        _validate_time(time)
        with self._scope() as session:
            reminder = self._require_reminder(session, reminder_id)
            reminder.time = time
            reminder.days = json.dumps(sorted(set(days)))
            reminder.is_enabled = is_enabled
            session.add(reminder)
            session.flush()
            session.refresh(reminder)
            return reminder

    def set_reminder_enabled(self, reminder_id: int, is_enabled: bool) -> HabitReminder:
        with self._scope() as session:
            reminder = self._require_reminder(session, reminder_id)
            reminder.is_enabled = is_enabled
            session.add(reminder)
            session.flush()
            session.refresh(reminder)
            return reminder

    def delete_reminder(self, reminder_id: int) -> None:
        with self._scope() as session:
            session.delete(self._require_reminder(session, reminder_id))

    def sync_daily_reminder(self, habit_id: int, time: Optional[str]) -> None:
        """Point the habit's reminders at ``time`` on every weekday, or drop them."""
        with self._scope() as session:
            self._require_habit(session, habit_id)
            reminders = session.exec(
                select(HabitReminder).where(HabitReminder.habit_id == habit_id)
            ).all()
            if time is None:
                for reminder in reminders:
                    session.delete(reminder)
                return
            _validate_time(time)
            every_day = json.dumps(ALL_WEEKDAYS)
            if not reminders:
                session.add(HabitReminder(habit_id=habit_id, time=time, days=every_day))
            for reminder in reminders:
                reminder.time = time
                reminder.days = every_day
                session.add(reminder)

    @staticmethod
    def _require_reminder(session: Session, reminder_id: int) -> HabitReminder:
        reminder = session.get(HabitReminder, reminder_id)
        if reminder is None:
            raise ReminderNotFoundError(reminder_id)
        return reminder


def reminder_days(reminder: HabitReminder) -> list[int]:
    """Decode the weekday list stored on a reminder."""
    return list(json.loads(reminder.days))


__all__ = ["EDITABLE_HABIT_FIELDS", "SQLModelHabitRepository", "reminder_days"]
