"""Habit tracking tables."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import ClassVar, Optional

from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator
from sqlmodel import Field, SQLModel

from .frequency import FrequencyPattern, decode_frequency, encode_frequency


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Store timestamps as naive UTC and hand them back timezone-aware.

    SQLite has no timezone support, so every value is normalized to UTC on the
    way in and tagged as UTC on the way out.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime {value!r} cannot be stored; attach a timezone")
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value: Optional[datetime], dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


class Habit(SQLModel, table=True):
    """A recurring activity with its cached streak counters."""

    __tablename__: ClassVar[str] = "habits"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(nullable=False, max_length=120, index=True)
    description: Optional[str] = Field(default=None)
    category: Optional[str] = Field(default=None, max_length=64)
    frequency_type: str = Field(default="daily", nullable=False, max_length=16)
    frequency_data: str = Field(default="{}", nullable=False)
    target_value: Optional[float] = Field(default=None)
    target_unit: Optional[str] = Field(default=None, max_length=32)
    color: Optional[str] = Field(default=None, max_length=16)
    icon: Optional[str] = Field(default=None, max_length=64)
    is_active: bool = Field(default=True, nullable=False)
    priority: int = Field(default=2, nullable=False)
    start_date: date = Field(default_factory=lambda: utcnow().date(), nullable=False)
    end_date: Optional[date] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime, nullable=False)
    reminder_time: Optional[str] = Field(default=None, max_length=5)
    current_streak: int = Field(default=0, nullable=False)
    longest_streak: int = Field(default=0, nullable=False)
    last_completed: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    def frequency(self) -> FrequencyPattern:
        """Decode the stored recurrence rule."""
        return decode_frequency(self.frequency_type, self.frequency_data)

    def set_frequency(self, frequency: FrequencyPattern) -> None:
        self.frequency_type, self.frequency_data = encode_frequency(frequency)

    def is_within_schedule(self, day: date) -> bool:
        """True when ``day`` falls inside the habit's start/end dates."""
        if day < self.start_date:
            return False
        return self.end_date is None or day <= self.end_date


class HabitCompletion(SQLModel, table=True):
    """A single timestamped completion event."""

    __tablename__: ClassVar[str] = "habit_completions"

    id: Optional[int] = Field(default=None, primary_key=True)
    habit_id: int = Field(foreign_key="habits.id", ondelete="CASCADE", nullable=False, index=True)
    completed_at: datetime = Field(
        default_factory=utcnow, sa_type=UTCDateTime, nullable=False, index=True
    )
    value: Optional[float] = Field(default=None)
    notes: Optional[str] = Field(default=None)
    mood: Optional[int] = Field(default=None)
    difficulty: Optional[int] = Field(default=None)


class HabitReminder(SQLModel, table=True):
    """Time-of-day reminder for a habit on selected weekdays."""

    __tablename__: ClassVar[str] = "habit_reminders"

    id: Optional[int] = Field(default=None, primary_key=True)
    habit_id: int = Field(foreign_key="habits.id", ondelete="CASCADE", nullable=False, index=True)
    time: str = Field(nullable=False, max_length=5)
    days: str = Field(default="[]", nullable=False)
    is_enabled: bool = Field(default=True, nullable=False)
