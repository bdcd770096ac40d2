"""SQLModel table exports and value types."""

from .frequency import (
    Custom,
    Daily,
    FrequencyPattern,
    Interval,
    Monthly,
    Weekly,
    decode_frequency,
    encode_frequency,
)
from .habit import Habit, HabitCompletion, HabitReminder

__all__ = [
    "Custom",
    "Daily",
    "FrequencyPattern",
    "Habit",
    "HabitCompletion",
    "HabitReminder",
    "Interval",
    "Monthly",
    "Weekly",
    "decode_frequency",
    "encode_frequency",
]
