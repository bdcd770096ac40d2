"""Repository protocol definitions for domain layer."""

from .habit import HabitStore, StreakSnapshot

__all__ = ["HabitStore", "StreakSnapshot"]
