"""Error taxonomy for the habit backend.

Repositories and services raise these; only :mod:`apto.commands` turns them
into display strings.
"""

from __future__ import annotations


class AptoError(Exception):
    """Base class for every error the backend raises on purpose."""

    kind = "error"


class FrequencyDecodeError(AptoError, ValueError):
    """Persisted frequency columns do not describe a valid pattern."""

    kind = "decode"

    def __init__(self, frequency_type: str, frequency_data: str, reason: str):
        self.frequency_type = frequency_type
        self.frequency_data = frequency_data
        self.reason = reason
        super().__init__(
            f"Failed to decode frequency {frequency_type!r} with data {frequency_data!r}: {reason}"
        )


class NotFoundError(AptoError, LookupError):
    """A referenced row does not exist."""

    kind = "not_found"
    entity = "record"

    def __init__(self, identifier: int):
        self.identifier = identifier
        super().__init__(f"{self.entity} {identifier} not found")


class HabitNotFoundError(NotFoundError):
    entity = "Habit"


class CompletionNotFoundError(NotFoundError):
    entity = "Habit completion"


class ReminderNotFoundError(NotFoundError):
    entity = "Habit reminder"


class StorageError(AptoError):
    """The database rejected or failed an operation."""

    kind = "storage"


__all__ = [
    "AptoError",
    "CompletionNotFoundError",
    "FrequencyDecodeError",
    "HabitNotFoundError",
    "NotFoundError",
    "ReminderNotFoundError",
    "StorageError",
]
