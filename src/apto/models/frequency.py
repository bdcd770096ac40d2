"""Recurrence rules for habits and their two-column database encoding."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Iterable, Union

from ..errors import FrequencyDecodeError


def _freeze_days(days: Iterable[int]) -> frozenset[int]:
    days = tuple(days)
    for day in days:
        if isinstance(day, bool) or not isinstance(day, int) or day < 0:
            raise ValueError(f"Day numbers must be non-negative integers, got {day!r}")
    return frozenset(days)


@dataclass(frozen=True, slots=True)
class Daily:
    """Due every calendar day."""

    kind = "daily"


@dataclass(frozen=True, slots=True)
class Weekly:
    """Due on ISO weekdays (Monday=1 .. Sunday=7)."""

    days: frozenset[int]
    kind = "weekly"

    def __post_init__(self) -> None:
        object.__setattr__(self, "days", _freeze_days(self.days))


@dataclass(frozen=True, slots=True)
class Monthly:
    """Due on the given days of the month (1..31)."""

    days: frozenset[int]
    kind = "monthly"

    def __post_init__(self) -> None:
        object.__setattr__(self, "days", _freeze_days(self.days))


@dataclass(frozen=True, slots=True)
class Interval:
    """Due once ``days`` days have passed since the last completion."""

    days: int
    kind = "interval"

    def __post_init__(self) -> None:
        if isinstance(self.days, bool) or not isinstance(self.days, int):
            raise ValueError(f"Interval spacing must be an integer, got {self.days!r}")
        if self.days < 1:
            raise ValueError(f"Interval spacing must be positive, got {self.days}")


@dataclass(frozen=True, slots=True)
class Custom:
    """Free-form pattern; evaluated as always due and never breaking a streak."""

    pattern: str
    kind = "custom"


FrequencyPattern = Union[Daily, Weekly, Monthly, Interval, Custom]

FREQUENCY_TYPES = ("daily", "weekly", "monthly", "interval", "custom")


def encode_frequency(frequency: FrequencyPattern) -> tuple[str, str]:
    """Return the ``(frequency_type, frequency_data)`` columns for a pattern."""

    if isinstance(frequency, Daily):
        return "daily", "{}"
    if isinstance(frequency, (Weekly, Monthly)):
        return frequency.kind, json.dumps(sorted(frequency.days))
    if isinstance(frequency, Interval):
        return "interval", json.dumps(frequency.days)
    if isinstance(frequency, Custom):
        return "custom", json.dumps(frequency.pattern)
    raise TypeError(f"Unsupported frequency pattern: {frequency!r}")


def _day_list(frequency_type: str, frequency_data: str, payload: object) -> list[int]:
    if not isinstance(payload, list):
        raise FrequencyDecodeError(frequency_type, frequency_data, "expected a list of day numbers")
    for item in payload:
        if isinstance(item, bool) or not isinstance(item, int) or item < 0:
            raise FrequencyDecodeError(
                frequency_type, frequency_data, f"invalid day number {item!r}"
            )
    return payload


def decode_frequency(frequency_type: str, frequency_data: str) -> FrequencyPattern:
    """Rebuild a pattern from its database columns.

    Raises:
        FrequencyDecodeError: unknown type tag or a payload of the wrong shape.
    """

    if frequency_type == "daily":
        return Daily()
    if frequency_type not in FREQUENCY_TYPES:
        raise FrequencyDecodeError(
            frequency_type, frequency_data, f"unknown frequency type {frequency_type!r}"
        )

    try:
        payload = json.loads(frequency_data)
    except (TypeError, ValueError) as exc:
        raise FrequencyDecodeError(frequency_type, frequency_data, str(exc)) from exc

    if frequency_type == "weekly":
        return Weekly(_day_list(frequency_type, frequency_data, payload))
    if frequency_type == "monthly":
        return Monthly(_day_list(frequency_type, frequency_data, payload))
    if frequency_type == "interval":
        try:
            return Interval(payload)
        except ValueError as exc:
            raise FrequencyDecodeError(frequency_type, frequency_data, str(exc)) from exc
    if not isinstance(payload, str):
        raise FrequencyDecodeError(frequency_type, frequency_data, "expected a pattern string")
    return Custom(payload)


__all__ = [
    "Custom",
    "Daily",
    "FREQUENCY_TYPES",
    "FrequencyPattern",
    "Interval",
    "Monthly",
    "Weekly",
    "decode_frequency",
    "encode_frequency",
]
