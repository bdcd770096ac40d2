"""Pytest configuration and shared fixtures for the habit backend tests.

Every test gets its own SQLite file inside ``tmp_path`` plus a controllable
clock, so nothing touches the real application database or wall time.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

import pytest

from apto.config import BaseConfig
from apto.context import create_app_context
from apto.infra.database import create_db_engine, create_session_factory, init_database
from apto.infra.repositories import SQLModelHabitRepository
from apto.models import Daily, FrequencyPattern, Habit
from apto.services.tracker import StreakTracker


def at(day: date, hour: int = 12, minute: int = 0) -> datetime:
    """UTC timestamp on ``day``; noon unless told otherwise."""
    return datetime.combine(day, time(hour, minute), tzinfo=timezone.utc)


class FakeClock:
    """Callable clock returning a settable UTC instant."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set_day(self, day: date, hour: int = 12) -> None:
        self.now = at(day, hour)

    def advance(self, days: int = 0, hours: int = 0) -> None:
        self.now = self.now + timedelta(days=days, hours=hours)


# =============================================================================
# Configuration and database fixtures
# =============================================================================


@pytest.fixture
def app_config(tmp_path, monkeypatch) -> BaseConfig:
    """Configuration rooted in a temporary data directory."""
    monkeypatch.setenv("APTO_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("APTO_DATABASE_URL", raising=False)
    monkeypatch.setenv("APTO_SWEEP_ON_START", "false")
    return BaseConfig()


@pytest.fixture
def db_engine(app_config):
    """Isolated SQLite database with all tables created."""
    engine = create_db_engine(app_config)
    init_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def repo(session_factory) -> SQLModelHabitRepository:
    return SQLModelHabitRepository(session_factory)


@pytest.fixture
def clock() -> FakeClock:
    # 2024-01-01 is a Monday
    return FakeClock(at(date(2024, 1, 1)))


@pytest.fixture
def tracker(repo, clock) -> StreakTracker:
    return StreakTracker(repo, clock=clock)


@pytest.fixture
def ctx(app_config, clock):
    """Full application context sharing the fake clock."""
    context = create_app_context(app_config, clock=clock, configure_logging=False)
    yield context
    context.engine.dispose()


# =============================================================================
# Test data factories
# =============================================================================


@pytest.fixture
def habit_factory(repo):
    """Factory for creating persisted habits.

    Returns:
        Callable: Function that creates and persists Habit instances
    """

    def _create_habit(
        name: str = "Test Habit",
        frequency: FrequencyPattern | None = None,
        is_active: bool = True,
        start_date: date = date(2023, 1, 1),
        end_date: date | None = None,
    ) -> Habit:
        habit = Habit(name=name, is_active=is_active, start_date=start_date, end_date=end_date)
        habit.set_frequency(frequency or Daily())
        return repo.create_habit(habit)

    return _create_habit
