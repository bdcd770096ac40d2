"""Application context for dependency injection."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session

from .config import BaseConfig
from .infra.database import create_db_engine, create_session_factory, init_database
from .infra.repositories import SQLModelHabitRepository
from .logging_config import setup_logging
from .services.tracker import StreakTracker


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AppContext:
    """Everything a command handler needs, shared across the process."""

    config: BaseConfig
    engine: Engine
    session_factory: Callable[[], Session]
    habit_repo: SQLModelHabitRepository
    tracker: StreakTracker
    clock: Callable[[], datetime] = _utc_now

    # Serializes every command; the database connection is not shared concurrently.
    lock: threading.Lock = field(default_factory=threading.Lock)

    def today(self) -> date:
        """Current calendar date in UTC according to the context clock."""
        return self.clock().astimezone(timezone.utc).date()


def create_app_context(
    config: Optional[BaseConfig] = None,
    *,
    clock: Optional[Callable[[], datetime]] = None,
    configure_logging: bool = True,
) -> AppContext:
    """Bootstrap the database and wire the repository and tracker together."""

    cfg = config or BaseConfig()
    if configure_logging:
        setup_logging(cfg)

    engine = create_db_engine(cfg)
    init_database(engine)
    session_factory = create_session_factory(engine)
    habit_repo = SQLModelHabitRepository(session_factory)
    clock = clock or _utc_now

    return AppContext(
        config=cfg,
        engine=engine,
        session_factory=session_factory,
        habit_repo=habit_repo,
        tracker=StreakTracker(habit_repo, clock=clock),
        clock=clock,
    )
