"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable, rejecting garbage loudly."""

    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "Apto"
    DB_FILENAME = "apto_habits.db"
    SQLITE_PRAGMAS = {"journal_mode": "wal", "foreign_keys": "on"}

    def __init__(self) -> None:
        self.DATA_DIR = self._resolve_data_dir()
        self.DEV_MODE = _env_bool("APTO_DEV_MODE", default=True)
        self.DATABASE_URL = os.getenv("APTO_DATABASE_URL", self._build_sqlite_url())
        self.SWEEP_HOUR = _env_int("APTO_SWEEP_HOUR", 0)
        self.SWEEP_MINUTE = _env_int("APTO_SWEEP_MINUTE", 5)
        self.SWEEP_ON_START = _env_bool("APTO_SWEEP_ON_START", default=True)
        if not 0 <= self.SWEEP_HOUR <= 23:
            raise ValueError("APTO_SWEEP_HOUR must be between 0 and 23.")
        if not 0 <= self.SWEEP_MINUTE <= 59:
            raise ValueError("APTO_SWEEP_MINUTE must be between 0 and 59.")

    def _resolve_data_dir(self) -> Path:
        """Return the directory where the SQLite file and logs live."""

        data_root = os.getenv("APTO_DATA_DIR", "instance")
        base_path = Path(data_root).expanduser()
        try:
            path = base_path.resolve()
            path.mkdir(parents=True, exist_ok=True)
            return path
        except PermissionError:
            # Read-only install locations fall back to user-local storage.
            local_app_data = os.getenv("LOCALAPPDATA") or (Path.home() / ".local" / "share")
            fallback_path = Path(local_app_data).expanduser() / self.APP_NAME
            fallback_path.mkdir(parents=True, exist_ok=True)
            return fallback_path.resolve()

    def _build_sqlite_url(self) -> str:
        """Construct the default SQLite URL inside the data directory."""

        db_path = self.DATA_DIR / self.DB_FILENAME
        return f"sqlite:///{db_path}"

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for SQLModel to consume."""

        connect_args: dict[str, Any] = {}
        if self.DATABASE_URL.startswith("sqlite"):
            # The scheduler thread shares the connection pool with command callers.
            connect_args["check_same_thread"] = False
        return {"connect_args": connect_args}

