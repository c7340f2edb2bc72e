"""Runtime configuration for the queue CLI and repository."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(slots=True)
class StorageSettings:
    """SQLite connection policy."""

    busy_timeout_ms: int = 5_000


@dataclass(slots=True)
class WorkerSettings:
    """Client-side settings for workers taking jobs."""

    wait_poll_seconds: float = 1.0


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    db_path: Path = Path(".workshare.db")
    log_level: str = "WARNING"
    storage: StorageSettings = field(default_factory=StorageSettings)
    worker: WorkerSettings = field(default_factory=WorkerSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with defaults for local use."""

        return cls(
            db_path=db_path or Path(os.getenv("WORKSHARE_DB_PATH", ".workshare.db")),
            log_level=os.getenv("WORKSHARE_LOG_LEVEL", "WARNING").strip().upper(),
            storage=StorageSettings(
                busy_timeout_ms=_env_int("WORKSHARE_SQLITE_BUSY_TIMEOUT_MS", 5_000),
            ),
            worker=WorkerSettings(
                wait_poll_seconds=_env_float("WORKSHARE_WAIT_POLL_SECONDS", 1.0),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error on out-of-range values."""

        if self.log_level not in _LOG_LEVELS:
            raise ValueError(
                f"WORKSHARE_LOG_LEVEL must be one of {sorted(_LOG_LEVELS)}, got {self.log_level!r}.",
            )
        if self.storage.busy_timeout_ms <= 0:
            raise ValueError("WORKSHARE_SQLITE_BUSY_TIMEOUT_MS must be > 0.")
        if self.worker.wait_poll_seconds <= 0:
            raise ValueError("WORKSHARE_WAIT_POLL_SECONDS must be > 0.")

    @property
    def logging_level(self) -> int:
        return logging.getLevelName(self.log_level)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as error:
        raise ValueError(f"Invalid number for {name}: {value!r}") from error
