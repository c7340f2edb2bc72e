"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from workshare.queue.repository import QueueRepository


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    """Path of a freshly initialized queue database."""
    path = tmp_path / "queue.db"
    QueueRepository.create(path).close()
    return path


@pytest.fixture()
def repository(db_path: Path) -> Iterator[QueueRepository]:
    repo = QueueRepository.open(db_path)
    try:
        yield repo
    finally:
        repo.close()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch) -> None:
    """Keep WORKSHARE_* settings from the developer shell out of tests."""
    for name in (
        "WORKSHARE_DB_PATH",
        "WORKSHARE_LOG_LEVEL",
        "WORKSHARE_SQLITE_BUSY_TIMEOUT_MS",
        "WORKSHARE_WAIT_POLL_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)
