"""Controllers for queue CLI commands."""

from __future__ import annotations

import os
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from workshare.config import Settings
from workshare.queue.command import format_command
from workshare.queue.models import ClaimedJob, JobStatus
from workshare.queue.monitor import run_monitored
from workshare.queue.outcome import ExecutionOutcome
from workshare.queue.repository import QueueRepository


@dataclass(slots=True)
class CreateTaskCommand:
    """CLI input for task definition."""

    db_path: Path | None
    data: bytes
    count: int
    priority: int | None


@dataclass(slots=True)
class TakeCommand:
    """CLI input for claiming a job."""

    db_path: Path | None
    worker: str
    wait: bool = False
    timeout_seconds: float | None = None


@dataclass(slots=True)
class LogFinishCommand:
    db_path: Path | None
    worker: str
    result: int
    data: bytes | None = None


@dataclass(slots=True)
class MonitorCommand:
    db_path: Path | None
    worker: str
    argv: tuple[str, ...]


class QueueCliController:
    """Coordinates store, task, and job-log CLI operations."""

    def init_store(self, db_path: Path | None) -> list[str]:
        settings = _settings(db_path)
        repository = QueueRepository.create(
            settings.db_path,
            sqlite_busy_timeout_ms=settings.storage.busy_timeout_ms,
        )
        repository.close()
        return []

    def create_task(self, command: CreateTaskCommand) -> list[str]:
        with _repository(_settings(command.db_path)) as repository:
            task = repository.define_task(command.data, command.count, command.priority)
        return [str(task.task_id)]

    def list_pending(self, db_path: Path | None, *, verbose: bool) -> list[str]:
        with _repository(_settings(db_path)) as repository:
            task_ids = repository.list_pending()
            if not verbose:
                return [str(task_id) for task_id in task_ids]
            tasks = [repository.get_task(task_id) for task_id in task_ids]
        return [
            f"{task.task_id}\t{task.remaining}\t{task.effective_priority}\t{_preview(task.data)}"
            for task in tasks
        ]

    def get_data(self, db_path: Path | None, task_id: int) -> bytes:
        with _repository(_settings(db_path)) as repository:
            return repository.get_data(task_id)

    def get_count(self, db_path: Path | None, task_id: int) -> list[str]:
        with _repository(_settings(db_path)) as repository:
            return [str(repository.remaining(task_id))]

    def adjust_count(self, db_path: Path | None, task_id: int, delta: int) -> list[str]:
        with _repository(_settings(db_path)) as repository:
            task = repository.adjust_count(task_id, delta)
        return [str(task.desired_count)]

    def set_priority(self, db_path: Path | None, task_id: int, priority: int | None) -> list[str]:
        with _repository(_settings(db_path)) as repository:
            repository.set_priority(task_id, priority)
        return []

    def take(self, command: TakeCommand) -> ClaimedJob | None:
        """Claim a job; with ``wait``, poll until one appears or the timeout passes."""

        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            if not command.wait:
                return repository.claim(command.worker)
            return _claim_with_wait(
                repository,
                worker=command.worker,
                poll_interval_seconds=settings.worker.wait_poll_seconds,
                timeout_seconds=command.timeout_seconds,
            )

    def current_job(self, db_path: Path | None, worker: str) -> int | None:
        with _repository(_settings(db_path)) as repository:
            return repository.current_job(worker)

    def log_start(self, db_path: Path | None, worker: str, argv: tuple[str, ...]) -> list[str]:
        with _repository(_settings(db_path)) as repository:
            repository.log_start_for_worker(worker, [os.fsencode(arg) for arg in argv])
        return []

    def log_finish(self, command: LogFinishCommand) -> list[str]:
        with _repository(_settings(command.db_path)) as repository:
            repository.log_finish_for_worker(command.worker, command.result, command.data)
        return []

    def monitor(self, command: MonitorCommand) -> ExecutionOutcome:
        with _repository(_settings(command.db_path)) as repository:
            return run_monitored(repository, command.worker, command.argv)

    def list_jobs(self, db_path: Path | None, *, verbose: bool) -> list[str]:
        with _repository(_settings(db_path)) as repository:
            job_ids = repository.list_jobs()
            if not verbose:
                return [str(job_id) for job_id in job_ids]
            statuses = [repository.job_status(job_id) for job_id in job_ids]
        return [_render_job_status(status) for status in statuses]

    def list_running(self, db_path: Path | None) -> list[str]:
        with _repository(_settings(db_path)) as repository:
            return [str(job_id) for job_id in repository.list_started_unfinished()]


def _claim_with_wait(
    repository: QueueRepository,
    *,
    worker: str,
    poll_interval_seconds: float,
    timeout_seconds: float | None,
) -> ClaimedJob | None:
    deadline = None if timeout_seconds is None else time.monotonic() + timeout_seconds
    while True:
        claimed = repository.claim(worker)
        if claimed is not None:
            return claimed
        if deadline is not None and time.monotonic() >= deadline:
            return None
        time.sleep(poll_interval_seconds)


def _render_job_status(status: JobStatus) -> str:
    started = status.start.time.isoformat() if status.start is not None else "-"
    result = str(status.finish.result) if status.finish is not None else "-"
    command = format_command(status.start.command) if status.start is not None else ""
    return (
        f"{status.job_id}\t{status.task_id}\t{status.worker}\t{status.state.value}"
        f"\t{started}\t{result}\t{command}"
    )


def _preview(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return "<data>"


def _settings(db_path: Path | None) -> Settings:
    settings = Settings.from_env(db_path=db_path)
    settings.validate()
    return settings


@contextmanager
def _repository(settings: Settings) -> Iterator[QueueRepository]:
    repository = QueueRepository.open(
        settings.db_path,
        sqlite_busy_timeout_ms=settings.storage.busy_timeout_ms,
    )
    try:
        yield repository
    finally:
        repository.close()
