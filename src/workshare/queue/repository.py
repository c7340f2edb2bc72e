"""Persistent task queue repository: task assignment and job lifecycle log."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from sqlalchemy import func
from sqlalchemy import update as sa_update
from sqlmodel import Session, col, select

from workshare.errors import (
    DuplicateDataError,
    DuplicateFinishError,
    DuplicateStartError,
    JobNotFoundError,
    NoCurrentJobError,
    TaskNotFoundError,
)
from workshare.queue.command import decode_command, encode_command
from workshare.queue.models import (
    ClaimedJob,
    JobFinishView,
    JobStartView,
    JobStatus,
    TaskView,
)
from workshare.storage.common import build_sqlite_engine, epoch_now, from_epoch
from workshare.storage.schema import create_schema, upgrade_schema
from workshare.storage.sqlmodel_models import Job, JobFinish, JobStart, Task

logger = logging.getLogger(__name__)

DEFAULT_BUSY_TIMEOUT_MS = 5_000


class QueueRepository:
    """Queue persistence facade backed by SQLModel + SQLite.

    Holds no state between calls beyond the engine: every operation reads what
    it needs inside its own transaction, so any number of repositories (in any
    number of processes) may share one database file.
    """

    def __init__(
        self,
        db_path: Path,
        *,
        sqlite_busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
    ) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=sqlite_busy_timeout_ms)

    @classmethod
    def create(
        cls,
        db_path: Path,
        *,
        sqlite_busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
    ) -> QueueRepository:
        """Initialize an empty store with the current schema."""

        repository = cls(db_path, sqlite_busy_timeout_ms=sqlite_busy_timeout_ms)
        try:
            create_schema(repository.engine)
        except Exception:
            repository.close()
            raise
        return repository

    @classmethod
    def open(
        cls,
        db_path: Path,
        *,
        sqlite_busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
    ) -> QueueRepository:
        """Open an existing store, upgrading its schema first if needed."""

        repository = cls(db_path, sqlite_busy_timeout_ms=sqlite_busy_timeout_ms)
        try:
            repository.init_schema()
        except Exception:
            repository.close()
            raise
        return repository

    def init_schema(self) -> int:
        """Run pending schema migrations; returns the resulting version."""

        return upgrade_schema(self.engine)

    def close(self) -> None:
        """Close underlying DB resources."""

        self.engine.dispose()

    # Tasks and assignment

    def define_task(
        self,
        data: bytes,
        desired_count: int,
        priority: int | None = None,
    ) -> TaskView:
        """Create a task; its data payload must be unique across all tasks."""

        if desired_count < 0:
            raise ValueError(f"desired_count must be >= 0, got {desired_count}")

        with Session(self.engine) as session:
            existing = session.exec(select(Task.id).where(Task.data == data)).first()
            if existing is not None:
                raise DuplicateDataError(existing)
            row = Task(data=data, count=desired_count, priority=priority)
            session.add(row)
            session.flush()
            view = _to_task_view(row, assigned=0)
            session.commit()
        logger.debug("defined task %d count=%d priority=%s", view.task_id, desired_count, priority)
        return view

    def claim(self, worker: str) -> ClaimedJob | None:
        """Atomically assign one outstanding repetition to ``worker``.

        Candidates are tasks with fewer jobs than their desired count, ordered
        by priority (unset counts as 0) and then by task id. Within a priority
        tier this exhausts the oldest task before moving on; repetitions are not
        balanced across same-priority tasks.

        Returns ``None`` when no task has outstanding repetitions.
        """

        assigned = _assigned_counts()
        with Session(self.engine) as session:
            candidate = session.exec(
                select(Task)
                .outerjoin(assigned, assigned.c.task == col(Task.id))
                .where(func.coalesce(assigned.c.assigned, 0) < col(Task.count))
                .order_by(func.coalesce(col(Task.priority), 0).asc(), col(Task.id).asc())
                .limit(1),
            ).first()
            if candidate is None:
                return None

            job = Job(task=candidate.id, worker=worker, time=epoch_now())
            session.add(job)
            session.flush()
            claimed = ClaimedJob(
                job_id=_require_id(job.id),
                task_id=_require_id(candidate.id),
                worker=worker,
                data=candidate.data,
            )
            session.commit()
        logger.debug(
            "worker %r claimed job %d of task %d", worker, claimed.job_id, claimed.task_id
        )
        return claimed

    def adjust_count(self, task_id: int, delta: int) -> TaskView:
        """Add ``delta`` to a task's desired count, flooring at zero."""

        with Session(self.engine) as session:
            result = session.exec(
                sa_update(Task)
                .where(col(Task.id) == task_id)
                .values(count=func.max(col(Task.count) + delta, 0)),
            )
            if result.rowcount != 1:
                session.rollback()
                raise TaskNotFoundError(task_id)
            session.commit()
        return self.get_task(task_id)

    def set_priority(self, task_id: int, priority: int | None) -> TaskView:
        """Replace a task's priority; ``None`` restores the default."""

        with Session(self.engine) as session:
            result = session.exec(
                sa_update(Task).where(col(Task.id) == task_id).values(priority=priority),
            )
            if result.rowcount != 1:
                session.rollback()
                raise TaskNotFoundError(task_id)
            session.commit()
        return self.get_task(task_id)

    def get_task(self, task_id: int) -> TaskView:
        with Session(self.engine) as session:
            row = session.get(Task, task_id)
            if row is None:
                raise TaskNotFoundError(task_id)
            return _to_task_view(row, assigned=_count_jobs(session, task_id))

    def get_data(self, task_id: int) -> bytes:
        return self.get_task(task_id).data

    def remaining(self, task_id: int) -> int:
        """Outstanding repetitions, clamped at zero."""

        return self.get_task(task_id).remaining

    def list_pending(self) -> list[int]:
        """Ids of tasks with outstanding repetitions, ascending."""

        assigned = _assigned_counts()
        with Session(self.engine) as session:
            rows = session.exec(
                select(Task.id)
                .outerjoin(assigned, assigned.c.task == col(Task.id))
                .where(func.coalesce(assigned.c.assigned, 0) < col(Task.count))
                .order_by(col(Task.id).asc()),
            ).all()
        return [_require_id(task_id) for task_id in rows]

    # Job lifecycle

    def current_job(self, worker: str) -> int | None:
        """The worker's most recently claimed job, whatever its state."""

        with Session(self.engine) as session:
            return _current_job(session, worker)

    def log_start(self, job_id: int, command: Sequence[bytes] = ()) -> None:
        with Session(self.engine) as session:
            _require_job(session, job_id)
            if session.get(JobStart, job_id) is not None:
                raise DuplicateStartError(job_id)
            session.add(JobStart(job=job_id, time=epoch_now(), cmd=encode_command(command)))
            session.commit()
        logger.debug("logged start of job %d", job_id)

    def log_finish(self, job_id: int, result: int, data: bytes | None = None) -> None:
        with Session(self.engine) as session:
            _require_job(session, job_id)
            if session.get(JobFinish, job_id) is not None:
                raise DuplicateFinishError(job_id)
            session.add(JobFinish(job=job_id, result=result, time=epoch_now(), data=data))
            session.commit()
        logger.debug("logged finish of job %d result=%d", job_id, result)

    def log_start_for_worker(self, worker: str, command: Sequence[bytes] = ()) -> int:
        """Log a start against the worker's current job; returns the job id."""

        job_id = self.current_job(worker)
        if job_id is None:
            raise NoCurrentJobError(worker)
        self.log_start(job_id, command)
        return job_id

    def log_finish_for_worker(
        self,
        worker: str,
        result: int,
        data: bytes | None = None,
    ) -> int:
        """Log a finish against the worker's current job; returns the job id."""

        job_id = self.current_job(worker)
        if job_id is None:
            raise NoCurrentJobError(worker)
        self.log_finish(job_id, result, data)
        return job_id

    def list_jobs(self) -> list[int]:
        with Session(self.engine) as session:
            rows = session.exec(select(Job.id).order_by(col(Job.id).asc())).all()
        return [_require_id(job_id) for job_id in rows]

    def list_started_unfinished(self) -> list[int]:
        """Jobs with a start event and no finish event, ascending."""

        with Session(self.engine) as session:
            rows = session.exec(
                select(JobStart.job)
                .outerjoin(JobFinish, col(JobFinish.job) == col(JobStart.job))
                .where(col(JobFinish.job).is_(None))
                .order_by(col(JobStart.job).asc()),
            ).all()
        return list(rows)

    def job_status(self, job_id: int) -> JobStatus:
        with Session(self.engine) as session:
            job = _require_job(session, job_id)
            start = session.get(JobStart, job_id)
            finish = session.get(JobFinish, job_id)
            latest = _current_job(session, job.worker)
            return JobStatus(
                job_id=job_id,
                task_id=job.task,
                worker=job.worker,
                created_at=from_epoch(job.time),
                is_latest=latest == job_id,
                start=(
                    JobStartView(
                        time=_require_time(start.time),
                        command=decode_command(start.cmd),
                    )
                    if start is not None
                    else None
                ),
                finish=(
                    JobFinishView(
                        time=_require_time(finish.time),
                        result=finish.result,
                        data=finish.data,
                    )
                    if finish is not None
                    else None
                ),
            )


def _assigned_counts():
    return (
        select(col(Job.task).label("task"), func.count().label("assigned"))
        .group_by(col(Job.task))
        .subquery("assigned")
    )


def _count_jobs(session: Session, task_id: int) -> int:
    return session.exec(
        select(func.count()).select_from(Job).where(col(Job.task) == task_id),
    ).one()


def _current_job(session: Session, worker: str) -> int | None:
    return session.exec(
        select(Job.id)
        .where(col(Job.worker) == worker)
        .order_by(col(Job.id).desc())
        .limit(1),
    ).first()


def _require_job(session: Session, job_id: int) -> Job:
    row = session.get(Job, job_id)
    if row is None:
        raise JobNotFoundError(job_id)
    return row


def _require_id(value: int | None) -> int:
    if value is None:
        raise RuntimeError("Row has no primary key after flush.")
    return value


def _require_time(value: int) -> datetime:
    converted = from_epoch(value)
    if converted is None:
        raise RuntimeError("Event row has no timestamp.")
    return converted


def _to_task_view(row: Task, *, assigned: int) -> TaskView:
    return TaskView(
        task_id=_require_id(row.id),
        data=row.data,
        desired_count=row.count,
        priority=row.priority,
        assigned=assigned,
    )
