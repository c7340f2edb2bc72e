"""Read models returned by the queue repository."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

DEFAULT_PRIORITY = 0


class JobState(str, Enum):
    """Presentation state derived from a job's events."""

    FINISHED = "finished"
    RUNNING = "running"
    PENDING = "pending"
    ABANDONED = "abandoned"


@dataclass(slots=True, frozen=True)
class TaskView:
    """Task definition with its derived assignment counters."""

    task_id: int
    data: bytes
    desired_count: int
    priority: int | None
    assigned: int

    @property
    def effective_priority(self) -> int:
        return DEFAULT_PRIORITY if self.priority is None else self.priority

    @property
    def remaining(self) -> int:
        return max(0, self.desired_count - self.assigned)


@dataclass(slots=True, frozen=True)
class ClaimedJob:
    """A job handed to a worker by a successful claim."""

    job_id: int
    task_id: int
    worker: str
    data: bytes


@dataclass(slots=True, frozen=True)
class JobStartView:
    time: datetime
    command: tuple[bytes, ...]


@dataclass(slots=True, frozen=True)
class JobFinishView:
    time: datetime
    result: int
    data: bytes | None


@dataclass(slots=True, frozen=True)
class JobStatus:
    """One job with its start/finish events.

    ``is_latest`` tells whether this is still the worker's current job. Without
    a start event, a latest job may yet start, and an older one never will.
    """

    job_id: int
    task_id: int
    worker: str
    created_at: datetime | None
    is_latest: bool
    start: JobStartView | None
    finish: JobFinishView | None

    @property
    def state(self) -> JobState:
        if self.finish is not None:
            return JobState.FINISHED
        if self.start is not None:
            return JobState.RUNNING
        if self.is_latest:
            return JobState.PENDING
        return JobState.ABANDONED
