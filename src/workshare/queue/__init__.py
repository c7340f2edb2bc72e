"""Task queue: assignment engine, lifecycle log, and subprocess monitor."""

from workshare.queue.models import ClaimedJob, JobStatus, TaskView
from workshare.queue.outcome import ExecutionOutcome
from workshare.queue.repository import QueueRepository

__all__ = [
    "ClaimedJob",
    "ExecutionOutcome",
    "JobStatus",
    "QueueRepository",
    "TaskView",
]
