"""Run a command as a worker's current job, logging its start and finish."""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Callable, Sequence

from workshare.errors import NoCurrentJobError
from workshare.queue.outcome import ExecutionOutcome
from workshare.queue.repository import QueueRepository

logger = logging.getLogger(__name__)

Spawn = Callable[[Sequence[str]], int]


def run_monitored(
    repository: QueueRepository,
    worker: str,
    argv: Sequence[str],
    *,
    spawn: Spawn | None = None,
) -> ExecutionOutcome:
    """Execute ``argv`` bracketed by start/finish events on the current job.

    A command that cannot be spawned still gets both events, with the
    not-started result.
    """

    if not argv:
        raise ValueError("A command is required.")
    job_id = repository.current_job(worker)
    if job_id is None:
        raise NoCurrentJobError(worker)

    repository.log_start(job_id, [os.fsencode(arg) for arg in argv])
    run = spawn or _spawn
    try:
        outcome = ExecutionOutcome.from_returncode(run(argv))
    except OSError as error:
        logger.warning("Failed to start %r for job %d: %s", argv[0], job_id, error)
        outcome = ExecutionOutcome.not_started()
    repository.log_finish(job_id, outcome.log_result())
    logger.info("job %d finished: %s", job_id, outcome.describe())
    return outcome


def _spawn(argv: Sequence[str]) -> int:
    process = subprocess.Popen(list(argv))  # noqa: S603
    try:
        return process.wait()
    except BaseException:
        _terminate_process(process)
        raise


def _terminate_process(process: subprocess.Popen[bytes]) -> None:
    try:
        process.terminate()
    except OSError:
        return
    try:
        process.wait(timeout=2)
    except subprocess.TimeoutExpired:
        try:
            process.kill()
        except OSError:
            return
        process.wait(timeout=2)
