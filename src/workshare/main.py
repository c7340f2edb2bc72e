"""CLI entrypoint for workshare."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import rich_click as click
from sqlalchemy.exc import SQLAlchemyError

from workshare import __version__
from workshare.config import Settings
from workshare.errors import WorkshareError
from workshare.queue.controllers import (
    CreateTaskCommand,
    LogFinishCommand,
    MonitorCommand,
    QueueCliController,
    TakeCommand,
)

click.rich_click.USE_MARKDOWN = True
QUEUE_CONTROLLER = QueueCliController()

# Exit status for "nothing to hand out"; click already uses 1 for errors and 2 for usage errors.
EXIT_NO_WORK = 3

db_path_option = click.option(
    "--db-path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="SQLite DB path (defaults to WORKSHARE_DB_PATH or .workshare.db).",
)


@click.group()
@click.version_option(version=__version__, prog_name="workshare")
def workshare() -> None:
    """Command-line work-sharing scheduler.

    Define tasks with a repetition count, let workers **take** one repetition
    at a time, and record when each job starts and finishes.
    """

    settings = Settings.from_env()
    try:
        settings.validate()
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    logging.basicConfig(
        level=settings.logging_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@workshare.command("init")
@db_path_option
def init_store(db_path: Path | None) -> None:
    """Create a new, empty queue database."""

    with _reported_errors():
        _emit_lines(QUEUE_CONTROLLER.init_store(db_path))


@workshare.command("create")
@db_path_option
@click.option(
    "-c",
    "--count",
    type=click.IntRange(min=0),
    default=0,
    show_default=True,
    help="Number of repetitions to enqueue initially.",
)
@click.option(
    "-p",
    "--priority",
    type=int,
    default=None,
    help="Scheduling priority; lower runs sooner. Unset behaves as 0.",
)
@click.option("-d", "--data", default=None, help="Task data. Read from stdin when omitted.")
def create_task(db_path: Path | None, count: int, priority: int | None, data: str | None) -> None:
    """Define a task and print its id."""

    payload = data.encode("utf-8") if data is not None else _read_stdin()
    with _reported_errors():
        _emit_lines(
            QUEUE_CONTROLLER.create_task(
                CreateTaskCommand(db_path=db_path, data=payload, count=count, priority=priority),
            ),
        )


@workshare.command("list")
@db_path_option
@click.option("-v", "--verbose", is_flag=True, help="Show remaining count, priority and data.")
def list_tasks(db_path: Path | None, verbose: bool) -> None:
    """List tasks that still have repetitions to hand out."""

    with _reported_errors():
        _emit_lines(QUEUE_CONTROLLER.list_pending(db_path, verbose=verbose))


@workshare.command("get-data")
@db_path_option
@click.argument("task_id", type=int)
def get_data(db_path: Path | None, task_id: int) -> None:
    """Write a task's data to stdout."""

    with _reported_errors():
        _write_bytes(QUEUE_CONTROLLER.get_data(db_path, task_id))


@workshare.command("get-count")
@db_path_option
@click.argument("task_id", type=int)
def get_count(db_path: Path | None, task_id: int) -> None:
    """Print how many repetitions of a task are still unclaimed."""

    with _reported_errors():
        _emit_lines(QUEUE_CONTROLLER.get_count(db_path, task_id))


@workshare.command("adjust-count", context_settings={"ignore_unknown_options": True})
@db_path_option
@click.argument("task_id", type=int)
@click.argument("delta", type=int)
def adjust_count(db_path: Path | None, task_id: int, delta: int) -> None:
    """Add DELTA (may be negative) to a task's repetition count."""

    with _reported_errors():
        _emit_lines(QUEUE_CONTROLLER.adjust_count(db_path, task_id, delta))


@workshare.command("set-priority", context_settings={"ignore_unknown_options": True})
@db_path_option
@click.argument("task_id", type=int)
@click.argument("priority", type=int, required=False)
def set_priority(db_path: Path | None, task_id: int, priority: int | None) -> None:
    """Set a task's priority; omit PRIORITY to reset it to the default."""

    with _reported_errors():
        _emit_lines(QUEUE_CONTROLLER.set_priority(db_path, task_id, priority))


@workshare.command("take")
@db_path_option
@click.option("-w", "--wait", is_flag=True, help="Poll until a job becomes available.")
@click.option(
    "--timeout",
    "timeout_seconds",
    type=click.FloatRange(min=0),
    default=None,
    help="With --wait, give up after this many seconds.",
)
@click.argument("worker")
def take(db_path: Path | None, wait: bool, timeout_seconds: float | None, worker: str) -> None:
    """Take a job from the queue and write its data to stdout.

    Exits with status 3 when there is no work available.
    """

    with _reported_errors():
        claimed = QUEUE_CONTROLLER.take(
            TakeCommand(
                db_path=db_path,
                worker=worker,
                wait=wait,
                timeout_seconds=timeout_seconds,
            ),
        )
    if claimed is None:
        sys.exit(EXIT_NO_WORK)
    _write_bytes(claimed.data)


@workshare.command("current-job")
@db_path_option
@click.argument("worker")
def current_job(db_path: Path | None, worker: str) -> None:
    """Print the id of the job WORKER most recently took."""

    with _reported_errors():
        job_id = QUEUE_CONTROLLER.current_job(db_path, worker)
    if job_id is None:
        sys.exit(EXIT_NO_WORK)
    click.echo(str(job_id))


@workshare.command("log-start", context_settings={"ignore_unknown_options": True})
@db_path_option
@click.argument("worker")
@click.argument("argv", nargs=-1, type=click.UNPROCESSED)
def log_start(db_path: Path | None, worker: str, argv: tuple[str, ...]) -> None:
    """Record that WORKER started its current job, optionally with its command."""

    with _reported_errors():
        _emit_lines(QUEUE_CONTROLLER.log_start(db_path, worker, argv))


@workshare.command("log-finish", context_settings={"ignore_unknown_options": True})
@db_path_option
@click.argument("worker")
@click.argument("result", type=int)
@click.option("--data", default=None, help="Optional output to store with the result.")
def log_finish(db_path: Path | None, worker: str, result: int, data: str | None) -> None:
    """Record that WORKER finished its current job with RESULT."""

    with _reported_errors():
        _emit_lines(
            QUEUE_CONTROLLER.log_finish(
                LogFinishCommand(
                    db_path=db_path,
                    worker=worker,
                    result=result,
                    data=data.encode("utf-8") if data is not None else None,
                ),
            ),
        )


@workshare.command("monitor", context_settings={"ignore_unknown_options": True})
@db_path_option
@click.argument("worker")
@click.argument("argv", nargs=-1, required=True, type=click.UNPROCESSED)
def monitor(db_path: Path | None, worker: str, argv: tuple[str, ...]) -> None:
    """Run a command as WORKER's current job, logging its start and finish.

    Exits with the command's status, 128+N if it was killed by signal N, or
    255 if it could not be started.
    """

    with _reported_errors():
        outcome = QUEUE_CONTROLLER.monitor(
            MonitorCommand(db_path=db_path, worker=worker, argv=argv),
        )
    sys.exit(outcome.exit_status() & 0xFF)


@workshare.command("jobs")
@db_path_option
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    help="Show task, worker, state, start time, result and command.",
)
def list_jobs(db_path: Path | None, verbose: bool) -> None:
    """List every job ever taken."""

    with _reported_errors():
        _emit_lines(QUEUE_CONTROLLER.list_jobs(db_path, verbose=verbose))


@workshare.command("running")
@db_path_option
def list_running(db_path: Path | None) -> None:
    """List jobs that have started but not finished."""

    with _reported_errors():
        _emit_lines(QUEUE_CONTROLLER.list_running(db_path))


@contextmanager
def _reported_errors() -> Iterator[None]:
    try:
        yield
    except (WorkshareError, SQLAlchemyError, ValueError) as error:
        raise click.ClickException(str(error)) from error


def _read_stdin() -> bytes:
    return click.get_binary_stream("stdin").read()


def _write_bytes(data: bytes) -> None:
    stream = click.get_binary_stream("stdout")
    stream.write(data)
    stream.flush()


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    workshare()
