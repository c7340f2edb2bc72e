from __future__ import annotations

import sys
from pathlib import Path

import allure
import pytest
from click.testing import CliRunner

from workshare.main import workshare
from workshare.queue.repository import QueueRepository

pytestmark = [
    allure.epic("Command Line"),
    allure.feature("Queue Commands"),
]


@pytest.fixture
def cli_db(tmp_path: Path) -> str:
    db_path = str(tmp_path / "cli.db")
    result = CliRunner().invoke(workshare, ["init", "--db-path", db_path])
    assert result.exit_code == 0, result.output
    return db_path


def _invoke(*args: str, input: bytes | str | None = None):
    return CliRunner().invoke(workshare, list(args), input=input)


def test_init_twice_fails(cli_db: str) -> None:
    result = _invoke("init", "--db-path", cli_db)

    assert result.exit_code == 1
    assert "Error" in result.output


def test_commands_require_initialized_store(tmp_path: Path) -> None:
    result = _invoke("list", "--db-path", str(tmp_path / "missing.db"))

    assert result.exit_code == 1


def test_create_take_and_exhaust(cli_db: str) -> None:
    created = _invoke("create", "--db-path", cli_db, "-c", "1", input=b"JOBDATA")
    assert created.exit_code == 0, created.output
    task_id = created.output.strip()

    assert _invoke("list", "--db-path", cli_db).output.split() == [task_id]
    assert _invoke("get-data", "--db-path", cli_db, task_id).stdout_bytes == b"JOBDATA"

    taken = _invoke("take", "--db-path", cli_db, "worker-1")
    assert taken.exit_code == 0
    assert taken.stdout_bytes == b"JOBDATA"

    again = _invoke("take", "--db-path", cli_db, "worker-1")
    assert again.exit_code == 3
    assert again.stdout_bytes == b""
    assert _invoke("get-count", "--db-path", cli_db, task_id).output.strip() == "0"
    assert _invoke("list", "--db-path", cli_db).output == ""


def test_duplicate_data_is_an_error(cli_db: str) -> None:
    assert _invoke("create", "--db-path", cli_db, "-d", "same", "-c", "2").exit_code == 0

    result = _invoke("create", "--db-path", cli_db, "-d", "same", "-c", "5")

    assert result.exit_code == 1
    assert "already exists" in result.output


def test_count_and_priority_commands(cli_db: str) -> None:
    low = _invoke("create", "--db-path", cli_db, "-d", "later", "-c", "1").output.strip()
    high = _invoke(
        "create", "--db-path", cli_db, "-d", "sooner", "-c", "1", "-p", "5"
    ).output.strip()

    assert _invoke("set-priority", "--db-path", cli_db, high, "-1").exit_code == 0
    assert _invoke("adjust-count", "--db-path", cli_db, low, "2").output.strip() == "3"

    verbose = _invoke("list", "--db-path", cli_db, "-v").output.splitlines()
    assert verbose == [f"{low}\t3\t0\tlater", f"{high}\t1\t-1\tsooner"]

    assert _invoke("take", "--db-path", cli_db, "w").stdout_bytes == b"sooner"

    assert _invoke("set-priority", "--db-path", cli_db, high).exit_code == 0
    assert _invoke("adjust-count", "--db-path", cli_db, low, "-10").output.strip() == "0"
    assert _invoke("adjust-count", "--db-path", cli_db, "404", "1").exit_code == 1


def test_take_wait_gives_up_after_timeout(cli_db: str, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WORKSHARE_WAIT_POLL_SECONDS", "0.01")

    result = _invoke("take", "--db-path", cli_db, "--wait", "--timeout", "0.05", "w")

    assert result.exit_code == 3


def test_no_work_status_differs_from_usage_error(cli_db: str) -> None:
    assert _invoke("take", "--db-path", cli_db).exit_code == 2
    assert _invoke("take", "--db-path", cli_db, "w").exit_code == 3


def test_negative_numbers_are_arguments(cli_db: str) -> None:
    task_id = _invoke("create", "--db-path", cli_db, "-d", "negatives", "-c", "5").output.strip()

    lowered = _invoke("adjust-count", "--db-path", cli_db, task_id, "-2")
    assert lowered.exit_code == 0, lowered.output
    assert lowered.output.strip() == "3"

    urgent = _invoke("set-priority", "--db-path", cli_db, task_id, "-10")
    assert urgent.exit_code == 0, urgent.output
    assert _invoke("list", "--db-path", cli_db, "-v").output.splitlines() == [
        f"{task_id}\t3\t-10\tnegatives",
    ]

    assert _invoke("take", "--db-path", cli_db, "w").exit_code == 0
    finished = _invoke("log-finish", "--db-path", cli_db, "w", "-1")
    assert finished.exit_code == 0, finished.output
    fields = _invoke("jobs", "--db-path", cli_db, "-v").output.strip().split("\t")
    assert fields[3] == "finished"
    assert fields[5] == "-1"


def test_log_start_keeps_undecodable_arguments(cli_db: str) -> None:
    _invoke("create", "--db-path", cli_db, "-d", "bytes", "-c", "1")
    assert _invoke("take", "--db-path", cli_db, "w").exit_code == 0

    started = _invoke("log-start", "--db-path", cli_db, "w", "cat", "caf\udce9", "-n")
    assert started.exit_code == 0, started.output

    repository = QueueRepository.open(Path(cli_db))
    try:
        job_id = repository.current_job("w")
        assert job_id is not None
        status = repository.job_status(job_id)
    finally:
        repository.close()
    assert status.start is not None
    assert status.start.command == (b"cat", b"caf\xe9", b"-n")
    fields = _invoke("jobs", "--db-path", cli_db, "-v").output.strip().split("\t")
    assert fields[6] == '"cat" <binary> "-n"'


def test_log_start_and_finish_track_running_jobs(cli_db: str) -> None:
    _invoke("create", "--db-path", cli_db, "-d", "foo bar", "-c", "12")

    assert _invoke("log-start", "--db-path", cli_db, "w1").exit_code == 1
    assert _invoke("current-job", "--db-path", cli_db, "w1").exit_code == 3

    assert _invoke("take", "--db-path", cli_db, "w1").exit_code == 0
    job_id = _invoke("current-job", "--db-path", cli_db, "w1").output.strip()
    assert _invoke("running", "--db-path", cli_db).output == ""

    started = _invoke("log-start", "--db-path", cli_db, "w1", "sleep", "10")
    assert started.exit_code == 0, started.output
    assert _invoke("running", "--db-path", cli_db).output.split() == [job_id]
    assert _invoke("log-start", "--db-path", cli_db, "w1").exit_code == 1

    finished = _invoke("log-finish", "--db-path", cli_db, "w1", "0", "--data", "done")
    assert finished.exit_code == 0, finished.output
    assert _invoke("running", "--db-path", cli_db).output == ""
    assert _invoke("log-finish", "--db-path", cli_db, "w1", "0").exit_code == 1

    jobs = _invoke("jobs", "--db-path", cli_db, "-v").output.splitlines()
    assert len(jobs) == 1
    fields = jobs[0].split("\t")
    assert fields[0] == job_id
    assert fields[2:4] == ["w1", "finished"]
    assert fields[5:] == ["0", '"sleep" "10"']


@pytest.mark.parametrize(
    ("code", "expected_exit"),
    [("raise SystemExit(0)", 0), ("raise SystemExit(1)", 1)],
)
def test_monitor_propagates_exit_status(cli_db: str, code: str, expected_exit: int) -> None:
    _invoke("create", "--db-path", cli_db, "-d", "monitored", "-c", "1")
    assert _invoke("take", "--db-path", cli_db, "w1").exit_code == 0

    result = _invoke("monitor", "--db-path", cli_db, "w1", sys.executable, "-c", code)

    assert result.exit_code == expected_exit
    assert _invoke("running", "--db-path", cli_db).output == ""
    fields = _invoke("jobs", "--db-path", cli_db, "-v").output.strip().split("\t")
    assert fields[5] == str(expected_exit)


def test_monitor_reports_commands_that_cannot_start(cli_db: str, tmp_path: Path) -> None:
    _invoke("create", "--db-path", cli_db, "-d", "missing", "-c", "1")
    assert _invoke("take", "--db-path", cli_db, "w1").exit_code == 0

    result = _invoke(
        "monitor", "--db-path", cli_db, "w1", str(tmp_path / "nosuchcommand_foobarbaz")
    )

    assert result.exit_code == 255
    fields = _invoke("jobs", "--db-path", cli_db, "-v").output.strip().split("\t")
    assert fields[3] == "finished"
    assert fields[5] == "512"


def test_monitor_without_current_job_fails(cli_db: str) -> None:
    result = _invoke("monitor", "--db-path", cli_db, "w1", "true")

    assert result.exit_code == 1
    assert "no current job" in result.output.lower()


def test_invalid_log_level_is_reported(cli_db: str, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WORKSHARE_LOG_LEVEL", "LOUD")

    result = _invoke("list", "--db-path", cli_db)

    assert result.exit_code == 1
    assert "WORKSHARE_LOG_LEVEL" in result.output
