"""Domain errors raised by the queue and its storage layer."""

from __future__ import annotations


class WorkshareError(RuntimeError):
    """Base class for errors the CLI reports without a traceback."""


class StoreNotInitializedError(WorkshareError):
    """The database file has no schema metadata."""

    def __init__(self, db_path: object) -> None:
        super().__init__(
            f"Database {db_path} is not initialized. Run `workshare init` first.",
        )
        self.db_path = db_path


class SchemaTooNewError(WorkshareError):
    """The store was written by a newer build and must not be touched."""

    def __init__(self, found_version: int, supported_version: int) -> None:
        super().__init__(
            "Database schema is from a newer version of workshare! "
            f"Version found: {found_version}. Max version supported: {supported_version}.",
        )
        self.found_version = found_version
        self.supported_version = supported_version


class UnknownSchemaVersionError(WorkshareError):
    """No migration step is registered for the stored version."""

    def __init__(self, found_version: int) -> None:
        super().__init__(f"No migration path from database schema version {found_version}.")
        self.found_version = found_version


class MigrationIntegrityError(WorkshareError):
    """Foreign key validation failed at the end of a migration step."""

    def __init__(self, revision: int, violations: list[tuple[object, ...]]) -> None:
        super().__init__(
            f"Migration to version {revision} left {len(violations)} dangling reference(s): "
            f"{violations[:5]!r}",
        )
        self.revision = revision
        self.violations = violations


class DuplicateDataError(WorkshareError):
    """A task with the same data payload already exists."""

    def __init__(self, existing_task_id: int) -> None:
        super().__init__(f"A task with identical data already exists: task_id={existing_task_id}")
        self.existing_task_id = existing_task_id


class TaskNotFoundError(WorkshareError):
    def __init__(self, task_id: int) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class JobNotFoundError(WorkshareError):
    def __init__(self, job_id: int) -> None:
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class DuplicateStartError(WorkshareError):
    """A start event was already logged for the job."""

    def __init__(self, job_id: int) -> None:
        super().__init__(f"Start already logged for job {job_id}")
        self.job_id = job_id


class DuplicateFinishError(WorkshareError):
    """A finish event was already logged for the job."""

    def __init__(self, job_id: int) -> None:
        super().__init__(f"Finish already logged for job {job_id}")
        self.job_id = job_id


class NoCurrentJobError(WorkshareError):
    """The worker has never claimed a job, so there is nothing to log against."""

    def __init__(self, worker: str) -> None:
        super().__init__(f"Worker {worker!r} has no current job; take one first.")
        self.worker = worker
