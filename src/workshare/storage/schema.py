"""Schema creation and in-place upgrades keyed on ``meta.version``."""

from __future__ import annotations

import logging

from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import insert, inspect, select, update
from sqlalchemy.engine import Connection, Engine
from sqlmodel import SQLModel

from workshare.errors import (
    MigrationIntegrityError,
    SchemaTooNewError,
    StoreNotInitializedError,
    UnknownSchemaVersionError,
)
from workshare.storage.common import set_foreign_keys
from workshare.storage.sqlmodel_models import schema_meta
from workshare.storage.versions import HEAD_REVISION, STEPS

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 3

if HEAD_REVISION != SCHEMA_VERSION:  # pragma: no cover - import-time consistency guard
    raise RuntimeError(
        f"Migration head {HEAD_REVISION} does not match SCHEMA_VERSION {SCHEMA_VERSION}",
    )


def create_schema(engine: Engine) -> None:
    """Create every current-version table on an empty store in one transaction.

    Tables are created without ``IF NOT EXISTS``, so a second call on the same
    store fails and changes nothing.
    """

    with engine.begin() as connection:
        SQLModel.metadata.create_all(connection, checkfirst=False)
        connection.execute(insert(schema_meta).values(version=SCHEMA_VERSION))
    logger.info("created database schema version %d", SCHEMA_VERSION)


def upgrade_schema(engine: Engine) -> int:
    """Bring the store up to ``SCHEMA_VERSION``, one committed step at a time."""

    while True:
        with engine.connect() as connection:
            set_foreign_keys(connection, enabled=False)
            try:
                with connection.begin():
                    version = read_version(connection)
                    if version == SCHEMA_VERSION:
                        return version
                    if version > SCHEMA_VERSION:
                        raise SchemaTooNewError(version, SCHEMA_VERSION)
                    _apply_step(connection, version)
            finally:
                set_foreign_keys(connection, enabled=True)


def read_version(connection: Connection) -> int:
    """Stored schema version; raises if the store was never created."""

    if not inspect(connection).has_table("meta"):
        raise StoreNotInitializedError(connection.engine.url.database)
    version = connection.execute(select(schema_meta.c.version)).scalar_one_or_none()
    if version is None:
        raise StoreNotInitializedError(connection.engine.url.database)
    return int(version)


def _apply_step(connection: Connection, version: int) -> None:
    step = STEPS.get(version)
    if step is None:
        raise UnknownSchemaVersionError(version)

    logger.info("upgrading database: version %d -> version %d", version, step.revision)
    operations = Operations(MigrationContext.configure(connection))
    step.upgrade(operations)

    violations = [tuple(row) for row in connection.exec_driver_sql("PRAGMA foreign_key_check")]
    if violations:
        raise MigrationIntegrityError(step.revision, violations)

    connection.execute(update(schema_meta).values(version=step.revision))
