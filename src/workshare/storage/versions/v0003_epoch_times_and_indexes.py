"""Repair layouts written by earlier builds.

Version 2 stores created by the upgrade path have no ``job.time`` column, and
stores created fresh at version 2 have no uniqueness on ``task.data``. Event
times were at one point written as calendar dates (``date('now')``) into
integer columns; those are converted to epoch seconds. Captured commands were
stored as length-prefixed binary (u64 little-endian counts); they are rewritten
as JSON arrays of base64 strings, and blobs that do not parse are cleared.
"""

from __future__ import annotations

import base64
import json
import logging
import struct

import sqlalchemy as sa
from alembic.operations import Operations

revision = 3
down_revision = 2

_U64 = struct.Struct("<Q")

logger = logging.getLogger(__name__)


def upgrade(op: Operations) -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    job_columns = {column["name"] for column in inspector.get_columns("job")}
    if "time" not in job_columns:
        op.add_column("job", sa.Column("time", sa.Integer(), nullable=True))

    for table in ("job_start", "job_finish"):
        op.execute(
            sa.text(
                f"""
                UPDATE {table}
                SET time = CAST(strftime('%s', time) AS INTEGER)
                WHERE typeof(time) = 'text' AND strftime('%s', time) IS NOT NULL
                """,
            ),
        )

    rows = bind.execute(sa.text("SELECT job, cmd FROM job_start WHERE cmd IS NOT NULL")).all()
    for job, cmd in rows:
        args = _decode_length_prefixed(bytes(cmd))
        if args is None:
            logger.warning("job %d: unreadable legacy command dropped", job)
            encoded = None
        else:
            encoded = json.dumps(
                [base64.b64encode(arg).decode("ascii") for arg in args],
                separators=(",", ":"),
            ).encode("utf-8")
        bind.execute(
            sa.text("UPDATE job_start SET cmd = :cmd WHERE job = :job"),
            {"cmd": encoded, "job": job},
        )

    task_indexes = {index["name"] for index in inspector.get_indexes("task")}
    if "uq_task_data" not in task_indexes:
        op.create_index("uq_task_data", "task", ["data"], unique=True)

    job_indexes = {index["name"] for index in inspector.get_indexes("job")}
    if "ix_job_worker_id" not in job_indexes:
        op.create_index("ix_job_worker_id", "job", ["worker", "id"])


def _decode_length_prefixed(blob: bytes) -> list[bytes] | None:
    """Parse ``u64 n, n * (u64 len, bytes)``; None unless it consumes the blob exactly."""

    if len(blob) < _U64.size:
        return None
    (count,) = _U64.unpack_from(blob, 0)
    offset = _U64.size
    args: list[bytes] = []
    for _ in range(count):
        if offset + _U64.size > len(blob):
            return None
        (length,) = _U64.unpack_from(blob, offset)
        offset += _U64.size
        if offset + length > len(blob):
            return None
        args.append(blob[offset : offset + length])
        offset += length
    if offset != len(blob):
        return None
    return args
