"""Split legacy job/worker tables into task/job and add start/finish event logs."""

from __future__ import annotations

import sqlalchemy as sa
from alembic.operations import Operations

revision = 2
down_revision = 1


def upgrade(op: Operations) -> None:
    # Legacy layout: job(id, count, data UNIQUE) and worker(id, job, data).
    op.rename_table("job", "task")
    op.add_column("task", sa.Column("priority", sa.Integer(), nullable=True))

    op.create_table(
        "job",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("task", sa.Integer(), nullable=False),
        sa.Column("worker", sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(["task"], ["task.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.execute(
        sa.text(
            """
            INSERT INTO job (id, task, worker)
            SELECT id, job, CAST(data AS TEXT)
            FROM worker
            """,
        ),
    )
    op.drop_table("worker")

    op.create_table(
        "job_start",
        sa.Column("job", sa.Integer(), nullable=False),
        sa.Column("time", sa.Integer(), nullable=False),
        sa.Column("cmd", sa.LargeBinary(), nullable=True),
        sa.ForeignKeyConstraint(["job"], ["job.id"]),
        sa.PrimaryKeyConstraint("job"),
    )
    op.create_table(
        "job_finish",
        sa.Column("job", sa.Integer(), nullable=False),
        sa.Column("result", sa.Integer(), nullable=False),
        sa.Column("time", sa.Integer(), nullable=False),
        sa.Column("data", sa.LargeBinary(), nullable=True),
        sa.ForeignKeyConstraint(["job"], ["job.id"]),
        sa.PrimaryKeyConstraint("job"),
    )
