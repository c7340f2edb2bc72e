"""SQLModel ORM tables for the queue store."""

from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Index, Integer, LargeBinary, Table, Text
from sqlmodel import Field, SQLModel

schema_meta = Table(
    "meta",
    SQLModel.metadata,
    Column("version", Integer, nullable=False),
)


class Task(SQLModel, table=True):
    __tablename__ = "task"  # type: ignore[bad-override]
    __table_args__ = (Index("uq_task_data", "data", unique=True),)

    id: int | None = Field(default=None, primary_key=True)
    count: int = Field(sa_column=Column(Integer, nullable=False))
    data: bytes = Field(sa_column=Column(LargeBinary, nullable=False))
    priority: int | None = Field(default=None, sa_column=Column(Integer, nullable=True))


class Job(SQLModel, table=True):
    __tablename__ = "job"  # type: ignore[bad-override]
    __table_args__ = (Index("ix_job_worker_id", "worker", "id"),)

    id: int | None = Field(default=None, primary_key=True)
    task: int = Field(sa_column=Column(Integer, ForeignKey("task.id"), nullable=False))
    time: int | None = Field(default=None, sa_column=Column(Integer, nullable=True))
    worker: str = Field(sa_column=Column(Text, nullable=False))


class JobStart(SQLModel, table=True):
    __tablename__ = "job_start"  # type: ignore[bad-override]

    job: int = Field(
        sa_column=Column(Integer, ForeignKey("job.id"), primary_key=True, autoincrement=False),
    )
    time: int = Field(sa_column=Column(Integer, nullable=False))
    cmd: bytes | None = Field(default=None, sa_column=Column(LargeBinary, nullable=True))


class JobFinish(SQLModel, table=True):
    __tablename__ = "job_finish"  # type: ignore[bad-override]

    job: int = Field(
        sa_column=Column(Integer, ForeignKey("job.id"), primary_key=True, autoincrement=False),
    )
    result: int = Field(sa_column=Column(Integer, nullable=False))
    time: int = Field(sa_column=Column(Integer, nullable=False))
    data: bytes | None = Field(default=None, sa_column=Column(LargeBinary, nullable=True))
