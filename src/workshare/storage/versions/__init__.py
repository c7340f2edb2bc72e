"""Numbered schema migration steps.

Each module exposes ``revision``, ``down_revision`` and ``upgrade(op)``. A step
upgrades a store at ``down_revision`` to ``revision``; steps run one per
transaction, in order.
"""

from __future__ import annotations

from types import ModuleType

from workshare.storage.versions import (
    v0002_tasks_and_job_events,
    v0003_epoch_times_and_indexes,
)

STEPS: dict[int, ModuleType] = {
    step.down_revision: step
    for step in (
        v0002_tasks_and_job_events,
        v0003_epoch_times_and_indexes,
    )
}

HEAD_REVISION = max(step.revision for step in STEPS.values())
