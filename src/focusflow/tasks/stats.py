# src/focusflow/tasks/stats.py

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .hierarchy import DEFAULT_MAX_DEPTH, descendants
from .task_models import Task


@dataclass(frozen=True, slots=True)
class SubtaskStats:
    total_subtasks: int
    completed_subtasks: int
    progress_percentage: float
    estimated_time_remaining: float
    total_time_spent: float


def stats(
    parent_id: str,
    collection: Iterable[Task],
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> SubtaskStats:
    """
    Progress and time statistics over the subtree of `parent_id`.

    Covers descendants up to `max_depth` levels. Missing estimates count
    as 0; progress is 0 when there are no descendants.
    """
    subtasks = descendants(parent_id, collection, max_depth)
    total = len(subtasks)
    done = sum(1 for t in subtasks if t.completed)
    progress = (done / total) * 100 if total > 0 else 0.0

    remaining = sum((t.time_estimate or 0) for t in subtasks if not t.completed)
    spent = sum((t.time_spent or 0) for t in subtasks)

    return SubtaskStats(
        total_subtasks=total,
        completed_subtasks=done,
        progress_percentage=progress,
        estimated_time_remaining=remaining,
        total_time_spent=spent,
    )


def aggregate_estimate(
    parent_id: str,
    collection: Iterable[Task],
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> float:
    """
    Reconciled estimate for a task and its subtree.

    A positive estimate on the parent acts as a floor: it is never shrunk by
    smaller subtask estimates, but larger subtask sums win.
    """
    tasks = list(collection)
    subtask_sum = sum((t.time_estimate or 0) for t in descendants(parent_id, tasks, max_depth))
    parent = next((t for t in tasks if t.id == parent_id), None)
    parent_estimate = (parent.time_estimate or 0) if parent is not None else 0

    if parent_estimate > 0:
        return max(parent_estimate, subtask_sum)
    return subtask_sum
