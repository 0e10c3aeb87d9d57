# src/focusflow/tasks/subtasks.py

"""
Subtask manager: structural operations over a task snapshot.

Every function takes the collection as an explicit argument and returns new
records or patches. Nothing is written back; the caller commits the result
atomically before invoking the next operation.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from .errors import InvalidOperation, TaskNotFound
from .hierarchy import children, children_map, find_task, is_descendant
from .task_models import (
    FlatTask,
    Task,
    TaskPatch,
    TaskPeriod,
    TaskPriority,
    TaskStatus,
    TaskType,
    apply_patch,
    check_patch_fields,
)

logger = logging.getLogger(__name__)

DEFAULT_SUBTASK_TITLE = "New subtask"

# Owned by the engine on creation; callers cannot override them.
CREATE_FIXED_FIELDS = frozenset(
    {
        "parent_task_id",
        "depth",
        "is_subtask",
        "sort_order",
        "status",
        "completed",
        "completed_at",
        "time_spent",
        "pomodoro_count",
        "created_at",
        "updated_at",
    }
)

# Inherited from the parent unless the caller passes a non-None value.
_INHERITED = ("type", "period", "scheduled_for", "due_date", "energy", "focus")


def _next_sort_order(parent_id: str, collection: Iterable[Task]) -> int:
    return max((t.sort_order or 0 for t in children(parent_id, collection)), default=0) + 1


def create_subtask(
    parent: Task,
    collection: Iterable[Task],
    data: Mapping[str, Any] | None = None,
    *,
    now: float | None = None,
    id_factory: Callable[[], str] | None = None,
) -> Task:
    """
    Build a new child record of `parent`.

    The subtask is appended after its existing siblings and starts as todo with
    no time spent. type/period/scheduled_for/due_date/energy/focus come from the
    parent unless `data` overrides them.
    """
    tasks = list(collection)
    if not any(t.id == parent.id for t in tasks):
        raise TaskNotFound(parent.id)

    data = dict(data or {})
    task_id = data.pop("id", None)
    fixed = sorted(k for k in data if k in CREATE_FIXED_FIELDS)
    if fixed:
        raise InvalidOperation(f"Cannot set {', '.join(fixed)} when creating a subtask")
    check_patch_fields(data)

    for name in _INHERITED:
        if data.get(name) is None:
            data[name] = getattr(parent, name)

    if now is None:
        now = time.time()
    if task_id is None:
        task_id = (id_factory or (lambda: uuid.uuid4().hex))()

    subtask = Task(
        id=str(task_id),
        title=data.pop("title", None) or DEFAULT_SUBTASK_TITLE,
        description=data.pop("description", None) or "",
        type=TaskType(data.pop("type")),
        period=TaskPeriod(data.pop("period")),
        priority=TaskPriority(data.pop("priority", None) or TaskPriority.MEDIUM),
        tags=list(data.pop("tags", None) or []),
        context_tags=list(data.pop("context_tags", None) or []),
        status=TaskStatus.TODO,
        completed=False,
        parent_task_id=parent.id,
        depth=parent.depth + 1,
        is_subtask=True,
        sort_order=_next_sort_order(parent.id, tasks),
        time_spent=0.0,
        pomodoro_count=0,
        created_at=now,
        updated_at=now,
        **data,
    )
    logger.debug(
        "Subtask built id=%s parent=%s depth=%s sort_order=%s",
        subtask.id,
        parent.id,
        subtask.depth,
        subtask.sort_order,
    )
    return subtask


def reorder_subtasks(
    parent_id: str,
    ordered_ids: Iterable[str],
    collection: Iterable[Task],
    *,
    now: float | None = None,
) -> list[Task]:
    """
    Renumber the children of `parent_id` following `ordered_ids` (1-based).

    Ids that are not current children, and repeated ids, are ignored. Children
    missing from `ordered_ids` keep their relative order after the listed ones,
    so the sibling group ends up numbered 1..N. Every sibling is returned in its
    new order with a refreshed updated_at.
    """
    if now is None:
        now = time.time()

    siblings = children(parent_id, collection)
    by_id = {t.id: t for t in siblings}

    order: list[Task] = []
    placed: set[str] = set()
    for tid in ordered_ids:
        t = by_id.get(tid)
        if t is None or tid in placed:
            continue
        placed.add(tid)
        order.append(t)
    order.extend(t for t in siblings if t.id not in placed)

    return [
        apply_patch(t, {"sort_order": pos, "updated_at": now})
        for pos, t in enumerate(order, start=1)
    ]


def move_subtask(
    subtask_id: str,
    new_parent_id: str,
    collection: Iterable[Task],
    *,
    now: float | None = None,
) -> TaskPatch:
    """
    Patch that re-parents `subtask_id` under `new_parent_id`.

    The task goes to the end of its new sibling group and re-inherits
    type/period. Moving a task under itself or under one of its own
    descendants raises InvalidOperation.
    """
    tasks = list(collection)
    subtask = find_task(subtask_id, tasks)
    new_parent = find_task(new_parent_id, tasks)

    if new_parent.id == subtask.id:
        raise InvalidOperation(f"Task {subtask_id} cannot be its own parent")
    if is_descendant(new_parent.id, subtask.id, tasks):
        raise InvalidOperation(
            f"Cannot move task {subtask_id} under its own descendant {new_parent_id}"
        )

    if now is None:
        now = time.time()

    siblings = [t for t in tasks if t.id != subtask.id]
    return {
        "parent_task_id": new_parent.id,
        "is_subtask": True,
        "depth": new_parent.depth + 1,
        "sort_order": _next_sort_order(new_parent.id, siblings),
        "type": new_parent.type,
        "period": new_parent.period,
        "updated_at": now,
    }


def rebase_depths(
    task_id: str,
    new_depth: int,
    collection: Iterable[Task],
    *,
    now: float | None = None,
) -> dict[str, TaskPatch]:
    """
    Depth patches for the descendants of a task whose depth becomes `new_depth`.

    Walks the whole subtree (no depth bound, visited-guarded). Descendants
    already at the right depth are left out.
    """
    if now is None:
        now = time.time()

    kids = children_map(collection)
    out: dict[str, TaskPatch] = {}
    visited: set[str] = {task_id}
    stack: list[tuple[str, int]] = [(task_id, new_depth)]
    while stack:
        tid, depth = stack.pop()
        for child in kids.get(tid, []):
            if child.id in visited:
                continue
            visited.add(child.id)
            if child.depth != depth + 1:
                out[child.id] = {"depth": depth + 1, "updated_at": now}
            stack.append((child.id, depth + 1))
    return out


def cascade_delete_ids(subtask_id: str, collection: Iterable[Task]) -> list[str]:
    """
    Ids to remove when deleting `subtask_id`: the task itself first, then every
    descendant at any depth. No id is repeated, even on a cyclic collection.
    """
    tasks = list(collection)
    find_task(subtask_id, tasks)

    kids: dict[str, list[str]] = {}
    for t in tasks:
        if t.parent_task_id is not None:
            kids.setdefault(t.parent_task_id, []).append(t.id)

    result: list[str] = [subtask_id]
    visited: set[str] = {subtask_id}
    worklist: list[str] = [subtask_id]
    while worklist:
        tid = worklist.pop()
        for child_id in kids.get(tid, []):
            if child_id in visited:
                continue
            visited.add(child_id)
            result.append(child_id)
            worklist.append(child_id)
    return result


def flatten(collection: Iterable[Task]) -> list[FlatTask]:
    """
    Display order for the whole forest: each root (in collection order)
    followed depth-first by its descendants, with indent = distance from the root.
    """
    tasks = list(collection)
    by_parent = children_map(tasks)

    out: list[FlatTask] = []
    visited: set[str] = set()
    for root in (t for t in tasks if t.parent_task_id is None):
        stack: list[tuple[Task, int]] = [(root, 0)]
        while stack:
            task, indent = stack.pop()
            if task.id in visited:
                continue
            visited.add(task.id)
            out.append(FlatTask(task=task, indent=indent))
            stack.extend((c, indent + 1) for c in reversed(by_parent.get(task.id, [])))
    return out

