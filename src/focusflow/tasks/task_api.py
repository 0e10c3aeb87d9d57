# src/focusflow/tasks/task_api.py

"""
Caller-side workflows around the hierarchy engine.

Each helper is one read -> compute -> commit unit:
- take a snapshot from state.task_store,
- run the pure engine functions on it,
- commit every resulting record/patch in a single store transaction.
All of it runs under state.lock so two units never interleave.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Iterable, Mapping
from typing import Any

from ..core.state import AppState
from .completion import derive_parent_update, propagate_upward
from .errors import InvalidOperation, TaskNotFound
from .hierarchy import find_task, index_by_id
from .subtasks import (
    CREATE_FIXED_FIELDS,
    cascade_delete_ids,
    create_subtask,
    move_subtask,
    rebase_depths,
    reorder_subtasks as _reorder,
)
from .task_models import Task, TaskPatch, TaskStatus, apply_patch, normalize_patch

logger = logging.getLogger(__name__)


def _merge(into: dict[str, TaskPatch], patches: Mapping[str, TaskPatch]) -> None:
    for tid, patch in patches.items():
        into.setdefault(tid, {}).update(patch)


def _apply_all(working: dict[str, Task], patches: Mapping[str, TaskPatch]) -> None:
    for tid, patch in patches.items():
        if tid in working:
            working[tid] = apply_patch(working[tid], patch)


def _normalized(working: dict[str, Task], patches: Mapping[str, TaskPatch]) -> dict[str, TaskPatch]:
    return {tid: normalize_patch(working[tid], p) for tid, p in patches.items() if tid in working}


def _settle_from(task_id: str, working: dict[str, Task], now: float) -> dict[str, TaskPatch]:
    """Re-derive `task_id` itself, then every ancestor above it."""
    out: dict[str, TaskPatch] = {}
    task = working.get(task_id)
    if task is None:
        return out
    own = derive_parent_update(task, working.values(), now=now)
    if own:
        out[task_id] = own
        working[task_id] = apply_patch(task, own)
    upward = propagate_upward(task_id, working.values(), now=now)
    _apply_all(working, upward)
    _merge(out, upward)
    return out


def resolve_task_id(state: AppState, token: str) -> str:
    """Exact id, or a unique id prefix (handy for console input)."""
    token = (token or "").strip()
    if not token:
        raise TaskNotFound(token)
    ids = [t.id for t in state.task_store.list_tasks()]
    if token in ids:
        return token
    matches = [tid for tid in ids if tid.startswith(token)]
    if not matches:
        raise TaskNotFound(token)
    if len(matches) > 1:
        raise InvalidOperation(f"Ambiguous task id prefix {token!r} ({len(matches)} matches)")
    return matches[0]


def add_task(
    state: AppState,
    title: str,
    *,
    data: Mapping[str, Any] | None = None,
    now: float | None = None,
) -> Task:
    """Create a root task appended after the existing roots."""
    if not title or not title.strip():
        raise ValueError("title is required")
    data = dict(data or {})
    fixed = sorted(k for k in data if k in CREATE_FIXED_FIELDS or k == "id")
    if fixed:
        raise InvalidOperation(f"Cannot set {', '.join(fixed)} when creating a task")

    if now is None:
        now = time.time()

    with state.lock:
        tasks = state.task_store.list_tasks()
        next_order = max((t.sort_order or 0 for t in tasks if t.parent_task_id is None), default=0) + 1
        task = Task(
            id=uuid.uuid4().hex,
            title=title.strip(),
            sort_order=next_order,
            created_at=now,
            updated_at=now,
        )
        task = apply_patch(task, data)
        state.task_store.commit(upserts=[task])

    logger.info("Task added id=%s title=%r", task.id, task.title)
    return task


def add_subtask(
    state: AppState,
    parent_id: str,
    title: str,
    *,
    data: Mapping[str, Any] | None = None,
    now: float | None = None,
) -> Task:
    if not title or not title.strip():
        raise ValueError("title is required")
    if now is None:
        now = time.time()

    with state.lock:
        tasks = state.task_store.list_tasks()
        parent = find_task(parent_id, tasks)
        subtask = create_subtask(parent, tasks, {**(data or {}), "title": title.strip()}, now=now)

        working = index_by_id(tasks)
        working[subtask.id] = subtask
        patches = propagate_upward(subtask.id, working.values(), now=now)
        state.task_store.commit(upserts=[subtask], patches=_normalized(working, patches))

    logger.info("Subtask added id=%s parent=%s depth=%s", subtask.id, parent_id, subtask.depth)
    return subtask


def set_completed(
    state: AppState,
    task_id: str,
    completed: bool,
    *,
    now: float | None = None,
) -> dict[str, TaskPatch]:
    """
    Explicit user toggle of one task, followed by bottom-up propagation.

    Returns every patch committed, keyed by task id (the toggled task included).
    """
    if now is None:
        now = time.time()

    with state.lock:
        tasks = state.task_store.list_tasks()
        task = find_task(task_id, tasks)
        working = index_by_id(tasks)

        own: TaskPatch = {
            "status": TaskStatus.COMPLETED if completed else TaskStatus.TODO,
            "completed": bool(completed),
            "completed_at": now if completed else None,
            "updated_at": now,
        }
        working[task_id] = apply_patch(task, own)

        patches: dict[str, TaskPatch] = {task_id: own}
        upward = propagate_upward(task_id, working.values(), now=now)
        _apply_all(working, upward)
        _merge(patches, upward)

        patches = _normalized(working, patches)
        state.task_store.commit(patches=patches)

    logger.info(
        "Task %s -> %s (%d ancestor update(s))",
        task_id,
        "completed" if completed else "todo",
        len(patches) - 1,
    )
    return patches


def move_task(
    state: AppState,
    task_id: str,
    new_parent_id: str,
    *,
    now: float | None = None,
) -> dict[str, TaskPatch]:
    """
    Re-parent a task, keep the whole subtree's depth consistent, and re-derive
    the status of both the old and the new parent chains.
    """
    if now is None:
        now = time.time()

    with state.lock:
        tasks = state.task_store.list_tasks()
        task = find_task(task_id, tasks)
        old_parent_id = task.parent_task_id

        move_patch = move_subtask(task_id, new_parent_id, tasks, now=now)
        working = index_by_id(tasks)
        working[task_id] = apply_patch(task, move_patch)

        patches: dict[str, TaskPatch] = {task_id: move_patch}
        depth_patches = rebase_depths(task_id, move_patch["depth"], working.values(), now=now)
        _apply_all(working, depth_patches)
        _merge(patches, depth_patches)

        if old_parent_id is not None and old_parent_id != new_parent_id:
            _merge(patches, _settle_from(old_parent_id, working, now))
        _merge(patches, _settle_from(new_parent_id, working, now))

        patches = _normalized(working, patches)
        state.task_store.commit(patches=patches)

    logger.info(
        "Task %s moved %s -> %s (%d record(s) updated)",
        task_id,
        old_parent_id,
        new_parent_id,
        len(patches),
    )
    return patches


def reorder_subtasks(
    state: AppState,
    parent_id: str,
    ordered_ids: Iterable[str],
    *,
    now: float | None = None,
) -> list[Task]:
    with state.lock:
        tasks = state.task_store.list_tasks()
        find_task(parent_id, tasks)
        updated = _reorder(parent_id, list(ordered_ids), tasks, now=now)
        before = {t.id: t.sort_order for t in tasks}
        changed = [t for t in updated if before.get(t.id) != t.sort_order]
        if changed:
            state.task_store.commit(upserts=updated)

    logger.info(
        "Reordered children of %s (%d sibling(s), %d moved)", parent_id, len(updated), len(changed)
    )
    return updated


def delete_task(state: AppState, task_id: str, *, now: float | None = None) -> list[str]:
    """Cascade-delete a task and its subtree, then re-derive the former parent chain."""
    if now is None:
        now = time.time()

    with state.lock:
        tasks = state.task_store.list_tasks()
        task = find_task(task_id, tasks)
        ids = cascade_delete_ids(task_id, tasks)

        removed = set(ids)
        working = {t.id: t for t in tasks if t.id not in removed}
        patches: dict[str, TaskPatch] = {}
        if task.parent_task_id is not None and task.parent_task_id in working:
            patches = _settle_from(task.parent_task_id, working, now)

        state.task_store.commit(patches=_normalized(working, patches), deletes=ids)

    logger.info("Deleted task %s with %d descendant(s)", task_id, len(ids) - 1)
    return ids


def record_pomodoro(
    state: AppState,
    task_id: str,
    minutes: float,
    *,
    now: float | None = None,
) -> TaskPatch:
    """
    Timer write-back after a finished focus session on the linked task:
    time_spent grows by `minutes`, pomodoro_count by one.
    """
    if minutes < 0:
        raise ValueError("minutes must be >= 0")
    if now is None:
        now = time.time()

    with state.lock:
        task = state.task_store.get_task(task_id)
        if task is None:
            raise TaskNotFound(task_id)
        patch: TaskPatch = {
            "time_spent": (task.time_spent or 0) + float(minutes),
            "pomodoro_count": task.pomodoro_count + 1,
            "updated_at": now,
        }
        state.task_store.commit(patches={task_id: patch})

    logger.info("Pomodoro recorded task=%s minutes=%s total=%s", task_id, minutes, patch["time_spent"])
    return patch
