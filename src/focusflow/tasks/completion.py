# src/focusflow/tasks/completion.py

"""
Completion propagation.

A parent's status is derived from its direct children only. Propagation is
never implicit: callers invoke derive_parent_update() (or propagate_upward()
for the whole ancestor chain) after a leaf mutation and commit the patches.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable

from .hierarchy import children, index_by_id
from .task_models import Task, TaskPatch, TaskStatus, apply_patch

logger = logging.getLogger(__name__)


def derive_parent_update(
    parent: Task,
    collection: Iterable[Task],
    *,
    now: float | None = None,
) -> TaskPatch:
    """
    Status transition for `parent` given its direct children.

    - no children                    -> {} (leaves are never auto-transitioned)
    - all children completed         -> completed (+ completed_at), unless already completed
    - some completed, parent todo    -> in-progress
    - none completed, in-progress    -> back to todo
    Any non-empty patch carries a fresh updated_at.
    """
    kids = children(parent.id, collection)
    if not kids:
        return {}

    if now is None:
        now = time.time()

    n_done = sum(1 for k in kids if k.completed)
    patch: TaskPatch = {"updated_at": now}

    if n_done == len(kids) and not parent.completed:
        patch["status"] = TaskStatus.COMPLETED
        patch["completed"] = True
        patch["completed_at"] = now
    elif n_done > 0 and parent.status == TaskStatus.TODO:
        patch["status"] = TaskStatus.IN_PROGRESS
    elif n_done == 0 and parent.status == TaskStatus.IN_PROGRESS:
        patch["status"] = TaskStatus.TODO

    if "status" in patch:
        logger.debug(
            "Parent %s: %s -> %s (%d/%d children done)",
            parent.id,
            parent.status.value,
            patch["status"].value,
            n_done,
            len(kids),
        )
    return patch


def propagate_upward(
    task_id: str,
    collection: Iterable[Task],
    *,
    now: float | None = None,
) -> dict[str, TaskPatch]:
    """
    Derive patches for every ancestor of `task_id`, nearest parent first.

    Each patch is applied to a working copy before the next level is derived,
    so a grandparent sees its child's new state. Returns {task_id: patch};
    ancestors whose derived patch is empty are omitted.
    """
    if now is None:
        now = time.time()

    working = index_by_id(collection)
    out: dict[str, TaskPatch] = {}
    seen: set[str] = {task_id}

    current = working.get(task_id)
    while current is not None and current.parent_task_id is not None:
        pid = current.parent_task_id
        if pid in seen:
            break
        seen.add(pid)
        parent = working.get(pid)
        if parent is None:
            break

        patch = derive_parent_update(parent, working.values(), now=now)
        if patch:
            out[pid] = patch
            parent = apply_patch(parent, patch)
            working[pid] = parent
        current = parent
    return out
