# src/focusflow/tasks/hierarchy.py

"""
Hierarchy index over a flat task collection.

Nothing here is cached: every query recomputes parent -> children relations
from the snapshot it is given. Traversals use an explicit stack plus a visited
set, so an inconsistent collection (e.g. a parent cycle) is truncated instead
of looping forever.
"""

from __future__ import annotations

from collections.abc import Iterable

from .errors import InvalidOperation, TaskNotFound
from .task_models import Task

DEFAULT_MAX_DEPTH = 3


def _sibling_key(task: Task) -> tuple[bool, int, float]:
    # Tasks without sort_order go after the ordered ones.
    return (task.sort_order is None, task.sort_order or 0, task.created_at)


def index_by_id(collection: Iterable[Task]) -> dict[str, Task]:
    return {t.id: t for t in collection}


def find_task(task_id: str, collection: Iterable[Task]) -> Task:
    for t in collection:
        if t.id == task_id:
            return t
    raise TaskNotFound(task_id)


def children(parent_id: str, collection: Iterable[Task]) -> list[Task]:
    """Direct children of `parent_id`, in sibling order."""
    return sorted((t for t in collection if t.parent_task_id == parent_id), key=_sibling_key)


def children_map(collection: Iterable[Task]) -> dict[str, list[Task]]:
    out: dict[str, list[Task]] = {}
    for t in collection:
        if t.parent_task_id is not None:
            out.setdefault(t.parent_task_id, []).append(t)
    for kids in out.values():
        kids.sort(key=_sibling_key)
    return out


def descendants(
    root_id: str,
    collection: Iterable[Task],
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[Task]:
    """
    Descendants of `root_id` in pre-order (each child followed by its own subtree).

    - at most `max_depth` levels below the root are returned (none below 1),
    - the root itself is never part of the result,
    - every id appears at most once, even if the collection has a cycle.
    """
    if max_depth < 1:
        return []

    kids = children_map(collection)
    visited: set[str] = {root_id}
    result: list[Task] = []

    stack: list[tuple[Task, int]] = [(c, 1) for c in reversed(kids.get(root_id, []))]
    while stack:
        task, level = stack.pop()
        if task.id in visited:
            continue
        visited.add(task.id)
        result.append(task)
        if level < max_depth:
            stack.extend((c, level + 1) for c in reversed(kids.get(task.id, [])))
    return result


def subtree(
    root_id: str,
    collection: Iterable[Task],
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[Task]:
    """The root followed by its descendants; empty if the root is unknown."""
    tasks = list(collection)
    by_id = index_by_id(tasks)
    root = by_id.get(root_id)
    if root is None:
        return []
    return [root, *descendants(root_id, tasks, max_depth)]


def ancestors(task_id: str, collection: Iterable[Task]) -> list[Task]:
    """Parent chain of `task_id`, nearest parent first. Stops at a missing parent or a cycle."""
    by_id = index_by_id(collection)
    out: list[Task] = []
    seen: set[str] = {task_id}

    current = by_id.get(task_id)
    while current is not None and current.parent_task_id is not None:
        pid = current.parent_task_id
        if pid in seen:
            break
        seen.add(pid)
        current = by_id.get(pid)
        if current is not None:
            out.append(current)
    return out


def is_descendant(candidate_id: str, ancestor_id: str, collection: Iterable[Task]) -> bool:
    """True if `ancestor_id` appears on the parent chain of `candidate_id`."""
    return any(a.id == ancestor_id for a in ancestors(candidate_id, collection))


def check_acyclic(collection: Iterable[Task]) -> None:
    """
    Strict validation for callers that cannot tolerate truncated traversals.

    Raises InvalidOperation naming a task that sits on a parent cycle.
    """
    by_id = index_by_id(collection)
    state: dict[str, int] = {}  # 1 = on current chain, 2 = known to reach a root

    for start in by_id:
        chain: list[str] = []
        tid: str | None = start
        while tid is not None and tid in by_id and state.get(tid) != 2:
            if state.get(tid) == 1:
                raise InvalidOperation(f"Parent cycle detected at task {tid}")
            state[tid] = 1
            chain.append(tid)
            tid = by_id[tid].parent_task_id
        for done in chain:
            state[done] = 2


def depth_mismatches(collection: Iterable[Task]) -> dict[str, int]:
    """
    Tasks whose stored depth differs from their hop count to a root.

    Returns {task_id: expected_depth}. Tasks that never reach a root
    (cycle or missing parent) are skipped.
    """
    tasks = list(collection)
    out: dict[str, int] = {}
    for t in tasks:
        chain = ancestors(t.id, tasks)
        top = chain[-1] if chain else t
        if top.parent_task_id is not None:
            continue
        expected = len(chain)
        if t.depth != expected:
            out[t.id] = expected
    return out
