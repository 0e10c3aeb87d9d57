# tests/fakes.py

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from focusflow.tasks.task_models import Task, TaskStatus, apply_patch


def make_task(
    task_id: str,
    parent: Task | None = None,
    *,
    sort_order: int | None = None,
    created_at: float = 0.0,
    **fields: Any,
) -> Task:
    """
    Build a Task for tests. Depth and is_subtask follow `parent` unless given.
    """
    if fields.get("completed") and "status" not in fields:
        fields["status"] = TaskStatus.COMPLETED
    parent_id = parent.id if parent is not None else fields.pop("parent_task_id", None)
    depth = fields.pop("depth", parent.depth + 1 if parent is not None else 0)
    return Task(
        id=task_id,
        title=fields.pop("title", task_id),
        parent_task_id=parent_id,
        depth=depth,
        is_subtask=parent_id is not None,
        sort_order=sort_order,
        created_at=created_at,
        updated_at=created_at,
        **fields,
    )


class FakeTaskRepo:
    """
    In-memory TaskRepo.

    Keeps insertion order like a list-backed collection and applies a commit
    batch in the same order as the SQLite store (upserts, patches, deletes).
    """

    def __init__(self, tasks: Iterable[Task] = ()) -> None:
        self.tasks: dict[str, Task] = {t.id: t for t in tasks}
        self.commits = 0

    def count_tasks(self) -> int:
        return len(self.tasks)

    def list_tasks(self) -> list[Task]:
        return list(self.tasks.values())

    def get_task(self, task_id: str) -> Task | None:
        return self.tasks.get(task_id)

    def commit(
        self,
        *,
        upserts: Iterable[Task] = (),
        patches: Mapping[str, dict[str, Any]] | None = None,
        deletes: Iterable[str] = (),
    ) -> None:
        self.commits += 1
        for t in upserts:
            self.tasks[t.id] = t
        for tid, patch in (patches or {}).items():
            if tid in self.tasks:
                self.tasks[tid] = apply_patch(self.tasks[tid], patch)
        for tid in deletes:
            self.tasks.pop(tid, None)
