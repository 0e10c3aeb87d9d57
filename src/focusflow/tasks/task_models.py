# src/focusflow/tasks/task_models.py

from __future__ import annotations

import time
from dataclasses import dataclass, field, fields, replace
from enum import StrEnum
from typing import Any

from .errors import InvalidOperation

TaskPatch = dict[str, Any]
# Partial record: field name -> new value. Applied with apply_patch().


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Written by two independent writers:
    - the user (explicit completion toggle),
    - the completion propagator (derived from direct children).
    """

    TODO = "todo"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.TODO
        try:
            return cls(raw)
        except ValueError:
            return cls.TODO


class TaskType(StrEnum):
    BRAIN = "brain"
    ADMIN = "admin"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskType:
        if not raw:
            return cls.BRAIN
        try:
            return cls(raw)
        except ValueError:
            return cls.BRAIN


class TaskPeriod(StrEnum):
    MORNING = "morning"
    AFTERNOON = "afternoon"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskPeriod:
        if not raw:
            return cls.MORNING
        try:
            return cls(raw)
        except ValueError:
            return cls.MORNING


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskPriority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(raw)
        except ValueError:
            return cls.MEDIUM


@dataclass(frozen=True, slots=True)
class Task:
    """
    One node of the task forest.

    Records are never mutated in place: every engine operation returns new
    records (or patches) and the caller commits them to its collection.
    Times are epoch seconds; durations (time_estimate / time_spent) are minutes.
    """

    id: str
    title: str = ""
    description: str = ""

    type: TaskType = TaskType.BRAIN
    period: TaskPeriod = TaskPeriod.MORNING
    status: TaskStatus = TaskStatus.TODO
    completed: bool = False
    priority: TaskPriority = TaskPriority.MEDIUM
    tags: list[str] = field(default_factory=list)
    context_tags: list[str] = field(default_factory=list)

    # hierarchy
    parent_task_id: str | None = None
    depth: int = 0
    is_subtask: bool = False
    sort_order: int | None = None

    # time accounting
    time_estimate: float | None = None
    time_spent: float = 0.0
    pomodoro_count: int = 0

    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    completed_at: float | None = None
    scheduled_for: str | None = None
    due_date: str | None = None
    due_time: str | None = None

    energy: str | None = None
    focus: str | None = None

    @property
    def is_root(self) -> bool:
        return self.parent_task_id is None


@dataclass(frozen=True, slots=True)
class FlatTask:
    """A task positioned in a linear (display-ordered) rendering of the forest."""

    task: Task
    indent: int


TASK_FIELDS: frozenset[str] = frozenset(f.name for f in fields(Task))

_ENUM_FIELDS: dict[str, type[StrEnum]] = {
    "status": TaskStatus,
    "type": TaskType,
    "period": TaskPeriod,
    "priority": TaskPriority,
}


def check_patch_fields(patch: TaskPatch) -> None:
    unknown = sorted(k for k in patch if k not in TASK_FIELDS)
    if unknown:
        raise InvalidOperation(f"Unknown task field(s): {', '.join(unknown)}")
    if "id" in patch:
        raise InvalidOperation("Task id is immutable")


def normalize_patch(task: Task, patch: TaskPatch) -> TaskPatch:
    """
    Validate `patch` against `task` and fill in the fields it implies.

    Keeps the convenience flags in sync:
    - completed follows status when only status is patched (and vice versa),
    - is_subtask follows parent_task_id.
    """
    check_patch_fields(patch)

    values = dict(patch)
    for name, enum_cls in _ENUM_FIELDS.items():
        if name in values:
            values[name] = enum_cls(values[name])
    if "status" in values and "completed" not in values:
        values["completed"] = TaskStatus(values["status"]) == TaskStatus.COMPLETED
    elif "completed" in values and "status" not in values:
        if values["completed"]:
            values["status"] = TaskStatus.COMPLETED
        elif task.status == TaskStatus.COMPLETED:
            values["status"] = TaskStatus.TODO
    if "parent_task_id" in values:
        values["is_subtask"] = values["parent_task_id"] is not None
    return values


def apply_patch(task: Task, patch: TaskPatch) -> Task:
    """Return a copy of `task` with `patch` applied (see normalize_patch)."""
    if not patch:
        return task
    return replace(task, **normalize_patch(task, patch))
