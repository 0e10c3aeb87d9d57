# src/focusflow/tasks/errors.py

from __future__ import annotations


class TaskHierarchyError(Exception):
    """Base class for task hierarchy failures."""


class TaskNotFound(TaskHierarchyError, LookupError):
    """A referenced task id is absent from the supplied collection."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class InvalidOperation(TaskHierarchyError, ValueError):
    """The operation would break the forest structure (e.g. create a cycle)."""
