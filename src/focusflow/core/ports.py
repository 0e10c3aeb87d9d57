# src/focusflow/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the workflows.

The workflows depend on Protocols instead of concrete implementations.
This keeps storage swappable and makes testing easier.
"""

from collections.abc import Iterable, Mapping
from typing import Any, Protocol


class TaskRepo(Protocol):
    """
    Persistent task collection.

    Contract expected by the hierarchy engine's callers:
    - list_tasks() returns the full flat collection (a snapshot),
    - commit() applies a whole batch atomically and is visible to the next read.
    """

    def count_tasks(self) -> int: ...
    def list_tasks(self) -> list[Any]: ...
    def get_task(self, task_id: str) -> Any | None: ...

    def commit(
            self,
            *,
            upserts: Iterable[Any] = (),
            patches: Mapping[str, dict[str, Any]] | None = None,
            deletes: Iterable[str] = (),
    ) -> None: ...
