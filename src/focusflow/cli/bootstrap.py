# src/focusflow/cli/bootstrap.py

"""
Composition root for the console app: local directories, the SQLite task
store, and a startup audit of the stored forest.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.state import AppState
from ..tasks.errors import InvalidOperation
from ..tasks.hierarchy import check_acyclic, depth_mismatches
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def audit_store(state: AppState) -> list[str]:
    """
    Check the stored forest for parent cycles and stale depths.

    Problems are logged as warnings and returned; the app still starts so
    /check and /move can be used to repair the data.
    """
    tasks = state.task_store.list_tasks()
    problems: list[str] = []

    try:
        check_acyclic(tasks)
    except InvalidOperation as e:
        problems.append(str(e))

    for task_id, expected in depth_mismatches(tasks).items():
        problems.append(f"Task {task_id} has stale depth (expected {expected})")

    for p in problems:
        logger.warning("Store audit: %s", p)
    logger.info("Loaded %d task(s) from %s", len(tasks), getattr(state.settings, "tasks_db_path", "?"))
    return problems


def create_initial_state(*, settings=None) -> AppState:
    """Build AppState from `settings` (default: get_settings()) and audit the store."""
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    state = AppState(settings=settings, task_store=TaskStore(settings.tasks_db_path))
    audit_store(state)
    return state
