# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from focusflow.core.state import AppState
from focusflow.tasks.task_store import TaskStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="focusflow-test",
        log_level="DEBUG",
        console_enabled=False,
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        max_depth=3,
    )


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState wired with a real SQLite TaskStore.

    The store's transactional commit is part of what we want to test.
    """
    return AppState(settings=settings, task_store=TaskStore(settings.tasks_db_path))
