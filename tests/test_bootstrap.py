# tests/test_bootstrap.py

from __future__ import annotations

import logging
from types import SimpleNamespace

from focusflow.cli.bootstrap import audit_store, create_initial_state
from focusflow.core.state import AppState
from focusflow.tasks.task_store import TaskStore

from .fakes import FakeTaskRepo, make_task


def test_create_initial_state_wires_sqlite_store(settings: SimpleNamespace) -> None:
    settings.data_dir = settings.data_dir / "nested"
    settings.tasks_db_path = settings.data_dir / "db" / "tasks.sqlite3"

    state = create_initial_state(settings=settings)

    assert isinstance(state.task_store, TaskStore)
    assert state.settings is settings
    assert settings.tasks_db_path.parent.is_dir()
    assert state.task_store.count_tasks() == 0


def test_audit_store_clean_forest_has_no_problems() -> None:
    root = make_task("root")
    repo = FakeTaskRepo([root, make_task("a", root)])
    state = AppState(settings=SimpleNamespace(), task_store=repo)

    assert audit_store(state) == []


def test_audit_store_reports_cycles_and_stale_depths(caplog) -> None:
    root = make_task("root")
    stale = make_task("stale", root, depth=4)
    x = make_task("x", parent_task_id="y", depth=1)
    y = make_task("y", parent_task_id="x", depth=1)
    state = AppState(settings=SimpleNamespace(), task_store=FakeTaskRepo([root, stale, x, y]))

    with caplog.at_level(logging.WARNING, logger="focusflow.cli.bootstrap"):
        problems = audit_store(state)

    assert len(problems) == 2
    assert any("cycle" in p for p in problems)
    assert any("stale" in p and "expected 1" in p for p in problems)
    assert sum(1 for r in caplog.records if r.levelno == logging.WARNING) == 2
