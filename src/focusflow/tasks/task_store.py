# src/focusflow/tasks/task_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
from collections.abc import Iterable, Mapping
from dataclasses import fields
from enum import Enum
from pathlib import Path
from typing import Any

from .task_models import (
    Task,
    TaskPatch,
    TaskPeriod,
    TaskPriority,
    TaskStatus,
    TaskType,
    check_patch_fields,
)

logger = logging.getLogger(__name__)

_LIST_COLUMNS = ("tags", "context_tags")
_BOOL_COLUMNS = ("completed", "is_subtask")
_COLUMNS = tuple(f.name for f in fields(Task))


class TaskStore:
    """
    SQLite task store: the persistent collection the hierarchy engine works on.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Writes go through commit(), which applies inserts, patches and deletes in a
    single transaction so the next list_tasks() sees all of them or none.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("TaskStore ready db=%s total=%s", self._db_path, self.count_tasks())

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.DatabaseError):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL DEFAULT '',
                    description TEXT NOT NULL DEFAULT '',
                    type TEXT NOT NULL DEFAULT 'brain',
                    period TEXT NOT NULL DEFAULT 'morning',
                    status TEXT NOT NULL DEFAULT 'todo',
                    completed INTEGER NOT NULL DEFAULT 0,
                    priority TEXT NOT NULL DEFAULT 'medium',
                    tags TEXT NOT NULL DEFAULT '[]',
                    context_tags TEXT NOT NULL DEFAULT '[]',
                    parent_task_id TEXT,
                    depth INTEGER NOT NULL DEFAULT 0,
                    is_subtask INTEGER NOT NULL DEFAULT 0,
                    sort_order INTEGER,
                    time_estimate REAL,
                    time_spent REAL NOT NULL DEFAULT 0,
                    pomodoro_count INTEGER NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    completed_at REAL,
                    scheduled_for TEXT,
                    due_date TEXT,
                    due_time TEXT,
                    energy TEXT,
                    focus TEXT
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            # Columns introduced after the first schema.
            add_col("context_tags", "TEXT NOT NULL DEFAULT '[]'")
            add_col("pomodoro_count", "INTEGER NOT NULL DEFAULT 0")
            add_col("scheduled_for", "TEXT")
            add_col("due_time", "TEXT")
            add_col("energy", "TEXT")
            add_col("focus", "TEXT")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_parent ON tasks(parent_task_id, sort_order)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _list_to_str(items: Iterable[str] | None) -> str:
        return json.dumps(list(items or []), ensure_ascii=False)

    @staticmethod
    def _str_to_list(s: str | None) -> list[str]:
        if not s:
            return []
        try:
            val = json.loads(s)
        except json.JSONDecodeError:
            logger.warning("Malformed list column value %r; using [].", s)
            return []
        return [str(v) for v in val] if isinstance(val, list) else []

    @classmethod
    def _to_db(cls, name: str, value: Any) -> Any:
        if name in _LIST_COLUMNS:
            return cls._list_to_str(value)
        if name in _BOOL_COLUMNS:
            return 1 if value else 0
        if isinstance(value, Enum):
            return value.value
        return value

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            title=str(row["title"] or ""),
            description=str(row["description"] or ""),
            type=TaskType.from_db(row["type"]),
            period=TaskPeriod.from_db(row["period"]),
            status=TaskStatus.from_db(row["status"]),
            completed=bool(row["completed"]),
            priority=TaskPriority.from_db(row["priority"]),
            tags=self._str_to_list(row["tags"]),
            context_tags=self._str_to_list(row["context_tags"]),
            parent_task_id=row["parent_task_id"],
            depth=int(row["depth"] or 0),
            is_subtask=bool(row["is_subtask"]),
            sort_order=int(row["sort_order"]) if row["sort_order"] is not None else None,
            time_estimate=float(row["time_estimate"]) if row["time_estimate"] is not None else None,
            time_spent=float(row["time_spent"] or 0.0),
            pomodoro_count=int(row["pomodoro_count"] or 0),
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
            completed_at=float(row["completed_at"]) if row["completed_at"] is not None else None,
            scheduled_for=row["scheduled_for"],
            due_date=row["due_date"],
            due_time=row["due_time"],
            energy=row["energy"],
            focus=row["focus"],
        )

    # ---- public API ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM tasks")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def list_tasks(self) -> list[Task]:
        """Full snapshot of the collection, oldest first."""
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM tasks ORDER BY created_at ASC, id ASC")
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def get_task(self, task_id: str) -> Task | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM tasks WHERE id = ?", (task_id,))
            row = cur.fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def commit(
        self,
        *,
        upserts: Iterable[Task] = (),
        patches: Mapping[str, TaskPatch] | None = None,
        deletes: Iterable[str] = (),
    ) -> None:
        """
        Apply a batch of changes atomically.

        Order inside the transaction:
          upserts (whole records) -> patches (field updates) -> deletes
        """
        upserts = list(upserts)
        deletes = list(deletes)
        patches = dict(patches or {})
        for patch in patches.values():
            check_patch_fields(patch)

        placeholders = ", ".join("?" for _ in _COLUMNS)
        insert_sql = f"INSERT OR REPLACE INTO tasks({', '.join(_COLUMNS)}) VALUES ({placeholders})"

        conn = self._get_conn()
        try:
            with conn:
                for task in upserts:
                    conn.execute(
                        insert_sql,
                        tuple(self._to_db(name, getattr(task, name)) for name in _COLUMNS),
                    )

                for task_id, patch in patches.items():
                    if not patch:
                        continue
                    assignments = ", ".join(f"{name} = ?" for name in patch)
                    params = [self._to_db(name, value) for name, value in patch.items()]
                    params.append(task_id)
                    conn.execute(f"UPDATE tasks SET {assignments} WHERE id = ?", params)

                if deletes:
                    conn.executemany("DELETE FROM tasks WHERE id = ?", [(tid,) for tid in deletes])
        finally:
            conn.close()

        logger.debug(
            "TaskStore commit upserts=%d patches=%d deletes=%d",
            len(upserts),
            len(patches),
            len(deletes),
        )
