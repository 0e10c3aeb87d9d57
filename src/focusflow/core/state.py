# src/focusflow/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from .ports import TaskRepo


@dataclass
class AppState:
    # Settings object (config.Settings or a SimpleNamespace in tests).
    settings: object

    task_store: TaskRepo

    # Serializes read -> compute -> commit units against the task store.
    lock: threading.RLock = field(default_factory=threading.RLock)
