# src/focusflow/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

ENGINE_LOGGER = "focusflow.tasks"


def level_from_name(name: str | None, default: int = logging.INFO) -> int:
    """Map "debug"/"INFO"/... to a logging level, falling back to `default`."""
    if not name:
        return default
    level = logging.getLevelName(str(name).strip().upper())
    return level if isinstance(level, int) else default


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console filter:
    - focusflow.tasks.* (engine, store, workflows) only at `engine_level` and above
    - other focusflow loggers at `app_level` and above
    - py.warnings and third-party loggers only at ERROR and above
    """

    def __init__(self, engine_level: int = logging.INFO, app_level: int = logging.INFO) -> None:
        super().__init__()
        self.engine_level = engine_level
        self.app_level = app_level

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name == ENGINE_LOGGER or name.startswith(ENGINE_LOGGER + "."):
            return record.levelno >= self.engine_level
        if name.startswith("focusflow."):
            return record.levelno >= self.app_level

        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/focusflow",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    engine_level: int = logging.INFO,
) -> None:
    """
    Install a filtered stderr handler and a full DEBUG file log
    (`<log_dir>/focusflow.log`).

    `engine_level` only affects the console; the file always gets everything
    at `file_level`. Call once, before the first log call.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(min(console_level, engine_level))
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter(engine_level, console_level))
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_dir / "focusflow.log"), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    logging.captureWarnings(True)
