# src/focusflow/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs the console REPL.
"""

from __future__ import annotations

import logging

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import level_from_name, setup_logging

logger = logging.getLogger(__name__)


def _shutdown(state) -> None:
    """Best-effort shutdown."""
    # TaskStore uses short-lived sqlite connections per call; close() is a no-op hook.
    store = getattr(state, "task_store", None)
    if store is not None and hasattr(store, "close"):
        store.close()


def main() -> None:
    settings = get_settings()

    setup_logging(
        log_dir=getattr(settings, "data_dir", ".local/focusflow"),
        console_level=level_from_name(getattr(settings, "log_level", None)),
        engine_level=level_from_name(getattr(settings, "engine_log_level", None)),
    )

    logger.info("Starting %s...", getattr(settings, "app_name", "focusflow"))

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    try:
        if settings.console_enabled:
            run_console_loop(state)
        else:
            logger.info("Console disabled; nothing to run.")
    finally:
        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
