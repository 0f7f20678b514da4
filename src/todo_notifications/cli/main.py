# src/todo_notifications/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts:
- the keep-around worker in a background thread (optional),
- the admin console in the main thread (optional).
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state
from ..cli.console import run_console_loop
from ..config import get_settings
from ..logging_setup import setup_logging
from ..todos import keep_around
from ..todos.keep_around import KeepAroundBackgroundRunner, start_keep_around_in_background

logger = logging.getLogger(__name__)


def _shutdown(state) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        repositories = getattr(state, "repositories", None)
        if repositories is not None and hasattr(repositories, "close"):
            repositories.close()
    except Exception:
        logger.debug("Repository client close failed.", exc_info=True)

    # TodoStore uses short-lived sqlite connections per call; no explicit close required.


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(
        log_dir=getattr(settings, "data_dir", ".local/todos"),
        console_level=console_level,
        background_loggers=(keep_around.logger.name,),
    )

    logger.info("Starting %s...", getattr(settings, "app_name", "todo-notifications"))

    state = create_initial_state(settings=settings)

    worker: KeepAroundBackgroundRunner | None = start_keep_around_in_background(
        state.store, state.repositories, settings
    )

    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        signal.signal(signal.SIGINT, _handle_signal)
        signal.signal(signal.SIGTERM, _handle_signal)
    except (ValueError, OSError, AttributeError):
        # Not in the main thread, or SIGTERM unsupported on this platform.
        pass

    try:
        if settings.console_enabled:
            run_console_loop(state)
            stop_main.set()
        else:
            logger.info("Console disabled. Running keep-around worker only. Press Ctrl+C to stop.")
            stop_main.wait()

    finally:
        if worker is not None:
            worker.stop()
            worker.join(timeout=10.0)

        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
