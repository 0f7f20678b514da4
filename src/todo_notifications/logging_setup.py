# src/todo_notifications/logging_setup.py

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from pathlib import Path

APP_LOGGER = __name__.partition(".")[0]


def _within(name: str, parent: str) -> bool:
    return name == parent or name.startswith(parent + ".")


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the console readable while the prompt is active.

    Records from `app_logger` pass, except those from `background_loggers`,
    which print only at WARNING+ so worker chatter does not interleave with the
    prompt. Anything else, 'py.warnings' included, needs ERROR+.
    """

    def __init__(self, app_logger: str = APP_LOGGER, background_loggers: Iterable[str] = ()) -> None:
        super().__init__()
        self.app_logger = app_logger
        self.background_loggers = tuple(background_loggers)

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if any(_within(name, bg) for bg in self.background_loggers):
            return record.levelno >= logging.WARNING

        if _within(name, self.app_logger):
            return True

        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/todos",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    background_loggers: Iterable[str] = (),
    quiet_libraries: Iterable[str] = ("httpx", "httpcore"),
) -> None:
    """
    Configure logging with:
    - Console handler: filtered for interactive use (see _ConsoleNoiseFilter)
    - File handler: everything at file_level, in log_dir/todos.log

    Call this ONCE, early in main().
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "todos.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter(background_loggers=background_loggers))
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    logging.captureWarnings(True)

    # Request lines from the HTTP stack stay out of both handlers.
    for name in quiet_libraries:
        logging.getLogger(name).setLevel(logging.WARNING)
