# src/todo_notifications/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (store/priorities/repository/service).
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import RepositoryProvider
from ..core.state import AppState
from ..repository.http_client import HttpRepositoryProvider
from ..repository.offline import OfflineEntityLookup, OfflineRepositoryProvider
from ..todos.label_priorities import SqliteLabelPriorities
from ..todos.todo_service import TodoService
from ..todos.todo_store import TodoStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.todos_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    repositories: RepositoryProvider
    offline = False
    try:
        repositories = HttpRepositoryProvider(settings)
    except RuntimeError:
        logger.info("No repository service configured; commit lookups and keep-around are offline.")
        repositories = OfflineRepositoryProvider()
        offline = True

    priorities = SqliteLabelPriorities(settings.todos_db_path)
    store = TodoStore(settings.todos_db_path, priorities=priorities)
    service = TodoService(store, repositories=repositories, entities=OfflineEntityLookup())

    return AppState(
        settings=settings,
        store=store,
        service=service,
        priorities=priorities,
        repositories=repositories,
        offline=offline,
    )
