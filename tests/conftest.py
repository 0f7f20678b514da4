# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from todo_notifications.core.state import AppState
from todo_notifications.repository.offline import OfflineRepositoryProvider
from todo_notifications.todos.label_priorities import SqliteLabelPriorities, StaticLabelPriorities
from todo_notifications.todos.todo_service import TodoService
from todo_notifications.todos.todo_store import TodoStore

from .fakes import FakeEntityLookup, FakeNoteLookup, FakeRepositoryProvider, FakeUserLookup


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI.

    We intentionally use a SimpleNamespace rather than reading the environment,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="todo-notifications-test",
        log_level="DEBUG",
        console_enabled=False,
        data_dir=tmp_path,
        todos_db_path=tmp_path / "todos.sqlite3",
        repository_base_url="",
        repository_token=None,
        repository_connect_timeout_seconds=1.0,
        repository_read_timeout_seconds=1.0,
        keep_around_enabled=True,
        keep_around_interval_seconds=0.01,
        keep_around_retry_delay_seconds=0.0,
        keep_around_max_attempts=2,
        keep_around_batch_limit=10,
    )


@pytest.fixture()
def priorities() -> StaticLabelPriorities:
    return StaticLabelPriorities()


@pytest.fixture()
def store(settings: SimpleNamespace, priorities: StaticLabelPriorities) -> TodoStore:
    return TodoStore(settings.todos_db_path, priorities=priorities)


@pytest.fixture()
def repositories() -> FakeRepositoryProvider:
    return FakeRepositoryProvider()


@pytest.fixture()
def entities() -> FakeEntityLookup:
    return FakeEntityLookup()


@pytest.fixture()
def notes() -> FakeNoteLookup:
    return FakeNoteLookup()


@pytest.fixture()
def users() -> FakeUserLookup:
    return FakeUserLookup()


@pytest.fixture()
def service(
    store: TodoStore,
    repositories: FakeRepositoryProvider,
    entities: FakeEntityLookup,
    notes: FakeNoteLookup,
    users: FakeUserLookup,
) -> TodoService:
    return TodoService(store, repositories=repositories, entities=entities, notes=notes, users=users)


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState wired like the CLI does it, but offline.

    NOTE: We keep the real SQLite stores here because their behavior is what
    the console commands expose.
    """
    sqlite_priorities = SqliteLabelPriorities(settings.todos_db_path)
    todo_store = TodoStore(settings.todos_db_path, priorities=sqlite_priorities)
    repos = OfflineRepositoryProvider()
    return AppState(
        settings=settings,
        store=todo_store,
        service=TodoService(todo_store, repositories=repos, entities=FakeEntityLookup()),
        priorities=sqlite_priorities,
        repositories=repos,
        offline=True,
    )
