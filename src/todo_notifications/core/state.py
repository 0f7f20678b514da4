# src/todo_notifications/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..todos.label_priorities import SqliteLabelPriorities
from ..todos.todo_service import TodoService
from ..todos.todo_store import TodoStore
from .ports import RepositoryProvider


@dataclass
class AppState:
    # Store Settings on the state for easy access in command handlers.
    settings: Any

    store: TodoStore
    service: TodoService
    priorities: SqliteLabelPriorities
    repositories: RepositoryProvider
    offline: bool = False
