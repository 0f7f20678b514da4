# src/todo_notifications/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The service depends on Protocols instead of concrete implementations.
This keeps storage, the repository service and the host application's entity
lookups swappable and makes testing easier.
"""

from collections.abc import Iterator
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ..todos.targets import Commit, Note, Target, User
    from ..todos.todo_models import SortOrder, TargetRef, Todo, TodoState


class LabelPriorityResolver(Protocol):
    """Minimal (most urgent) label priority of an issue/merge request, or None."""

    def highest_priority(self, target_type: str, target_id: int) -> int | None: ...


class ProjectRepository(Protocol):
    def keep_around(self, commit_id: str) -> None: ...

    # None means "no such commit".
    def commit(self, commit_id: str) -> Commit | None: ...


class RepositoryProvider(Protocol):
    def repository_for(self, project_id: int) -> ProjectRepository: ...


class EntityLookup(Protocol):
    """Host-application lookup for stored targets (issues, merge requests, ...)."""

    def find(self, target_type: str, target_id: int) -> Target | None: ...


class NoteLookup(Protocol):
    def find_note(self, note_id: int) -> Note | None: ...


class UserLookup(Protocol):
    def find_user(self, user_id: int) -> User | None: ...


class TodoRepo(Protocol):
    # Contract API
    def create(
            self,
            *,
            action: Any,
            author_id: int | None,
            user_id: int,
            project_id: int,
            target: TargetRef,
            note_id: int | None = None,
            now_ts: float | None = None,
    ) -> Todo: ...

    def complete(self, todo_id: int, now_ts: float | None = None) -> Todo: ...
    def iter_todos(self, user_id: int, *, state: TodoState, order: SortOrder) -> Iterator[Todo]: ...
    def get(self, todo_id: int) -> Todo | None: ...
    def count(self, user_id: int, *, state: TodoState) -> int: ...

    # Keep-around outbox API (worker)
    def list_due_keep_arounds(self, *, now_ts: float, limit: int = 32) -> list[Any]: ...
    def try_claim_keep_around(self, request_id: int) -> bool: ...
    def finish_keep_around(self, request_id: int) -> None: ...
    def reschedule_keep_around(self, request_id: int, *, due_at: float) -> None: ...
    def fail_keep_around(self, request_id: int) -> None: ...
    def release_stale_keep_arounds(self) -> int: ...
