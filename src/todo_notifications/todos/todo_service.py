# src/todo_notifications/todos/todo_service.py

from __future__ import annotations

"""
Todo service.

The public surface consumed by a web/API layer:
- create / complete / list (state-scoped, explicitly ordered)
- derived accessors (target resolution, display body, reference, action name)

Authentication and authorization happen before this layer: user ids are trusted.
"""

import logging
from collections.abc import Iterator
from typing import Any

from ..core.ports import EntityLookup, NoteLookup, RepositoryProvider, TodoRepo, UserLookup
from .targets import Commit, Target, TargetResolver, User
from .todo_models import SortOrder, TargetRef, Todo, TodoAction, TodoState

logger = logging.getLogger(__name__)


class TodoService:
    def __init__(
        self,
        store: TodoRepo,
        *,
        repositories: RepositoryProvider,
        entities: EntityLookup,
        notes: NoteLookup | None = None,
        users: UserLookup | None = None,
    ) -> None:
        self._store = store
        self._repositories = repositories
        self._notes = notes
        self._users = users
        self._targets = TargetResolver(
            commit_loader=self._load_commit,
            entity_loader=entities.find,
        )

    def _load_commit(self, project_id: int, commit_id: str) -> Commit | None:
        return self._repositories.repository_for(project_id).commit(commit_id)

    # ---- contract ----

    def create(
        self,
        *,
        action: TodoAction | int,
        author_id: int | None,
        user_id: int,
        project_id: int,
        target: TargetRef,
        note_id: int | None = None,
    ) -> Todo:
        todo = self._store.create(
            action=action,
            author_id=author_id,
            user_id=user_id,
            project_id=project_id,
            target=target,
            note_id=note_id,
        )
        logger.info(
            "Todo %s created for user=%s action=%s target=%s",
            todo.id,
            todo.user_id,
            todo.action.action_name,
            todo.target_type,
        )
        return todo

    def complete(self, todo_id: int) -> Todo:
        todo = self._store.complete(todo_id)
        logger.info("Todo %s marked done for user=%s", todo.id, todo.user_id)
        return todo

    def list(self, user_id: int, state: TodoState | str, order: SortOrder | str) -> Iterator[Todo]:
        return self._store.iter_todos(user_id, state=TodoState(state), order=SortOrder(order))

    def sort(self, user_id: int, state: TodoState | str, method: str) -> Iterator[Todo]:
        """Like list(), but takes a sort method name as it arrives from a query string."""
        return self.list(user_id, state, SortOrder.parse(method))

    def get(self, todo_id: int) -> Todo | None:
        return self._store.get(todo_id)

    def pending_count(self, user_id: int) -> int:
        return self._store.count(user_id, state=TodoState.PENDING)

    # ---- derived accessors ----

    @staticmethod
    def is_commit_target(todo: Todo) -> bool:
        return todo.for_commit

    @staticmethod
    def is_build_failed(todo: Todo) -> bool:
        return todo.action == TodoAction.BUILD_FAILED

    @staticmethod
    def action_name(todo: Todo) -> str:
        return todo.action.action_name

    def resolve_target(self, todo: Todo) -> Target | None:
        """
        The todo's subject, or None if it no longer exists.

        Commits are fetched live; a commit removed from history resolves to None.
        CommitResolutionError is raised when the repository service cannot be reached.
        """
        return self._targets.resolve(todo)

    def display_body(self, todo: Todo) -> str | None:
        if todo.note_id is not None and self._notes is not None:
            note = self._notes.find_note(todo.note_id)
            if note is not None:
                return note.note

        target = self.resolve_target(todo)
        return target.title if target is not None else None

    def target_reference(self, todo: Todo) -> str | None:
        return self._targets.reference(todo)

    def author(self, todo: Todo) -> User | None:
        if todo.author_id is None or self._users is None:
            return None
        return self._users.find_user(todo.author_id)

    def author_name(self, todo: Todo) -> str | None:
        author = self.author(todo)
        return author.name if author is not None else None

    def author_email(self, todo: Todo) -> str | None:
        author = self.author(todo)
        return author.email if author is not None else None

    def describe(self, todo: Todo) -> dict[str, Any]:
        """Flat view of a todo for display/serialization by the caller."""
        return {
            "id": todo.id,
            "action": self.action_name(todo),
            "state": todo.state.value,
            "user_id": todo.user_id,
            "author_id": todo.author_id,
            "author_name": self.author_name(todo),
            "project_id": todo.project_id,
            "target_type": todo.target_type,
            "target_id": todo.commit_id if todo.for_commit else todo.target_id,
            "note_id": todo.note_id,
            "created_at": todo.created_at,
        }
