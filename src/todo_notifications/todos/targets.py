# src/todo_notifications/todos/targets.py

from __future__ import annotations

"""
Todo targets.

Issues and merge requests are stored entities owned by the host application and
are looked up through an EntityLookup port. Commits are not stored anywhere in
this component: they are fetched live from the project's repository.

Every target exposes the same small capability set:
- title
- to_reference()   canonical cross-reference ("#12", "!5", full sha)
- short_reference()
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from .todo_models import TargetType, Todo

logger = logging.getLogger(__name__)

COMMIT_SHORT_ID_LENGTH = 8


class Target(Protocol):
    @property
    def title(self) -> str: ...

    def to_reference(self) -> str: ...

    def short_reference(self) -> str: ...


@dataclass(frozen=True, slots=True)
class Issue:
    id: int
    iid: int
    title: str
    project_id: int | None = None

    def to_reference(self) -> str:
        return f"#{self.iid}"

    def short_reference(self) -> str:
        return self.to_reference()


@dataclass(frozen=True, slots=True)
class MergeRequest:
    id: int
    iid: int
    title: str
    project_id: int | None = None

    def to_reference(self) -> str:
        return f"!{self.iid}"

    def short_reference(self) -> str:
        return self.to_reference()


@dataclass(frozen=True, slots=True)
class Commit:
    id: str
    message: str = ""
    author_name: str | None = None

    @property
    def short_id(self) -> str:
        return self.id[:COMMIT_SHORT_ID_LENGTH]

    @property
    def title(self) -> str:
        lines = (self.message or "").strip().splitlines()
        return lines[0].strip() if lines else ""

    def to_reference(self) -> str:
        return self.id

    def short_reference(self) -> str:
        return self.short_id


@dataclass(frozen=True, slots=True)
class Note:
    id: int
    note: str
    author_id: int | None = None


@dataclass(frozen=True, slots=True)
class User:
    id: int
    name: str
    email: str | None = None


class TargetResolver:
    """
    Per-kind dispatch for todo targets.

    `commit_loader(project_id, sha)` fetches a commit live and returns None when
    the commit no longer exists. `entity_loader(kind, id)` returns the stored
    entity or None.
    """

    def __init__(
        self,
        *,
        commit_loader: Callable[[int, str], Commit | None],
        entity_loader: Callable[[str, int], Target | None],
    ) -> None:
        self._commit_loader = commit_loader
        self._entity_loader = entity_loader

    def resolve(self, todo: Todo) -> Target | None:
        if todo.for_commit:
            if not todo.commit_id:
                return None
            commit = self._commit_loader(todo.project_id, todo.commit_id)
            if commit is None:
                logger.debug("Commit %s not found in project %s", todo.commit_id, todo.project_id)
            return commit

        if todo.target_id is None:
            return None
        return self._entity_loader(todo.target_type, todo.target_id)

    def reference(self, todo: Todo) -> str | None:
        target = self.resolve(todo)
        if target is None:
            return None
        if todo.target_type == TargetType.COMMIT.value:
            return target.short_reference()
        return target.to_reference()
