# src/todo_notifications/todos/todo_models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum, StrEnum
from typing import Any

from .errors import ValidationError


class TodoAction(IntEnum):
    """Why a todo was raised. Values are persisted; never renumber them."""

    ASSIGNED = 1
    MENTIONED = 2
    BUILD_FAILED = 3
    MARKED = 4
    APPROVAL_REQUIRED = 5

    @property
    def action_name(self) -> str:
        return ACTION_NAMES[self]


ACTION_NAMES: dict[TodoAction, str] = {
    TodoAction.ASSIGNED: "assigned",
    TodoAction.MENTIONED: "mentioned",
    TodoAction.BUILD_FAILED: "build_failed",
    TodoAction.MARKED: "marked",
    TodoAction.APPROVAL_REQUIRED: "approval_required",
}


class TodoState(StrEnum):
    """
    Todo lifecycle state.

    The only transition is pending -> done (event "done"); done is terminal.
    """

    PENDING = "pending"
    DONE = "done"

    @classmethod
    def from_db(cls, raw: str | None) -> TodoState:
        if not raw:
            return cls.PENDING
        return cls(raw)


# event -> (allowed from-states, to-state)
TRANSITIONS: dict[str, tuple[frozenset[TodoState], TodoState]] = {
    "done": (frozenset({TodoState.PENDING}), TodoState.DONE),
}


class TargetType(StrEnum):
    ISSUE = "Issue"
    MERGE_REQUEST = "MergeRequest"
    COMMIT = "Commit"


# Kinds whose labels carry a priority; everything else sorts as "no priority".
PRIORITIZED_TARGET_TYPES: tuple[str, ...] = (TargetType.ISSUE.value, TargetType.MERGE_REQUEST.value)


class SortOrder(StrEnum):
    RECENCY = "recency"  # id DESC
    PRIORITY = "priority"
    ID_ASC = "id_asc"
    CREATED_ASC = "created_asc"
    CREATED_DESC = "created_desc"
    UPDATED_ASC = "updated_asc"
    UPDATED_DESC = "updated_desc"

    @classmethod
    def parse(cls, method: str) -> SortOrder:
        """Accept both enum values and the legacy sort method names (id_desc, ...)."""
        raw = (method or "").strip().lower()
        if raw == "id_desc":
            return cls.RECENCY
        try:
            return cls(raw)
        except ValueError:
            raise ValueError(f"Unknown sort order: {method!r}") from None


@dataclass(frozen=True, slots=True)
class TargetRef:
    """
    Tagged reference to the subject of a todo.

    For stored entities `id` is the entity id; for commits it is the commit sha,
    which is persisted in `commit_id` instead of `target_id`.
    """

    kind: str
    id: Any

    @classmethod
    def issue(cls, issue_id: int) -> TargetRef:
        return cls(TargetType.ISSUE.value, issue_id)

    @classmethod
    def merge_request(cls, merge_request_id: int) -> TargetRef:
        return cls(TargetType.MERGE_REQUEST.value, merge_request_id)

    @classmethod
    def commit(cls, sha: str) -> TargetRef:
        return cls(TargetType.COMMIT.value, sha)

    @property
    def is_commit(self) -> bool:
        return self.kind == TargetType.COMMIT.value


@dataclass(frozen=True, slots=True)
class Todo:
    id: int
    action: TodoAction
    author_id: int | None
    user_id: int
    project_id: int

    target_type: str
    target_id: int | None
    commit_id: str | None
    note_id: int | None

    state: TodoState
    created_at: float
    updated_at: float

    @property
    def target(self) -> TargetRef:
        if self.target_type == TargetType.COMMIT.value:
            return TargetRef(self.target_type, self.commit_id)
        return TargetRef(self.target_type, self.target_id)

    @property
    def for_commit(self) -> bool:
        return self.target_type == TargetType.COMMIT.value

    @property
    def is_pending(self) -> bool:
        return self.state == TodoState.PENDING

    @property
    def is_done(self) -> bool:
        return self.state == TodoState.DONE


def _blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _integral(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, str) and value.strip().isdigit()


def validate_new_todo(
    *,
    action: Any,
    user_id: Any,
    project_id: Any,
    target: TargetRef | None,
) -> TodoAction:
    """
    Check the attributes of a todo about to be created.

    Collects every violated rule and raises a single ValidationError; returns the
    normalized action on success.
    """
    errors: list[str] = []
    normalized: TodoAction | None = None

    if _blank(action):
        errors.append("action can't be blank")
    else:
        try:
            normalized = TodoAction(action)
        except ValueError:
            errors.append(f"action is not included in the list ({action!r})")

    if _blank(project_id):
        errors.append("project can't be blank")
    if _blank(user_id):
        errors.append("user can't be blank")

    kind = target.kind if target is not None else None
    if _blank(kind):
        errors.append("target_type can't be blank")
    elif target is not None and target.is_commit:
        if _blank(target.id):
            errors.append("commit_id can't be blank")
    elif target is not None and _blank(target.id):
        errors.append("target_id can't be blank")
    elif target is not None and not _integral(target.id):
        errors.append("target_id is not a number")

    if errors or normalized is None:
        raise ValidationError(errors)
    return normalized


class KeepAroundStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"  # claimed by a worker
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class KeepAroundRequest:
    """A queued instruction to pin a commit in its project's repository."""

    id: int
    todo_id: int | None
    project_id: int
    commit_id: str
    status: KeepAroundStatus
    attempts: int
    due_at: float
    created_at: float
    updated_at: float
