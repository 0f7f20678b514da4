# src/todo_notifications/todos/errors.py

from __future__ import annotations


class TodoError(Exception):
    """Base class for errors raised by the todo subsystem."""


class ValidationError(TodoError):
    """A todo could not be created because one or more attributes are invalid."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("Validation failed: " + ", ".join(self.errors))


class InvalidTransitionError(TodoError):
    """The requested state change is not allowed from the todo's current state."""

    def __init__(self, todo_id: int, current_state: str, event: str = "done") -> None:
        self.todo_id = todo_id
        self.current_state = current_state
        self.event = event
        super().__init__(f"Cannot transition todo {todo_id} via :{event} from :{current_state}")


class TodoNotFoundError(TodoError):
    def __init__(self, todo_id: int) -> None:
        self.todo_id = todo_id
        super().__init__(f"Todo {todo_id} not found")


class CommitResolutionError(TodoError):
    """The repository service could not be asked about a commit (not the same as "no such commit")."""
