# src/todo_notifications/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from datetime import datetime
from typing import cast

from ..core.state import AppState
from ..todos.errors import TodoError
from ..todos.todo_models import ACTION_NAMES, SortOrder, TargetRef, TargetType, Todo, TodoAction, TodoState

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

LIST_LIMIT = 50


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /list, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)

            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except TodoError as e:
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _ts_local(ts: float) -> str:
    return datetime.fromtimestamp(ts).astimezone().strftime("%Y-%m-%d %H:%M:%S")


def parse_action(raw: str) -> TodoAction:
    s = (raw or "").strip().lower()
    if s.isdigit():
        return TodoAction(int(s))
    for action, name in ACTION_NAMES.items():
        if name == s:
            return action
    raise ValueError(f"Unknown action: {raw!r}")


def parse_target(raw: str) -> TargetRef:
    """Parse "Issue:10", "MergeRequest:5" or "Commit:<sha>" (kind is case-insensitive)."""
    kind, sep, ident = (raw or "").partition(":")
    if not sep or not ident.strip():
        raise ValueError(f"Expected <Kind>:<id>, got {raw!r}")

    known = {t.value.lower(): t.value for t in TargetType}
    kind = known.get(kind.strip().lower(), kind.strip())
    if kind == TargetType.COMMIT.value:
        return TargetRef.commit(ident.strip())
    return TargetRef(kind, int(ident))


def format_todo(todo: Todo) -> str:
    target = todo.commit_id[:8] if todo.for_commit and todo.commit_id else todo.target_id
    return (
        f"#{todo.id} [{todo.state.value}] {todo.action.action_name} "
        f"{todo.target_type}:{target} project={todo.project_id} ({_ts_local(todo.created_at)})"
    )


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    stats = state.store.keep_around_stats()
    repo = "offline" if state.offline else str(getattr(state.settings, "repository_base_url", ""))
    return (
        "Status:\n"
        f"  Database: {state.store.db_path}\n"
        f"  Todos: {state.store.count_todos()}\n"
        f"  Repository service: {repo}\n"
        f"  Keep-around queue: pending={stats['pending']} failed={stats['failed']}"
    )


def cmd_add(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /add <user_id> <project_id> <action> <Kind:id> [author_id] [note_id]
    """
    if len(args) < 4:
        return "Usage: /add <user_id> <project_id> <action> <Kind:id> [author_id] [note_id]"

    try:
        user_id = int(args[0])
        project_id = int(args[1])
        action = parse_action(args[2])
        target = parse_target(args[3])
        author_id = int(args[4]) if len(args) > 4 else None
        note_id = int(args[5]) if len(args) > 5 else None
    except ValueError as e:
        return f"Error: {e}"

    todo = state.service.create(
        action=action,
        author_id=author_id,
        user_id=user_id,
        project_id=project_id,
        target=target,
        note_id=note_id,
    )
    if todo.for_commit and emit is not None:
        emit(f"Keep-around queued for commit {todo.commit_id}.")
    return f"Created {format_todo(todo)}"


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list <user_id> [pending|done] [recency|priority|created_asc|...]
    """
    if not args:
        return "Usage: /list <user_id> [pending|done] [sort]"

    try:
        user_id = int(args[0])
        todo_state = TodoState(args[1].lower()) if len(args) > 1 else TodoState.PENDING
        order = SortOrder.parse(args[2]) if len(args) > 2 else SortOrder.RECENCY
    except ValueError as e:
        return f"Error: {e}"

    lines: list[str] = []
    for todo in state.service.list(user_id, todo_state, order):
        lines.append(format_todo(todo))
        if len(lines) >= LIST_LIMIT:
            lines.append("...")
            break

    if not lines:
        return f"No {todo_state.value} todos for user {user_id}."
    header = f"{todo_state.value.capitalize()} todos for user {user_id} ({order.value}):"
    return "\n".join([header, *lines])


def cmd_done(state: AppState, args: list[str]) -> str:
    if len(args) != 1 or not args[0].isdigit():
        return "Usage: /done <todo_id>"
    todo = state.service.complete(int(args[0]))
    return f"Done: {format_todo(todo)}"


def cmd_priority(state: AppState, args: list[str]) -> str:
    """
    /priority <Issue|MergeRequest> <id> <label> <value>
    /priority <Issue|MergeRequest> <id> clear
    """
    usage = "Usage: /priority <Issue|MergeRequest> <id> <label> <value> | /priority <kind> <id> clear"
    if len(args) < 3:
        return usage

    try:
        target = parse_target(f"{args[0]}:{args[1]}")
    except ValueError as e:
        return f"Error: {e}"
    if target.is_commit:
        return "Commits have no labels."

    if args[2].lower() == "clear":
        state.priorities.clear(target.kind, int(target.id))
        return f"Cleared label priorities of {target.kind}:{target.id}."

    if len(args) != 4:
        return usage
    try:
        value = int(args[3])
    except ValueError:
        return usage

    state.priorities.set_priority(target.kind, int(target.id), args[2], value)
    highest = state.priorities.highest_priority(target.kind, int(target.id))
    return f"{target.kind}:{target.id} label {args[2]}={value} (highest priority now {highest})."


def cmd_pins(state: AppState, args: list[str]) -> str:
    stats = state.store.keep_around_stats()
    return "Keep-around requests:\n" + "\n".join(f"  {k}: {v}" for k, v in stats.items())


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show database, repository and queue status.")
registry.register(
    "add", cmd_add, help_text="Create a todo: /add <user> <project> <action> <Kind:id> [author] [note]."
)
registry.register("list", cmd_list, help_text="List todos: /list <user> [pending|done] [sort].", aliases=["ls"])
registry.register("done", cmd_done, help_text="Mark a pending todo done: /done <todo_id>.")
registry.register(
    "priority", cmd_priority, help_text="Set label priority: /priority <kind> <id> <label> <value>."
)
registry.register("pins", cmd_pins, help_text="Show keep-around queue counters.")
