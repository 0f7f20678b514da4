# src/todo_notifications/todos/todo_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from ..core.ports import LabelPriorityResolver
from .errors import InvalidTransitionError, TodoNotFoundError
from .todo_models import (
    PRIORITIZED_TARGET_TYPES,
    TRANSITIONS,
    KeepAroundRequest,
    KeepAroundStatus,
    SortOrder,
    TargetRef,
    Todo,
    TodoAction,
    TodoState,
    validate_new_todo,
)

logger = logging.getLogger(__name__)

_ORDER_BY: dict[SortOrder, str] = {
    SortOrder.RECENCY: "id DESC",
    SortOrder.ID_ASC: "id ASC",
    SortOrder.CREATED_ASC: "created_at ASC, id ASC",
    SortOrder.CREATED_DESC: "created_at DESC, id DESC",
    SortOrder.UPDATED_ASC: "updated_at ASC, id ASC",
    SortOrder.UPDATED_DESC: "updated_at DESC, id DESC",
    # Nulls last, then oldest first; id keeps equal timestamps deterministic.
    SortOrder.PRIORITY: "highest_priority IS NULL, highest_priority ASC, created_at ASC, id ASC",
}


class TodoStore:
    """
    SQLite todo store.

    The schema is migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    - state transitions are a single conditional UPDATE (compare-and-swap on state)

    Commit-targeted todos enqueue a keep-around request in the same transaction
    as the write; the keep-around worker dispatches them later.
    """

    def __init__(
        self,
        db_path: str | Path = "todos.sqlite3",
        *,
        priorities: LabelPriorityResolver | None = None,
    ) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._priorities = priorities
        self._ensure_schema()
        try:
            total = self.count_todos()
        except Exception:
            total = -1
        logger.info("TodoStore ready db=%s total=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ---- low-level helpers ----

    def _get_conn(self, failures: list[Exception] | None = None) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn, [] if failures is None else failures)
        return conn

    def _configure_conn(self, conn: sqlite3.Connection, failures: list[Exception]) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")

        def highest_label_priority(target_type: str | None, target_id: int | None) -> int | None:
            return self._highest_label_priority(target_type, target_id, failures)

        conn.create_function("highest_label_priority", 2, highest_label_priority, deterministic=True)

    def _highest_label_priority(
            self,
            target_type: str | None,
            target_id: int | None,
            failures: list[Exception],
    ) -> int | None:
        """
        SQL-side hook for priority ordering.

        sqlite3 turns any exception raised here into a bare OperationalError,
        so the original is recorded in `failures` for the caller to re-raise.
        """
        if self._priorities is None or not target_type or target_id is None:
            return None
        try:
            value = self._priorities.highest_priority(str(target_type), int(target_id))
        except Exception as e:
            failures.append(e)
            raise
        return None if value is None else int(value)

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS todos (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    action INTEGER NOT NULL,
                    author_id INTEGER,
                    user_id INTEGER NOT NULL,
                    project_id INTEGER NOT NULL,
                    target_type TEXT NOT NULL,
                    target_id INTEGER,
                    commit_id TEXT,
                    note_id INTEGER,
                    state TEXT NOT NULL DEFAULT 'pending',
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )

            cur.execute("PRAGMA table_info(todos)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE todos ADD COLUMN {name} {decl}")
                logger.info("TodoStore migration: added column %s", name)

            add_col("commit_id", "TEXT")
            add_col("note_id", "INTEGER")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_todos_user_state ON todos(user_id, state)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_todos_target ON todos(target_type, target_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_todos_commit ON todos(commit_id)")

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS keep_around_requests (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    todo_id INTEGER,
                    project_id INTEGER NOT NULL,
                    commit_id TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'pending',
                    attempts INTEGER NOT NULL DEFAULT 0,
                    due_at REAL NOT NULL,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_keep_around_due_status ON keep_around_requests(status, due_at)"
            )

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_todo(row: sqlite3.Row) -> Todo:
        return Todo(
            id=int(row["id"]),
            action=TodoAction(int(row["action"])),
            author_id=row["author_id"],
            user_id=int(row["user_id"]),
            project_id=int(row["project_id"]),
            target_type=str(row["target_type"]),
            target_id=row["target_id"],
            commit_id=row["commit_id"],
            note_id=row["note_id"],
            state=TodoState.from_db(row["state"]),
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
        )

    @staticmethod
    def _row_to_keep_around(row: sqlite3.Row) -> KeepAroundRequest:
        return KeepAroundRequest(
            id=int(row["id"]),
            todo_id=row["todo_id"],
            project_id=int(row["project_id"]),
            commit_id=str(row["commit_id"]),
            status=KeepAroundStatus(row["status"]),
            attempts=int(row["attempts"] or 0),
            due_at=float(row["due_at"] or 0.0),
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
        )

    @staticmethod
    def _enqueue_keep_around(cur: sqlite3.Cursor, todo: Todo, now_ts: float) -> None:
        cur.execute(
            """
            INSERT INTO keep_around_requests(
                todo_id, project_id, commit_id, status, attempts, due_at, created_at, updated_at
            )
            VALUES (?, ?, ?, 'pending', 0, ?, ?, ?)
            """,
            (todo.id, todo.project_id, todo.commit_id, now_ts, now_ts, now_ts),
        )
        logger.debug("Keep-around queued todo_id=%s commit=%s", todo.id, todo.commit_id)

    # ---- todos ----

    def count_todos(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM todos").fetchone()
            return int(n)
        finally:
            conn.close()

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
    ) -> Todo:
        normalized = validate_new_todo(action=action, user_id=user_id, project_id=project_id, target=target)

        if now_ts is None:
            now_ts = time.time()

        if target.is_commit:
            target_id, commit_id = None, str(target.id).strip()
        else:
            target_id, commit_id = int(target.id), None

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO todos(
                    action, author_id, user_id, project_id,
                    target_type, target_id, commit_id, note_id,
                    state, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, 'pending', ?, ?)
                """,
                (
                    int(normalized),
                    author_id,
                    int(user_id),
                    int(project_id),
                    target.kind,
                    target_id,
                    commit_id,
                    note_id,
                    float(now_ts),
                    float(now_ts),
                ),
            )
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for todos insert")

            todo = Todo(
                id=int(rowid),
                action=normalized,
                author_id=author_id,
                user_id=int(user_id),
                project_id=int(project_id),
                target_type=target.kind,
                target_id=target_id,
                commit_id=commit_id,
                note_id=note_id,
                state=TodoState.PENDING,
                created_at=float(now_ts),
                updated_at=float(now_ts),
            )
            if todo.for_commit:
                self._enqueue_keep_around(cur, todo, float(now_ts))

            conn.commit()
            logger.debug(
                "Todo added id=%s action=%s user=%s target=%s:%s",
                todo.id,
                normalized.action_name,
                todo.user_id,
                todo.target_type,
                commit_id or target_id,
            )
            return todo
        finally:
            conn.close()

    def complete(self, todo_id: int, now_ts: float | None = None) -> Todo:
        """
        Atomically transition pending -> done.

        Exactly one of several concurrent callers wins; the others (and any
        later caller) get InvalidTransitionError.
        """
        from_states, to_state = TRANSITIONS["done"]
        allowed = [s.value for s in from_states]
        placeholders = ",".join("?" for _ in allowed)

        if now_ts is None:
            now_ts = time.time()

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                f"""
                UPDATE todos
                SET state = ?, updated_at = ?
                WHERE id = ?
                  AND state IN ({placeholders})
                """,
                (to_state.value, float(now_ts), int(todo_id), *allowed),
            )
            if cur.rowcount != 1:
                conn.rollback()
                row = conn.execute("SELECT state FROM todos WHERE id = ?", (int(todo_id),)).fetchone()
                if row is None:
                    raise TodoNotFoundError(int(todo_id))
                raise InvalidTransitionError(int(todo_id), str(row["state"]), event="done")

            row = conn.execute("SELECT * FROM todos WHERE id = ?", (int(todo_id),)).fetchone()
            todo = self._row_to_todo(row)
            if todo.for_commit:
                self._enqueue_keep_around(cur, todo, float(now_ts))

            conn.commit()
            logger.debug("Todo %s -> %s", todo_id, to_state.value)
            return todo
        finally:
            conn.close()

    def get(self, todo_id: int) -> Todo | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM todos WHERE id = ?", (int(todo_id),)).fetchone()
            return self._row_to_todo(row) if row else None
        finally:
            conn.close()

    def count(self, user_id: int, *, state: TodoState) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute(
                "SELECT COUNT(*) FROM todos WHERE user_id = ? AND state = ?",
                (int(user_id), TodoState(state).value),
            ).fetchone()
            return int(n)
        finally:
            conn.close()

    def iter_todos(self, user_id: int, *, state: TodoState, order: SortOrder) -> Iterator[Todo]:
        """
        Lazily yield a user's todos in the given state and order.

        The query runs when iteration starts; the returned iterator is single-use.
        """
        state = TodoState(state)
        order = SortOrder(order)

        if order == SortOrder.PRIORITY:
            kinds = ",".join("?" for _ in PRIORITIZED_TARGET_TYPES)
            select = (
                "SELECT todos.*, "
                f"(CASE WHEN target_type IN ({kinds}) "
                "THEN highest_label_priority(target_type, target_id) END) AS highest_priority "
                "FROM todos"
            )
            params: list[Any] = [*PRIORITIZED_TARGET_TYPES]
        else:
            select = "SELECT todos.* FROM todos"
            params = []

        sql = f"{select} WHERE user_id = ? AND state = ? ORDER BY {_ORDER_BY[order]}"
        params.extend([int(user_id), state.value])
        return self._iter_rows(sql, params)

    def _iter_rows(self, sql: str, params: list[Any]) -> Iterator[Todo]:
        failures: list[Exception] = []
        conn = self._get_conn(failures)
        try:
            for row in conn.execute(sql, params):
                yield self._row_to_todo(row)
        except sqlite3.OperationalError as e:
            if failures:
                raise failures[0] from e
            raise
        finally:
            conn.close()

    # ---- keep-around outbox ----

    def list_due_keep_arounds(self, *, now_ts: float, limit: int = 32) -> list[KeepAroundRequest]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT *
                FROM keep_around_requests
                WHERE status = 'pending'
                  AND due_at <= ?
                ORDER BY due_at ASC, id ASC
                    LIMIT ?
                """,
                (float(now_ts), int(limit)),
            ).fetchall()
            return [self._row_to_keep_around(r) for r in rows]
        finally:
            conn.close()

    def try_claim_keep_around(self, request_id: int) -> bool:
        """Atomically move a request pending -> in_progress; True if this caller claimed it."""
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                UPDATE keep_around_requests
                SET status = 'in_progress', attempts = attempts + 1, updated_at = ?
                WHERE id = ?
                  AND status = 'pending'
                """,
                (time.time(), int(request_id)),
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def _set_keep_around_status(
        self, request_id: int, status: KeepAroundStatus, due_at: float | None = None
    ) -> None:
        now = time.time()
        conn = self._get_conn()
        try:
            if due_at is None:
                conn.execute(
                    "UPDATE keep_around_requests SET status = ?, updated_at = ? WHERE id = ?",
                    (status.value, now, int(request_id)),
                )
            else:
                conn.execute(
                    "UPDATE keep_around_requests SET status = ?, due_at = ?, updated_at = ? WHERE id = ?",
                    (status.value, float(due_at), now, int(request_id)),
                )
            conn.commit()
        finally:
            conn.close()

    def finish_keep_around(self, request_id: int) -> None:
        self._set_keep_around_status(request_id, KeepAroundStatus.DONE)

    def reschedule_keep_around(self, request_id: int, *, due_at: float) -> None:
        self._set_keep_around_status(request_id, KeepAroundStatus.PENDING, due_at=due_at)

    def fail_keep_around(self, request_id: int) -> None:
        self._set_keep_around_status(request_id, KeepAroundStatus.FAILED)

    def release_stale_keep_arounds(self) -> int:
        """Return requests left in_progress by a crashed worker to the queue."""
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "UPDATE keep_around_requests SET status = 'pending', updated_at = ? WHERE status = 'in_progress'",
                (time.time(),),
            )
            conn.commit()
            return int(cur.rowcount)
        finally:
            conn.close()

    def keep_around_stats(self) -> dict[str, int]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT status, COUNT(*) AS n FROM keep_around_requests GROUP BY status"
            ).fetchall()
            out = {s.value: 0 for s in KeepAroundStatus}
            for r in rows:
                out[str(r["status"])] = int(r["n"])
            return out
        finally:
            conn.close()
