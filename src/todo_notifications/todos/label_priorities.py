# src/todo_notifications/todos/label_priorities.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from collections.abc import Iterable, Mapping
from pathlib import Path

logger = logging.getLogger(__name__)


class StaticLabelPriorities:
    """In-memory resolver: {(target_type, target_id): [label priorities]}."""

    def __init__(self, priorities: Mapping[tuple[str, int], Iterable[int | None]] | None = None) -> None:
        self._priorities: dict[tuple[str, int], list[int]] = {}
        for key, values in (priorities or {}).items():
            self._priorities[(str(key[0]), int(key[1]))] = [int(v) for v in values if v is not None]

    def set(self, target_type: str, target_id: int, *priorities: int) -> None:
        self._priorities[(target_type, int(target_id))] = [int(p) for p in priorities]

    def highest_priority(self, target_type: str, target_id: int) -> int | None:
        values = self._priorities.get((target_type, int(target_id)))
        return min(values) if values else None


class SqliteLabelPriorities:
    """
    SQLite-backed label priorities.

    One row per (target, label). A target's priority is the lowest value among
    its labels; unprioritized labels are simply not stored.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS label_priorities (
                    target_type TEXT NOT NULL,
                    target_id INTEGER NOT NULL,
                    label TEXT NOT NULL,
                    priority INTEGER NOT NULL,
                    updated_at REAL NOT NULL,
                    PRIMARY KEY (target_type, target_id, label)
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def set_priority(self, target_type: str, target_id: int, label: str, priority: int) -> None:
        label = (label or "").strip()
        if not label:
            raise ValueError("label is required")

        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO label_priorities(target_type, target_id, label, priority, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(target_type, target_id, label)
                DO UPDATE SET priority = excluded.priority, updated_at = excluded.updated_at
                """,
                (target_type, int(target_id), label, int(priority), time.time()),
            )
            conn.commit()
            logger.debug("Label priority set %s:%s %s=%s", target_type, target_id, label, priority)
        finally:
            conn.close()

    def clear(self, target_type: str, target_id: int, label: str | None = None) -> None:
        conn = self._get_conn()
        try:
            if label is None:
                conn.execute(
                    "DELETE FROM label_priorities WHERE target_type = ? AND target_id = ?",
                    (target_type, int(target_id)),
                )
            else:
                conn.execute(
                    "DELETE FROM label_priorities WHERE target_type = ? AND target_id = ? AND label = ?",
                    (target_type, int(target_id), label),
                )
            conn.commit()
        finally:
            conn.close()

    def highest_priority(self, target_type: str, target_id: int) -> int | None:
        conn = self._get_conn()
        try:
            (value,) = conn.execute(
                "SELECT MIN(priority) FROM label_priorities WHERE target_type = ? AND target_id = ?",
                (target_type, int(target_id)),
            ).fetchone()
            return None if value is None else int(value)
        finally:
            conn.close()
