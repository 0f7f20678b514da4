# src/todo_notifications/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Settings are injectable: library code never has to read the environment itself.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TODOS"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Console ----
    console_enabled: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    todos_db_path: Path

    # ---- Repository service ----
    repository_base_url: str
    repository_token: str | None
    repository_connect_timeout_seconds: float
    repository_read_timeout_seconds: float

    # ---- Keep-around worker ----
    keep_around_enabled: bool
    keep_around_interval_seconds: float
    keep_around_retry_delay_seconds: float
    keep_around_max_attempts: int
    keep_around_batch_limit: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "todo-notifications").strip() or "todo-notifications"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/todos"))
        todos_db_path = _env_path(_k("DB_PATH"), data_dir / "todos.sqlite3")

        repository_base_url = _env(_k("REPOSITORY_BASE_URL"), "").strip().rstrip("/")
        repository_token = _env(_k("REPOSITORY_TOKEN"), "").strip() or None
        repository_connect_timeout_seconds = _env_float(_k("REPOSITORY_CONNECT_TIMEOUT_SECONDS"), 5.0)
        repository_read_timeout_seconds = _env_float(_k("REPOSITORY_READ_TIMEOUT_SECONDS"), 15.0)

        keep_around_enabled = _env_bool(_k("KEEP_AROUND_ENABLED"), True)
        keep_around_interval_seconds = _env_float(_k("KEEP_AROUND_INTERVAL_SECONDS"), 5.0)
        keep_around_retry_delay_seconds = _env_float(_k("KEEP_AROUND_RETRY_DELAY_SECONDS"), 60.0)
        keep_around_max_attempts = _env_int(_k("KEEP_AROUND_MAX_ATTEMPTS"), 5)
        keep_around_batch_limit = _env_int(_k("KEEP_AROUND_BATCH_LIMIT"), 32)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            data_dir=data_dir,
            todos_db_path=todos_db_path,
            repository_base_url=repository_base_url,
            repository_token=repository_token,
            repository_connect_timeout_seconds=repository_connect_timeout_seconds,
            repository_read_timeout_seconds=repository_read_timeout_seconds,
            keep_around_enabled=keep_around_enabled,
            keep_around_interval_seconds=keep_around_interval_seconds,
            keep_around_retry_delay_seconds=keep_around_retry_delay_seconds,
            keep_around_max_attempts=max(1, keep_around_max_attempts),
            keep_around_batch_limit=max(1, keep_around_batch_limit),
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide Settings, reading the environment on first use."""
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
