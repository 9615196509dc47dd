from __future__ import annotations

import os
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from .settings import settings


def utc_now() -> str:
    return datetime.utcnow().strftime("%Y-%m-%dT%H:%M:%SZ")


def _resolve_db_path() -> str:
    """Return a file path usable by sqlite.

    If the configured path is a directory (docker creates one for a missing
    bind-mounted file), the DB file is placed inside it.
    """

    p = os.path.abspath(settings.db_path)

    if os.path.isdir(p):
        p = os.path.join(p, "vsched.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


def connect() -> sqlite3.Connection:
    conn = sqlite3.connect(_resolve_db_path(), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def init_db() -> None:
    """Create tables if they do not exist."""
    with connect() as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS tasks (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              task_id TEXT NOT NULL UNIQUE,
              target TEXT NOT NULL,
              port INTEGER NOT NULL,
              offer_id TEXT NOT NULL,
              state TEXT NOT NULL, -- LAUNCHING|RUNNING|FINISHED|FAILED|KILLED|LOST|ERROR
              message TEXT,
              launched_at TEXT NOT NULL,
              updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS events (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              ts TEXT NOT NULL,
              level TEXT NOT NULL,
              target TEXT,
              task_id TEXT,
              message TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
            CREATE INDEX IF NOT EXISTS idx_tasks_target ON tasks(target);
            """
        )


def log_event(level: str, message: str, target: str | None = None, task_id: str | None = None) -> None:
    with connect() as conn:
        conn.execute(
            "INSERT INTO events (ts, level, target, task_id, message) VALUES (?, ?, ?, ?, ?)",
            (utc_now(), level.upper(), target, task_id, message),
        )


@dataclass(frozen=True)
class TaskRow:
    id: int
    task_id: str
    target: str
    port: int
    offer_id: str
    state: str
    message: str | None
    launched_at: str
    updated_at: str


def _rows_to_dataclass(rows: Iterable[sqlite3.Row], cls: Any) -> list[Any]:
    out: list[Any] = []
    for r in rows:
        out.append(cls(**dict(r)))
    return out


def insert_task(task_id: str, target: str, port: int, offer_id: str, state: str) -> TaskRow:
    now = utc_now()
    with connect() as conn:
        conn.execute(
            """
            INSERT INTO tasks (task_id, target, port, offer_id, state, launched_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (task_id, target, port, offer_id, state, now, now),
        )
        row = conn.execute("SELECT * FROM tasks WHERE task_id=?", (task_id,)).fetchone()
        return TaskRow(**dict(row))


def update_task_state(task_id: str, state: str, message: str | None = None) -> None:
    with connect() as conn:
        conn.execute(
            "UPDATE tasks SET state=?, message=?, updated_at=? WHERE task_id=?",
            (state, message, utc_now(), task_id),
        )


def get_task(task_id: str) -> TaskRow | None:
    with connect() as conn:
        row = conn.execute("SELECT * FROM tasks WHERE task_id=?", (task_id,)).fetchone()
        return TaskRow(**dict(row)) if row else None


def task_history(limit: int = 100, target: str | None = None) -> list[TaskRow]:
    with connect() as conn:
        if target:
            rows = conn.execute(
                "SELECT * FROM tasks WHERE target=? ORDER BY id DESC LIMIT ?", (target, limit)
            ).fetchall()
        else:
            rows = conn.execute("SELECT * FROM tasks ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return _rows_to_dataclass(rows, TaskRow)


def latest_events(limit: int = 100) -> list[dict[str, Any]]:
    with connect() as conn:
        rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return [dict(r) for r in rows]
