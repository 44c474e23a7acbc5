from __future__ import annotations

import json
import logging
import os
import sqlite3
from datetime import datetime
from typing import Any

from .settings import settings

LOGGER = logging.getLogger("bubble")

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


_db_path: str | None = None


def set_db_path(path: str | None) -> None:
    """Use ``path`` instead of ``settings.db_path`` for the event log."""
    global _db_path
    _db_path = path


def utc_now() -> str:
    return datetime.utcnow().strftime("%Y-%m-%dT%H:%M:%SZ")


def configure_logging(level_name: str = "INFO") -> None:
    level = getattr(logging, level_name.upper(), None)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {level_name}")
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)


def _resolve_db_path() -> str:
    """Return a file path usable by sqlite.

    If the configured path is a directory (e.g. a bind mount that Docker
    created as a directory), the DB file is placed inside it.
    """

    p = os.path.abspath(_db_path or settings.db_path)

    if os.path.isdir(p):
        p = os.path.join(p, "bubble.db")

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
            CREATE TABLE IF NOT EXISTS events (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              ts TEXT NOT NULL,
              level TEXT NOT NULL,
              image TEXT,
              container_id TEXT,
              message TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS steps (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              started_at TEXT NOT NULL,
              finished_at TEXT NOT NULL,
              image TEXT NOT NULL,
              ratio TEXT NOT NULL,
              outcome TEXT NOT NULL, -- ok|noop|failed
              candidates INTEGER NOT NULL,
              template_id TEXT,
              created TEXT NOT NULL, -- json list of container ids
              removed TEXT NOT NULL, -- json list of container ids
              error TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
            CREATE INDEX IF NOT EXISTS idx_steps_started_at ON steps(started_at);
            """
        )


def log_event(level: str, message: str, container_id: str | None = None, image: str | None = None) -> None:
    """Append an event to the log table and mirror it to the ``bubble`` logger."""
    level = level.upper()
    fields = []
    if container_id:
        fields.append(f"container={container_id}")
    if image:
        fields.append(f"image={image}")
    line = f"{message} [{', '.join(fields)}]" if fields else message
    LOGGER.log(_LEVELS.get(level, logging.INFO), line)

    with connect() as conn:
        conn.execute(
            "INSERT INTO events (ts, level, image, container_id, message) VALUES (?, ?, ?, ?, ?)",
            (utc_now(), level, image, container_id, message),
        )


def record_step(
    started_at: str,
    finished_at: str,
    image: str,
    ratio: str,
    outcome: str,
    candidates: int,
    template_id: str | None,
    created: list[str],
    removed: list[str],
    error: str | None,
) -> int:
    with connect() as conn:
        cur = conn.execute(
            """
            INSERT INTO steps (started_at, finished_at, image, ratio, outcome, candidates, template_id, created, removed, error)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                started_at,
                finished_at,
                image,
                ratio,
                outcome,
                candidates,
                template_id,
                json.dumps(created),
                json.dumps(removed),
                error,
            ),
        )
        return int(cur.lastrowid)


def latest_events(limit: int = 100) -> list[dict[str, Any]]:
    with connect() as conn:
        rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return [dict(r) for r in rows]


def latest_steps(limit: int = 20) -> list[dict[str, Any]]:
    with connect() as conn:
        rows = conn.execute("SELECT * FROM steps ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
    out: list[dict[str, Any]] = []
    for r in rows:
        d = dict(r)
        d["created"] = json.loads(d["created"])
        d["removed"] = json.loads(d["removed"])
        out.append(d)
    return out
