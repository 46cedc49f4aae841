from __future__ import annotations

import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Database:
    conn: sqlite3.Connection
    lock: threading.Lock


_MIGRATIONS: list[tuple[int, str]] = [
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
          version INTEGER NOT NULL PRIMARY KEY
        );

        CREATE TABLE IF NOT EXISTS feed_cache (
          feed_id TEXT NOT NULL PRIMARY KEY,
          payload TEXT NOT NULL,
          fetched_at TEXT NOT NULL,
          written_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS app_config (
          key TEXT NOT NULL PRIMARY KEY,
          value TEXT NOT NULL
        );
        """,
    ),
]


def open_database(path: Path) -> Database:
    if str(path) != ":memory:":
        path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA busy_timeout=5000;")
    _apply_migrations(conn)
    return Database(conn=conn, lock=threading.Lock())


def close_database(db: Database) -> None:
    with db.lock:
        db.conn.close()


def _apply_migrations(conn: sqlite3.Connection) -> None:
    conn.execute(
        "CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER NOT NULL PRIMARY KEY);"
    )
    row = conn.execute(
        "SELECT COALESCE(MAX(version), 0) AS v FROM schema_migrations;"
    ).fetchone()
    current_version = int(row["v"])

    for version, sql in _MIGRATIONS:
        if version <= current_version:
            continue
        conn.executescript(sql)
        conn.execute("INSERT INTO schema_migrations(version) VALUES (?);", (version,))
        conn.commit()
