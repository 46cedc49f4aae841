from __future__ import annotations

import json
from typing import Literal

from geo.regions import normalize_scope
from store.db import Database


Theme = Literal["light", "dark"]

SCOPE_KEY = "selected_regions"
THEME_KEY = "theme"


def _get(db: Database, key: str) -> object | None:
    with db.lock:
        row = db.conn.execute(
            "SELECT value FROM app_config WHERE key = ? LIMIT 1;", (key,)
        ).fetchone()
    if row is None:
        return None
    try:
        return json.loads(row["value"])
    except json.JSONDecodeError:
        return None


def _set(db: Database, key: str, value: object) -> None:
    with db.lock:
        db.conn.execute(
            """
            INSERT INTO app_config(key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value;
            """,
            (key, json.dumps(value)),
        )
        db.conn.commit()


def load_scope(db: Database) -> tuple[str, ...]:
    value = _get(db, SCOPE_KEY)
    if not isinstance(value, list):
        return ()
    return normalize_scope(str(v) for v in value)


def save_scope(db: Database, scope: tuple[str, ...]) -> None:
    _set(db, SCOPE_KEY, list(scope))


def load_theme(db: Database) -> Theme:
    return "dark" if _get(db, THEME_KEY) == "dark" else "light"


def save_theme(db: Database, theme: Theme) -> None:
    _set(db, THEME_KEY, theme)


def toggle_theme(db: Database) -> Theme:
    theme: Theme = "light" if load_theme(db) == "dark" else "dark"
    save_theme(db, theme)
    return theme
