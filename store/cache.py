from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, ValidationError

from store.db import Database


logger = logging.getLogger(__name__)


class CacheCorruption(Exception):
    """A cache entry could not be read back or the store rejected a write."""


def _to_iso(dt: datetime) -> str:
    return dt.astimezone(tz=UTC).isoformat().replace("+00:00", "Z")


def _parse_iso(ts: str) -> datetime:
    if ts.endswith("Z"):
        return datetime.fromisoformat(ts.removesuffix("Z") + "+00:00")
    return datetime.fromisoformat(ts)


class FeedCache:
    """Short-lived per-feed snapshot of the last successful fetch.

    Entries hold the full normalized record list and its fetch time. Any
    write failure or unreadable entry wipes every feed entry; preferences
    in ``app_config`` are left alone.
    """

    def __init__(self, db: Database, *, max_age_seconds: int) -> None:
        self._db = db
        self._max_age = timedelta(seconds=max_age_seconds)

    def save(
        self,
        feed_id: str,
        records: Sequence[BaseModel],
        fetched_at: datetime,
        *,
        now: datetime | None = None,
    ) -> None:
        written_at = now or datetime.now(tz=UTC)
        payload = json.dumps(
            [r.model_dump(mode="json") for r in records],
            ensure_ascii=False,
            separators=(",", ":"),
        )
        try:
            with self._db.lock:
                self._db.conn.execute(
                    """
                    INSERT INTO feed_cache(feed_id, payload, fetched_at, written_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(feed_id) DO UPDATE SET
                      payload = excluded.payload,
                      fetched_at = excluded.fetched_at,
                      written_at = excluded.written_at;
                    """,
                    (feed_id, payload, _to_iso(fetched_at), _to_iso(written_at)),
                )
                self._db.conn.commit()
        except sqlite3.Error as e:
            logger.warning("feed_cache_write_failed feed=%s error=%s", feed_id, e)
            self.clear()

    def load(
        self, feed_id: str, record_type: type[BaseModel], *, now: datetime | None = None
    ) -> tuple[list[BaseModel], datetime] | None:
        now = now or datetime.now(tz=UTC)
        try:
            return self._load(feed_id, record_type, now)
        except CacheCorruption as e:
            logger.warning("feed_cache_corrupt feed=%s error=%s", feed_id, e)
            self.clear()
            return None

    def _load(
        self, feed_id: str, record_type: type[BaseModel], now: datetime
    ) -> tuple[list[BaseModel], datetime] | None:
        try:
            with self._db.lock:
                row = self._db.conn.execute(
                    "SELECT payload, fetched_at, written_at FROM feed_cache WHERE feed_id = ?;",
                    (feed_id,),
                ).fetchone()
        except sqlite3.Error as e:
            raise CacheCorruption(str(e)) from e
        if row is None:
            return None

        try:
            written_at = _parse_iso(str(row["written_at"]))
            fetched_at = _parse_iso(str(row["fetched_at"]))
            doc = json.loads(row["payload"])
            if not isinstance(doc, list):
                raise CacheCorruption("payload is not a list")
            records = [record_type.model_validate(item) for item in doc]
        except (ValueError, TypeError, ValidationError) as e:
            raise CacheCorruption(str(e)) from e

        if now - written_at > self._max_age:
            return None
        return records, fetched_at

    def clear(self) -> None:
        try:
            with self._db.lock:
                self._db.conn.execute("DELETE FROM feed_cache;")
                self._db.conn.commit()
        except sqlite3.Error as e:
            logger.error("feed_cache_clear_failed error=%s", e)
