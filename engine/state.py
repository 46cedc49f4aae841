from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from normalize.records import FeedRecord
from status.synthesizer import NeedsActionItem, StatusLevel


FeedStatus = Literal["idle", "loading", "ok", "error"]


@dataclass
class FeedState:
    feed_id: str
    raw: list[FeedRecord] = field(default_factory=list)
    filtered: list[FeedRecord] = field(default_factory=list)
    status: FeedStatus = "idle"
    last_fetch_at: datetime | None = None
    last_fetch_ms: int | None = None
    last_error: str | None = None


@dataclass
class AppState:
    feeds: dict[str, FeedState]
    scope: tuple[str, ...] = ()
    status_level: StatusLevel = "success"
    needs_action: list[NeedsActionItem] = field(default_factory=list)

    @classmethod
    def empty(cls, feed_ids: tuple[str, ...]) -> AppState:
        return cls(feeds={feed_id: FeedState(feed_id=feed_id) for feed_id in feed_ids})

    def filtered(self, feed_id: str) -> list[FeedRecord]:
        return self.feeds[feed_id].filtered
