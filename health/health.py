from __future__ import annotations

from datetime import UTC, datetime

from engine.state import AppState, FeedState


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def feed_age(last_fetch_at: datetime | None, now: datetime | None = None) -> str:
    if last_fetch_at is None:
        return "never"
    now = now or _utc_now()
    secs = int((now - last_fetch_at).total_seconds())
    if secs < 60:
        return f"{secs}s ago"
    return f"{secs // 60}m ago"


def is_feed_stale(
    last_fetch_at: datetime | None, *, stale_seconds: int, now: datetime | None = None
) -> bool:
    if last_fetch_at is None:
        return True
    now = now or _utc_now()
    return (now - last_fetch_at).total_seconds() > stale_seconds


def feed_health(
    feed: FeedState, *, stale_seconds: int, now: datetime | None = None
) -> dict:
    now = now or _utc_now()
    stale = is_feed_stale(feed.last_fetch_at, stale_seconds=stale_seconds, now=now)
    return {
        "feed_id": feed.feed_id,
        "status": feed.status,
        "last_fetch_at": feed.last_fetch_at.isoformat().replace("+00:00", "Z")
        if feed.last_fetch_at
        else None,
        "age": "error" if feed.status == "error" else feed_age(feed.last_fetch_at, now),
        "stale": stale,
        "needs_attention": stale or feed.status == "error",
        "last_error": feed.last_error,
        "fetch_ms": feed.last_fetch_ms,
        "raw_count": len(feed.raw),
        "filtered_count": len(feed.filtered),
    }


def health_summary(
    state: AppState, *, stale_seconds: int, now: datetime | None = None
) -> list[dict]:
    now = now or _utc_now()
    return [
        feed_health(feed, stale_seconds=stale_seconds, now=now)
        for feed in state.feeds.values()
    ]


def failed_feeds(state: AppState) -> list[str]:
    return [feed_id for feed_id, feed in state.feeds.items() if feed.status == "error"]


def refresh_message(failed: list[str]) -> str:
    if failed:
        return f"{len(failed)} feed(s) had errors: {', '.join(failed)}"
    return "All feeds refreshed successfully."
