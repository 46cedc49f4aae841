from __future__ import annotations

import logging
from datetime import UTC, datetime

import httpx

from engine.state import AppState, FeedState
from geo.scope import MatchMode
from ingest.feeds import FeedSpec, compute_filtered
from ingest.fetch import FetchError, fetch_content
from realtime.bus import FEED_UPDATE, Event, EventBus
from store.cache import FeedCache


logger = logging.getLogger(__name__)


class FeedClient:
    def __init__(
        self,
        spec: FeedSpec,
        *,
        http: httpx.AsyncClient,
        user_agent: str,
        bus: EventBus,
        cache: FeedCache | None = None,
        match_mode: MatchMode = "substring",
    ) -> None:
        self.spec = spec
        self._http = http
        self._user_agent = user_agent
        self._bus = bus
        self._cache = cache
        self._match_mode = match_mode

    async def refresh(self, state: AppState, *, now: datetime | None = None) -> bool:
        """Fetch, normalize and replace this feed's records.

        On failure the feed keeps its previous records and reports
        ``error``; nothing is raised.
        """
        spec = self.spec
        feed = state.feeds[spec.feed_id]
        now = now or datetime.now(tz=UTC)

        feed.status = "loading"
        await self._publish(feed, phase="start")

        try:
            params = spec.build_params(now) if spec.build_params else None
            content, fetch_ms = await fetch_content(
                self._http,
                url=spec.url,
                user_agent=self._user_agent,
                params=params,
                extra_headers=spec.headers,
            )
            records = spec.normalize(spec.parse(content))
            filtered = compute_filtered(
                spec, records, state.scope, now, self._match_mode
            )
        except FetchError as e:
            self._mark_failed(feed, e.reason)
            await self._publish(feed, phase="end")
            return False
        except (ValueError, KeyError, TypeError) as e:
            self._mark_failed(feed, f"parse_error:{e.__class__.__name__}")
            await self._publish(feed, phase="end")
            return False
        except Exception as e:
            logger.exception("feed_refresh_crashed feed=%s", spec.feed_id)
            self._mark_failed(feed, f"unexpected:{e.__class__.__name__}")
            await self._publish(feed, phase="end")
            return False

        feed.raw = records
        feed.filtered = filtered
        feed.status = "ok"
        feed.last_fetch_at = now
        feed.last_fetch_ms = fetch_ms
        feed.last_error = None
        logger.info(
            "feed_refresh_ok feed=%s raw=%d filtered=%d fetch_ms=%d",
            spec.feed_id,
            len(feed.raw),
            len(feed.filtered),
            fetch_ms,
        )

        if self._cache is not None:
            self._cache.save(spec.feed_id, records, now, now=now)
        await self._publish(feed, phase="end")
        return True

    def _mark_failed(self, feed: FeedState, error: str) -> None:
        feed.status = "error"
        feed.last_error = error
        logger.warning("feed_refresh_failed feed=%s error=%s", feed.feed_id, error)

    async def _publish(self, feed: FeedState, *, phase: str) -> None:
        await self._bus.publish(
            Event(
                type=FEED_UPDATE,
                data={
                    "feed_id": feed.feed_id,
                    "phase": phase,
                    "status": feed.status,
                    "error": feed.last_error,
                },
            )
        )
