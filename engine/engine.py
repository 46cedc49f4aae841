from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime

import httpx

from app.settings import Settings
from engine.state import AppState
from geo.regions import normalize_scope
from health.health import failed_feeds, health_summary
from ingest.client import FeedClient
from ingest.feeds import FeedSpec, compute_filtered
from realtime.bus import DATA_READY, Event, EventBus
from status.digest import build_digest
from status.synthesizer import StatusThresholds, synthesize_status
from store.cache import FeedCache
from store.db import Database
from store.prefs import load_scope, save_scope


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _records_json(records: list) -> list[dict]:
    return [r.model_dump(mode="json") for r in records]


class Engine:
    """Owns the application state and every path that mutates it.

    Each entry point (cache hydration, a single feed refresh, refresh-all,
    scope change) ends the same way: every feed's filtered set is rebuilt
    from its raw records and the current scope, status is synthesized, and
    a ``data.ready`` event carrying the snapshot is published.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        specs: dict[str, FeedSpec],
        http: httpx.AsyncClient,
        bus: EventBus,
        db: Database | None = None,
        clock: Clock = _utc_now,
    ) -> None:
        self.settings = settings
        self.specs = specs
        self.bus = bus
        self.db = db
        self.clock = clock
        self.state = AppState.empty(tuple(specs))
        self.thresholds = StatusThresholds.from_settings(settings)
        self.cache = (
            FeedCache(db, max_age_seconds=settings.cache_max_age_seconds)
            if db is not None
            else None
        )
        self.clients = {
            feed_id: FeedClient(
                spec,
                http=http,
                user_agent=settings.user_agent,
                bus=bus,
                cache=self.cache,
                match_mode=settings.scope_match_mode,
            )
            for feed_id, spec in specs.items()
        }

    def load_preferences(self) -> None:
        if self.db is not None:
            self.state.scope = load_scope(self.db)

    async def hydrate_from_cache(self) -> list[str]:
        hydrated: list[str] = []
        if self.cache is None:
            return hydrated
        now = self.clock()
        for feed_id, spec in self.specs.items():
            loaded = self.cache.load(feed_id, spec.record_type, now=now)
            if loaded is None:
                continue
            records, fetched_at = loaded
            feed = self.state.feeds[feed_id]
            feed.raw = records
            feed.status = "ok"
            feed.last_fetch_at = fetched_at
            hydrated.append(feed_id)
        if hydrated:
            logger.info("cache_hydrated feeds=%s", ",".join(hydrated))
        await self._recompute_and_publish()
        return hydrated

    def recompute(self) -> None:
        now = self.clock()
        state = self.state
        for feed_id, spec in self.specs.items():
            feed = state.feeds[feed_id]
            feed.filtered = compute_filtered(
                spec, feed.raw, state.scope, now, self.settings.scope_match_mode
            )
        state.needs_action, state.status_level = synthesize_status(
            weather=state.filtered("weather"),
            declarations=state.filtered("declarations"),
            wildfire=state.filtered("wildfire"),
            seismic=state.filtered("seismic"),
            now=now,
            thresholds=self.thresholds,
        )

    async def refresh_feed(self, feed_id: str) -> bool:
        ok = await self.clients[feed_id].refresh(self.state, now=self.clock())
        await self._recompute_and_publish()
        return ok

    async def refresh_all(self) -> list[str]:
        """Refresh every feed concurrently; return the ids of failed feeds."""
        now = self.clock()
        results = await asyncio.gather(
            *(client.refresh(self.state, now=now) for client in self.clients.values()),
            return_exceptions=True,
        )
        for feed_id, result in zip(self.clients, results):
            if isinstance(result, Exception):
                logger.error("feed_refresh_raised feed=%s error=%r", feed_id, result)
        await self._recompute_and_publish()
        failed = failed_feeds(self.state)
        logger.info("refresh_all_done failed=%s", ",".join(failed) or "-")
        return failed

    async def set_scope(
        self, codes: Iterable[str], *, persist: bool = True
    ) -> tuple[str, ...]:
        scope = normalize_scope(codes)
        self.state.scope = scope
        if persist and self.db is not None:
            save_scope(self.db, scope)
        await self._recompute_and_publish()
        return scope

    async def _recompute_and_publish(self) -> None:
        self.recompute()
        await self.bus.publish(Event(type=DATA_READY, data=self.snapshot()))

    def snapshot(self) -> dict:
        state = self.state
        now = self.clock()
        return {
            "generated_at": now.isoformat().replace("+00:00", "Z"),
            "scope": list(state.scope),
            "status_level": state.status_level,
            "needs_action": [item.to_dict() for item in state.needs_action],
            "feeds": {
                feed_id: _records_json(feed.filtered)
                for feed_id, feed in state.feeds.items()
            },
            "health": health_summary(
                state, stale_seconds=self.settings.feed_stale_seconds, now=now
            ),
            "digest": build_digest(
                weather=state.filtered("weather"),
                declarations=state.filtered("declarations"),
                wildfire=state.filtered("wildfire"),
                seismic=state.filtered("seismic"),
                level=state.status_level,
                scope=state.scope,
                needs_action_count=len(state.needs_action),
                now=now,
            ),
        }
