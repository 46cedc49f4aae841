from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

from engine.engine import Engine


logger = logging.getLogger(__name__)


class FeedScheduler:
    """One repeating timer per feed.

    A tick spawns the feed's refresh as its own task, so a slow or failing
    feed never delays another feed's timer. ``stop`` cancels the timers
    only; refreshes already in flight are left to finish.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._timers: dict[str, asyncio.Task[None]] = {}
        self._inflight: set[asyncio.Task[None]] = set()

    @property
    def running(self) -> bool:
        return bool(self._timers)

    def start(self) -> None:
        if self._timers:
            return
        for feed_id, spec in self._engine.specs.items():
            self._timers[feed_id] = asyncio.create_task(
                self._run_timer(feed_id, spec.poll_interval_seconds)
            )
        logger.info("scheduler_started feeds=%s", ",".join(self._timers))

    async def stop(self) -> None:
        timers = list(self._timers.values())
        self._timers.clear()
        for task in timers:
            task.cancel()
        for task in timers:
            with suppress(asyncio.CancelledError):
                await task
        if timers:
            logger.info("scheduler_stopped inflight=%d", len(self._inflight))

    async def _run_timer(self, feed_id: str, interval_seconds: int) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            task = asyncio.create_task(self._tick(feed_id))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

    async def _tick(self, feed_id: str) -> None:
        try:
            await self._engine.refresh_feed(feed_id)
        except Exception:
            logger.exception("scheduled_refresh_crashed feed=%s", feed_id)


async def run_scheduler(engine: Engine) -> None:
    """First full cycle, then independent per-feed polling until cancelled."""
    scheduler = FeedScheduler(engine)
    try:
        await engine.refresh_all()
    except Exception:
        logger.exception("initial_refresh_crashed")
    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        await scheduler.stop()
