from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass


logger = logging.getLogger(__name__)

FEED_UPDATE = "feed.update"
DATA_READY = "data.ready"


@dataclass(frozen=True)
class Event:
    type: str
    data: dict


class EventBus:
    """Fan-out of engine events to bounded per-subscriber queues.

    A subscriber that falls behind loses its oldest pending event rather
    than blocking the publisher.
    """

    def __init__(self, *, queue_size: int = 200) -> None:
        self._lock = asyncio.Lock()
        self._queue_size = queue_size
        self._queues: set[asyncio.Queue[Event]] = set()
        self.dropped = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._queues)

    async def subscribe(self) -> asyncio.Queue[Event]:
        queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=self._queue_size)
        async with self._lock:
            self._queues.add(queue)
        return queue

    async def unsubscribe(self, queue: asyncio.Queue[Event]) -> None:
        async with self._lock:
            self._queues.discard(queue)

    @asynccontextmanager
    async def subscription(self) -> AsyncIterator[asyncio.Queue[Event]]:
        queue = await self.subscribe()
        try:
            yield queue
        finally:
            await self.unsubscribe(queue)

    async def publish(self, event: Event) -> None:
        async with self._lock:
            targets = tuple(self._queues)
        for queue in targets:
            if queue.full():
                queue.get_nowait()
                self.dropped += 1
                logger.debug("bus_event_dropped type=%s", event.type)
            queue.put_nowait(event)
