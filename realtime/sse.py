from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime

from fastapi import APIRouter, Query, Request
from starlette.responses import StreamingResponse

from engine.engine import Engine
from realtime.bus import DATA_READY, EventBus


router = APIRouter()

HEARTBEAT_SECONDS = 15


def _frame(event_type: str, data: dict) -> str:
    payload = json.dumps(data, separators=(",", ":"), ensure_ascii=False)
    return f"event: {event_type}\ndata: {payload}\n\n"


def _wanted_types(events: str | None) -> set[str] | None:
    if not events:
        return None
    return {e.strip() for e in events.split(",") if e.strip()} or None


@router.get("/sse")
async def sse(
    request: Request,
    events: str | None = Query(default=None),
) -> StreamingResponse:
    """Stream engine events, starting with the current snapshot.

    ``events`` optionally restricts the stream to a comma-separated list of
    event types (``feed.update``, ``data.ready``); heartbeats always pass.
    """
    bus: EventBus = request.app.state.bus
    engine: Engine = request.app.state.engine
    wanted = _wanted_types(events)

    async def event_stream():
        async with bus.subscription() as queue:
            if wanted is None or DATA_READY in wanted:
                yield _frame(DATA_READY, engine.snapshot())
            while not await request.is_disconnected():
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=HEARTBEAT_SECONDS)
                except asyncio.TimeoutError:
                    ts = datetime.now(tz=UTC).isoformat().replace("+00:00", "Z")
                    yield _frame("heartbeat", {"ts": ts})
                    continue
                if wanted is None or event.type in wanted:
                    yield _frame(event.type, event.data)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )
