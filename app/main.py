from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from datetime import datetime
from pathlib import Path
from typing import Literal

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel

from app.settings import Settings
from engine.engine import Engine
from geo.regions import list_regions
from health.health import health_summary, refresh_message
from ingest.feeds import feed_specs
from ingest.scheduler import run_scheduler
from realtime.bus import EventBus
from realtime.sse import router as sse_router
from status.formatters import format_date
from store.db import close_database, open_database
from store.prefs import load_theme, save_theme, toggle_theme


logger = logging.getLogger(__name__)


class ScopeUpdate(BaseModel):
    regions: list[str]


class ThemeUpdate(BaseModel):
    theme: Literal["light", "dark"] | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    db = open_database(settings.db_path)
    bus = EventBus()
    http = httpx.AsyncClient(follow_redirects=True)
    engine = Engine(
        settings=settings, specs=feed_specs(settings), http=http, bus=bus, db=db
    )
    engine.load_preferences()
    await engine.hydrate_from_cache()

    app.state.settings = settings
    app.state.db = db
    app.state.bus = bus
    app.state.engine = engine

    scheduler_task = asyncio.create_task(run_scheduler(engine))
    try:
        yield
    finally:
        scheduler_task.cancel()
        with suppress(asyncio.CancelledError):
            await scheduler_task
        await http.aclose()
        close_database(db)
        logger.info("app_shutdown")


app = FastAPI(title="Hazard Brief", lifespan=lifespan)
app.include_router(sse_router)

BASE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))


def _format_us_date(value: str | None) -> str:
    if not value:
        return "-"
    return format_date(datetime.fromisoformat(value.replace("Z", "+00:00")))


templates.env.filters["us_date"] = _format_us_date


def _engine(request: Request) -> Engine:
    return request.app.state.engine


@app.get("/", response_class=HTMLResponse)
def index(request: Request) -> HTMLResponse:
    snapshot = _engine(request).snapshot()
    return templates.TemplateResponse(
        request=request,
        name="brief.html",
        context={
            "snapshot": snapshot,
            "digest": snapshot["digest"],
            "theme": load_theme(request.app.state.db),
        },
    )


@app.get("/api/snapshot")
def snapshot(request: Request) -> dict:
    return _engine(request).snapshot()


@app.get("/api/feeds")
def feeds(request: Request) -> list[dict]:
    engine = _engine(request)
    return health_summary(
        engine.state, stale_seconds=engine.settings.feed_stale_seconds
    )


@app.post("/api/refresh")
async def refresh_all(request: Request) -> dict:
    failed = await _engine(request).refresh_all()
    return {
        "ok": not failed,
        "failed": failed,
        "message": refresh_message(failed),
    }


@app.post("/api/feeds/{feed_id}/refresh")
async def refresh_feed(request: Request, feed_id: str) -> dict:
    engine = _engine(request)
    if feed_id not in engine.specs:
        raise HTTPException(status_code=404, detail=f"unknown feed: {feed_id}")
    ok = await engine.refresh_feed(feed_id)
    feed = engine.state.feeds[feed_id]
    return {"ok": ok, "feed_id": feed_id, "status": feed.status, "error": feed.last_error}


@app.get("/api/regions")
def regions() -> list[dict]:
    return list_regions()


@app.get("/api/scope")
def get_scope(request: Request) -> dict:
    return {"regions": list(_engine(request).state.scope)}


@app.put("/api/scope")
async def put_scope(request: Request, body: ScopeUpdate) -> dict:
    engine = _engine(request)
    scope = await engine.set_scope(body.regions)
    return {"regions": list(scope), "status_level": engine.state.status_level}


@app.get("/api/theme")
def get_theme(request: Request) -> dict:
    return {"theme": load_theme(request.app.state.db)}


@app.put("/api/theme")
def put_theme(request: Request, body: ThemeUpdate | None = None) -> dict:
    db = request.app.state.db
    if body is None or body.theme is None:
        return {"theme": toggle_theme(db)}
    save_theme(db, body.theme)
    return {"theme": body.theme}
