from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path

import httpx

from app.settings import Settings
from engine.engine import Engine
from ingest.feeds import feed_specs
from realtime.bus import EventBus
from store.db import close_database, open_database


async def _run(settings: Settings, scope: list[str], use_cache: bool) -> dict:
    db = open_database(settings.db_path) if use_cache else None
    try:
        async with httpx.AsyncClient(follow_redirects=True) as http:
            engine = Engine(
                settings=settings,
                specs=feed_specs(settings),
                http=http,
                bus=EventBus(),
                db=db,
            )
            if scope:
                await engine.set_scope(scope, persist=False)
            else:
                engine.load_preferences()
            await engine.refresh_all()
            return engine.snapshot()
    finally:
        if db is not None:
            close_database(db)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Run one refresh cycle of all feeds and print the snapshot."
    )
    parser.add_argument("--scope", nargs="*", default=[], help="region codes, e.g. CA OR")
    parser.add_argument("--db", type=Path, default=None)
    parser.add_argument("--no-cache", action="store_true")
    parser.add_argument("--summary", action="store_true", help="omit record lists")
    args = parser.parse_args()

    settings = Settings()
    if args.db is not None:
        settings = settings.model_copy(update={"db_path": args.db})
    logging.basicConfig(level=settings.log_level.upper())

    snapshot = asyncio.run(_run(settings, args.scope, not args.no_cache))
    if args.summary:
        snapshot.pop("feeds", None)
    print(json.dumps(snapshot, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
