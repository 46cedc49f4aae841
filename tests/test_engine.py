import asyncio
import dataclasses
import json

import httpx

from engine.engine import Engine
from ingest.feeds import FEED_IDS, feed_specs
from realtime.bus import DATA_READY, EventBus
from store.db import close_database, open_database

from conftest import NOW, fail_transport, fixture_bytes, upstream_transport


def _engine(settings, transport, db=None, bus=None) -> tuple[Engine, httpx.AsyncClient]:
    http = httpx.AsyncClient(transport=transport)
    engine = Engine(
        settings=settings,
        specs=feed_specs(settings),
        http=http,
        bus=bus or EventBus(),
        db=db,
        clock=lambda: NOW,
    )
    return engine, http


def _drain(queue: asyncio.Queue) -> list:
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events


def test_refresh_all_nationwide(settings) -> None:
    async def run():
        engine, http = _engine(settings, upstream_transport())
        async with http:
            failed = await engine.refresh_all()
        return engine, failed

    engine, failed = asyncio.run(run())
    state = engine.state
    assert failed == []
    assert {f.status for f in state.feeds.values()} == {"ok"}
    assert len(state.feeds["weather"].filtered) == 2
    assert [d.disaster_number for d in state.feeds["declarations"].raw] == [4850, 4841]
    assert [d.disaster_number for d in state.feeds["declarations"].filtered] == [4850]
    assert [f.incident_name for f in state.feeds["wildfire"].filtered] == ["Canyon"]
    assert [q.id for q in state.feeds["seismic"].filtered] == ["ci40000001", "us7000003"]
    assert [i.source for i in state.needs_action] == ["weather", "declarations", "seismic"]
    assert state.status_level == "danger"
    assert all(f.last_fetch_at == NOW for f in state.feeds.values())


def test_scope_change_refilters_without_fetching(settings) -> None:
    seen: list[httpx.Request] = []

    async def run():
        engine, http = _engine(settings, upstream_transport(seen=seen))
        async with http:
            await engine.refresh_all()
            requests_before = len(seen)
            await engine.set_scope(["ca"])
            return engine, requests_before

    engine, requests_before = asyncio.run(run())
    state = engine.state
    assert len(seen) == requests_before
    assert state.scope == ("CA",)
    assert [a.id for a in state.feeds["weather"].filtered] == [
        "https://api.weather.gov/alerts/urn:oid:2.49.0.1.840.0.a1"
    ]
    assert state.feeds["declarations"].filtered == []
    assert [f.incident_name for f in state.feeds["wildfire"].filtered] == ["Canyon"]
    assert [q.id for q in state.feeds["seismic"].filtered] == ["ci40000001"]
    assert [i.source for i in state.needs_action] == ["weather", "seismic", "wildfire"]


def test_filtered_is_subset_of_raw_for_any_scope(settings) -> None:
    async def run():
        engine, http = _engine(settings, upstream_transport())
        results = []
        async with http:
            await engine.refresh_all()
            for scope in ([], ["CA"], ["FL", "TX"], ["AK", "KS"], ["OR"]):
                await engine.set_scope(scope)
                results.append(
                    (scope, {k: (list(f.raw), list(f.filtered)) for k, f in engine.state.feeds.items()})
                )
        return results

    for scope, feeds in asyncio.run(run()):
        for feed_id, (raw, filtered) in feeds.items():
            assert all(r in raw for r in filtered), (scope, feed_id)
        if not scope:
            assert feeds["weather"][1] == feeds["weather"][0]


def test_failed_feed_keeps_previous_data(settings) -> None:
    overrides: dict = {}

    async def run():
        engine, http = _engine(settings, upstream_transport(overrides))
        async with http:
            await engine.refresh_all()
            before = list(engine.state.feeds["seismic"].raw)
            overrides["earthquake.usgs.gov"] = fail_transport
            failed = await engine.refresh_all()
        return engine, before, failed

    engine, before, failed = asyncio.run(run())
    seismic = engine.state.feeds["seismic"]
    assert failed == ["seismic"]
    assert seismic.status == "error"
    assert seismic.last_error == "request_error:ConnectError"
    assert seismic.raw == before
    assert [q.id for q in seismic.filtered] == ["ci40000001", "us7000003"]
    assert engine.state.feeds["weather"].status == "ok"
    assert engine.state.status_level == "danger"


def test_first_cycle_coherent_when_one_feed_fails(settings) -> None:
    overrides = {"api.weather.gov": lambda request: httpx.Response(503)}

    async def run():
        engine, http = _engine(settings, upstream_transport(overrides))
        async with http:
            failed = await engine.refresh_all()
        return engine, failed

    engine, failed = asyncio.run(run())
    state = engine.state
    assert failed == ["weather"]
    assert state.feeds["weather"].status == "error"
    assert state.feeds["weather"].last_error == "http_503"
    assert state.feeds["weather"].raw == []
    assert state.feeds["weather"].last_fetch_at is None
    assert [i.source for i in state.needs_action] == ["declarations", "seismic", "wildfire"]
    assert state.status_level == "danger"


def test_malformed_body_is_a_feed_error(settings) -> None:
    overrides = {
        "services9.arcgis.com": lambda request: httpx.Response(
            200, content=b'{"error":{"code":498,"message":"Invalid token"}}'
        ),
        "www.fema.gov": lambda request: httpx.Response(200, content=b"<html></html>"),
    }

    async def run():
        engine, http = _engine(settings, upstream_transport(overrides))
        async with http:
            return await engine.refresh_all(), engine

    failed, engine = asyncio.run(run())
    assert sorted(failed) == ["declarations", "wildfire"]
    assert engine.state.feeds["wildfire"].last_error == "parse_error:ValueError"


def test_empty_responses_are_all_clear(settings) -> None:
    async def run():
        engine, http = _engine(settings, upstream_transport(empty=True))
        async with http:
            failed = await engine.refresh_all()
        return engine, failed

    engine, failed = asyncio.run(run())
    assert failed == []
    assert engine.state.status_level == "success"
    assert engine.state.needs_action == []
    assert engine.snapshot()["digest"]["banner"] == "All clear - no critical events nationally"


def test_requests_carry_agent_and_query(settings) -> None:
    seen: list[httpx.Request] = []

    async def run():
        engine, http = _engine(settings, upstream_transport(seen=seen))
        async with http:
            await engine.refresh_all()

    asyncio.run(run())
    by_host = {r.url.host: r for r in seen}
    assert by_host["api.weather.gov"].headers["User-Agent"] == settings.user_agent
    fema = by_host["www.fema.gov"].url.params
    assert fema["$orderby"] == "declarationDate desc"
    assert fema["$filter"] == "declarationDate ge '2026-09-18'"
    assert fema["$top"] == "1000"
    nifc = by_host["services9.arcgis.com"].url.params
    assert nifc["resultRecordCount"] == "2000"
    assert "PercentContained" in nifc["outFields"]


def test_events_published_per_feed_and_after_cycle(settings) -> None:
    bus = EventBus()

    async def run():
        queue = await bus.subscribe()
        engine, http = _engine(settings, upstream_transport(), bus=bus)
        async with http:
            await engine.refresh_all()
            await engine.refresh_feed("seismic")
        return _drain(queue)

    events = asyncio.run(run())
    updates = [e for e in events if e.type == "feed.update"]
    ready = [e for e in events if e.type == "data.ready"]
    assert len(updates) == 10
    for feed_id in FEED_IDS:
        phases = [e.data["phase"] for e in updates if e.data["feed_id"] == feed_id]
        assert phases[:2] == ["start", "end"]
    assert len(ready) == 2
    assert ready[-1].data["status_level"] == "danger"
    assert set(ready[-1].data["feeds"]) == set(FEED_IDS)


def test_cache_hydration_before_network(settings) -> None:
    db = open_database(settings.db_path)

    async def run():
        first, http = _engine(settings, upstream_transport(), db=db)
        async with http:
            await first.refresh_all()

        overrides = {host: fail_transport for host in (
            "api.weather.gov", "www.fema.gov", "services9.arcgis.com", "earthquake.usgs.gov"
        )}
        second, http = _engine(settings, upstream_transport(overrides), db=db)
        async with http:
            hydrated = await second.hydrate_from_cache()
            level_after_hydrate = second.state.status_level
            failed = await second.refresh_all()
        return first, second, hydrated, level_after_hydrate, failed

    try:
        first, second, hydrated, level, failed = asyncio.run(run())
    finally:
        close_database(db)

    assert hydrated == list(FEED_IDS)
    assert level == "danger"
    assert sorted(failed) == sorted(FEED_IDS)
    for feed_id in FEED_IDS:
        assert second.state.feeds[feed_id].raw == first.state.feeds[feed_id].raw
        assert second.state.feeds[feed_id].status == "error"
        assert second.state.feeds[feed_id].last_fetch_at == NOW


def test_scope_preference_restored(settings) -> None:
    db = open_database(settings.db_path)

    async def run():
        engine, http = _engine(settings, upstream_transport(), db=db)
        async with http:
            await engine.set_scope(["OR", "WA"])
        again, http = _engine(settings, upstream_transport(), db=db)
        async with http:
            again.load_preferences()
        return again

    try:
        again = asyncio.run(run())
    finally:
        close_database(db)
    assert again.state.scope == ("OR", "WA")


def _nws_with_null_properties() -> bytes:
    doc = json.loads(fixture_bytes("nws_alerts.geojson"))
    doc["features"].insert(0, {"type": "Feature", "properties": None, "geometry": None})
    return json.dumps(doc).encode()


def test_feature_without_properties_is_skipped(settings) -> None:
    body = _nws_with_null_properties()
    overrides = {"api.weather.gov": lambda request: httpx.Response(200, content=body)}

    async def run():
        engine, http = _engine(settings, upstream_transport(overrides))
        async with http:
            return await engine.refresh_all(), engine

    failed, engine = asyncio.run(run())
    weather = engine.state.feeds["weather"]
    assert failed == []
    assert weather.status == "ok"
    assert len(weather.raw) == 2
    assert engine.state.status_level == "danger"


def test_unexpected_error_marks_feed_and_keeps_data(settings) -> None:
    specs = feed_specs(settings)
    normalize_weather = specs["weather"].normalize
    calls = []

    def flaky_normalize(records):
        calls.append(1)
        if len(calls) > 1:
            raise RuntimeError("boom")
        return normalize_weather(records)

    specs["weather"] = dataclasses.replace(specs["weather"], normalize=flaky_normalize)
    bus = EventBus()

    async def run():
        queue = await bus.subscribe()
        async with httpx.AsyncClient(transport=upstream_transport()) as http:
            engine = Engine(
                settings=settings, specs=specs, http=http, bus=bus, clock=lambda: NOW
            )
            await engine.refresh_all()
            before = list(engine.state.feeds["weather"].raw)
            _drain(queue)
            failed = await engine.refresh_all()
        return engine, before, failed, _drain(queue)

    engine, before, failed, events = asyncio.run(run())
    weather = engine.state.feeds["weather"]
    assert failed == ["weather"]
    assert weather.status == "error"
    assert weather.last_error == "unexpected:RuntimeError"
    assert weather.raw == before
    assert len(weather.filtered) == 2
    assert engine.state.feeds["seismic"].status == "ok"
    assert [e.type for e in events][-1] == DATA_READY


def test_health_reports_fetch_duration(settings) -> None:
    async def run():
        engine, http = _engine(settings, upstream_transport())
        async with http:
            await engine.refresh_all()
        return engine

    health = asyncio.run(run()).snapshot()["health"]
    assert all(isinstance(h["fetch_ms"], int) and h["fetch_ms"] >= 0 for h in health)
