import httpx
import pytest
from fastapi.testclient import TestClient

from app.main import app
from engine.engine import Engine
from ingest.feeds import feed_specs
from realtime.bus import EventBus
from store.db import close_database, open_database

from conftest import NOW, fail_transport, upstream_transport


@pytest.fixture
def client(settings):
    overrides: dict = {}
    db = open_database(settings.db_path)
    bus = EventBus()
    http = httpx.AsyncClient(transport=upstream_transport(overrides))
    app.state.settings = settings
    app.state.db = db
    app.state.bus = bus
    app.state.engine = Engine(
        settings=settings,
        specs=feed_specs(settings),
        http=http,
        bus=bus,
        db=db,
        clock=lambda: NOW,
    )
    # no context manager: the lifespan (and its scheduler) stays off
    c = TestClient(app)
    c.upstream = overrides
    yield c
    close_database(db)


def test_regions_lists_states_and_territories(client) -> None:
    regions = client.get("/api/regions").json()
    codes = [r["code"] for r in regions]
    assert {"CA", "DC", "PR", "GU"} <= set(codes)
    assert {"code": "CA", "name": "California"} in regions


def test_scope_roundtrip_drops_unknown_codes(client) -> None:
    assert client.get("/api/scope").json() == {"regions": []}
    res = client.put("/api/scope", json={"regions": ["ca", "ZZ", "or", "CA"]})
    assert res.status_code == 200
    assert res.json()["regions"] == ["CA", "OR"]
    assert client.get("/api/scope").json() == {"regions": ["CA", "OR"]}


def test_theme_toggle_and_set(client) -> None:
    assert client.get("/api/theme").json() == {"theme": "light"}
    assert client.put("/api/theme").json() == {"theme": "dark"}
    assert client.put("/api/theme").json() == {"theme": "light"}
    assert client.put("/api/theme", json={"theme": "dark"}).json() == {"theme": "dark"}
    assert client.put("/api/theme", json={"theme": "sepia"}).status_code == 422


def test_refresh_reports_failed_feeds(client) -> None:
    client.upstream["www.fema.gov"] = fail_transport
    body = client.post("/api/refresh").json()
    assert body == {
        "ok": False,
        "failed": ["declarations"],
        "message": "1 feed(s) had errors: declarations",
    }

    snapshot = client.get("/api/snapshot").json()
    assert snapshot["status_level"] == "danger"
    assert len(snapshot["needs_action"]) == 3
    assert snapshot["needs_action"][0]["source"] == "weather"
    assert snapshot["generated_at"] == "2026-10-18T18:00:00Z"

    feeds = {f["feed_id"]: f for f in client.get("/api/feeds").json()}
    assert feeds["declarations"]["status"] == "error"
    assert feeds["declarations"]["needs_attention"] is True
    assert feeds["seismic"]["raw_count"] == 3
    assert isinstance(feeds["seismic"]["fetch_ms"], int)
    assert feeds["declarations"]["fetch_ms"] is None


def test_single_feed_refresh(client) -> None:
    res = client.post("/api/feeds/seismic/refresh")
    assert res.status_code == 200
    assert res.json() == {"ok": True, "feed_id": "seismic", "status": "ok", "error": None}
    assert client.post("/api/feeds/tsunami/refresh").status_code == 404


def test_brief_page_renders_banner(client) -> None:
    client.post("/api/refresh")
    res = client.get("/")
    assert res.status_code == 200
    assert "Action needed - critical events require attention" in res.text
    assert "FL - HURRICANE OSCAR" in res.text
    assert "Canyon" in res.text
