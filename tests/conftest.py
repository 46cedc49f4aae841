from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import httpx
import pytest

from app.settings import Settings


FIXTURES = Path(__file__).resolve().parent / "fixtures"

NOW = datetime(2026, 10, 18, 18, 0, tzinfo=UTC)

FIXTURE_BY_HOST = {
    "api.weather.gov": "nws_alerts.geojson",
    "www.fema.gov": "fema_declarations.json",
    "services9.arcgis.com": "nifc_incidents.json",
    "earthquake.usgs.gov": "usgs.geojson",
}

EMPTY_BY_HOST = {
    "api.weather.gov": b'{"type":"FeatureCollection","features":[]}',
    "www.fema.gov": b'{"DisasterDeclarationsSummaries":[]}',
    "services9.arcgis.com": b'{"features":[]}',
    "earthquake.usgs.gov": b'{"type":"FeatureCollection","features":[]}',
}

Handler = Callable[[httpx.Request], httpx.Response]


def fixture_bytes(name: str) -> bytes:
    return (FIXTURES / name).read_bytes()


def upstream_transport(
    overrides: dict[str, Handler] | None = None,
    *,
    empty: bool = False,
    seen: list[httpx.Request] | None = None,
) -> httpx.MockTransport:
    """Serve the four upstream feeds from fixtures, routed by host."""
    if overrides is None:
        overrides = {}

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        host = request.url.host
        if host in overrides:
            return overrides[host](request)
        if empty:
            return httpx.Response(200, content=EMPTY_BY_HOST[host])
        return httpx.Response(200, content=fixture_bytes(FIXTURE_BY_HOST[host]))

    return httpx.MockTransport(handler)


def fail_transport(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(DB_PATH=tmp_path / "state.db", _env_file=None)
