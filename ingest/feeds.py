from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from app.settings import Settings
from geo.scope import (
    MatchMode,
    match_declaration,
    match_seismic_event,
    match_weather_alert,
    match_wildfire,
)
from ingest.parsers.arcgis import parse_arcgis_features
from ingest.parsers.geojson import parse_geojson
from ingest.parsers.json import parse_openfema_records
from normalize.normalize import (
    normalize_fema_declarations,
    normalize_nifc_incidents,
    normalize_nws_alerts,
    normalize_usgs_earthquakes,
)
from normalize.records import (
    DisasterDeclaration,
    FeedRecord,
    SeismicEvent,
    WeatherAlert,
    WildfireIncident,
)


FEED_IDS: tuple[str, ...] = ("weather", "declarations", "wildfire", "seismic")

NIFC_OUT_FIELDS = (
    "IncidentName,DailyAcres,PercentContained,FireDiscoveryDateTime,FireCause,"
    "POOState,POOCounty,GACC,TotalIncidentPersonnel,FireMgmtComplexity,"
    "CalculatedAcres,ResidencesDestroyed,Injuries,Fatalities,ModifiedOnDateTime"
)

ParseFn = Callable[[bytes], list[dict]]
NormalizeFn = Callable[[list[dict]], list[FeedRecord]]
BuildParamsFn = Callable[[datetime], dict[str, str] | None]
ActiveFn = Callable[[FeedRecord, datetime], bool]
MatchFn = Callable[[FeedRecord, Sequence[str], MatchMode], bool]


@dataclass(frozen=True)
class FeedSpec:
    feed_id: str
    name: str
    url: str
    poll_interval_seconds: int
    record_type: type[FeedRecord]
    parse: ParseFn
    normalize: NormalizeFn
    is_active: ActiveFn
    matches_scope: MatchFn
    build_params: BuildParamsFn | None = None
    headers: dict[str, str] | None = None


def weather_is_active(record: WeatherAlert, now: datetime) -> bool:
    # the alerts endpoint only serves active alerts
    return True


def declaration_is_active(record: DisasterDeclaration, now: datetime) -> bool:
    end = record.incident_end_date
    return end is None or end > now


def wildfire_is_active(record: WildfireIncident, now: datetime) -> bool:
    contained = record.percent_contained
    if contained is not None and contained >= 100:
        return False
    return (record.daily_acres or 0) > 0 or (record.total_personnel or 0) > 0


def seismic_is_significant(
    record: SeismicEvent, now: datetime, *, min_mag: float
) -> bool:
    if record.mag is not None and record.mag >= min_mag:
        return True
    return record.alert in ("yellow", "orange", "red")


def compute_filtered(
    spec: FeedSpec,
    raw: Sequence[FeedRecord],
    scope: Sequence[str],
    now: datetime,
    mode: MatchMode = "substring",
) -> list[FeedRecord]:
    return [
        r
        for r in raw
        if spec.is_active(r, now) and spec.matches_scope(r, scope, mode)
    ]


def feed_specs(settings: Settings) -> dict[str, FeedSpec]:
    def fema_params(now: datetime) -> dict[str, str]:
        cutoff = (now - timedelta(days=settings.fema_days_back)).date().isoformat()
        return {
            "$filter": f"declarationDate ge '{cutoff}'",
            "$orderby": "declarationDate desc",
            "$top": str(settings.fema_page_size),
        }

    def nifc_params(now: datetime) -> dict[str, str]:
        return {
            "where": "1=1",
            "outFields": NIFC_OUT_FIELDS,
            "f": "json",
            "resultRecordCount": str(settings.nifc_record_count),
        }

    specs = [
        FeedSpec(
            feed_id="weather",
            name="NWS Active Alerts",
            url=settings.nws_alerts_url,
            poll_interval_seconds=settings.weather_poll_seconds,
            record_type=WeatherAlert,
            parse=parse_geojson,
            normalize=normalize_nws_alerts,
            is_active=weather_is_active,
            matches_scope=match_weather_alert,
            headers={"Accept": "application/geo+json"},
        ),
        FeedSpec(
            feed_id="declarations",
            name="FEMA Disaster Declarations",
            url=settings.fema_url,
            poll_interval_seconds=settings.declarations_poll_seconds,
            record_type=DisasterDeclaration,
            parse=parse_openfema_records,
            normalize=normalize_fema_declarations,
            is_active=declaration_is_active,
            matches_scope=match_declaration,
            build_params=fema_params,
        ),
        FeedSpec(
            feed_id="wildfire",
            name="NIFC Wildfire Incidents",
            url=settings.nifc_url,
            poll_interval_seconds=settings.wildfire_poll_seconds,
            record_type=WildfireIncident,
            parse=parse_arcgis_features,
            normalize=normalize_nifc_incidents,
            is_active=wildfire_is_active,
            matches_scope=match_wildfire,
            build_params=nifc_params,
        ),
        FeedSpec(
            feed_id="seismic",
            name="USGS Earthquakes (M2.5+, Past Week)",
            url=settings.usgs_url,
            poll_interval_seconds=settings.seismic_poll_seconds,
            record_type=SeismicEvent,
            parse=parse_geojson,
            normalize=normalize_usgs_earthquakes,
            is_active=lambda r, now: seismic_is_significant(
                r, now, min_mag=settings.quake_min_mag
            ),
            matches_scope=match_seismic_event,
        ),
    ]
    return {s.feed_id: s for s in specs}
