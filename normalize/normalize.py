from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from typing import TypeVar

from normalize.records import (
    DisasterDeclaration,
    SeismicEvent,
    WeatherAlert,
    WildfireIncident,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")


def _dt_from_epoch_ms(ms: object) -> datetime | None:
    if ms is None or ms == "":
        return None
    return datetime.fromtimestamp(int(ms) / 1000.0, tz=UTC)


def _parse_iso(ts: object) -> datetime | None:
    if not ts:
        return None
    text = str(ts)
    if text.endswith("Z"):
        text = text.removesuffix("Z") + "+00:00"
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def _opt_float(value: object) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


def _opt_int(value: object) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def _opt_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _each_valid(
    records: list[dict], normalize_one: Callable[[dict], T], *, feed: str
) -> Iterator[T]:
    """Yield normalized records, skipping any that are malformed."""
    for index, record in enumerate(records):
        try:
            normalized = normalize_one(record)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(
                "record_skipped feed=%s index=%d error=%s", feed, index, e.__class__.__name__
            )
            continue
        yield normalized


def normalize_nws_alert(record: dict) -> WeatherAlert:
    properties = record["properties"]
    return WeatherAlert(
        id=str(record.get("id") or properties.get("id") or ""),
        event=str(properties.get("event") or "Unknown"),
        severity=properties.get("severity"),
        urgency=_opt_str(properties.get("urgency")),
        certainty=_opt_str(properties.get("certainty")),
        headline=_opt_str(properties.get("headline")),
        area_desc=_opt_str(properties.get("areaDesc")),
        sender_name=_opt_str(properties.get("senderName")),
        effective=_parse_iso(properties.get("effective") or properties.get("onset")),
        expires=_parse_iso(properties.get("expires") or properties.get("ends")),
        geometry=record.get("geometry"),
    )


def normalize_nws_alerts(records: list[dict]) -> list[WeatherAlert]:
    return list(_each_valid(records, normalize_nws_alert, feed="weather"))


def normalize_fema_declaration(record: dict) -> DisasterDeclaration:
    disaster_number = int(record["disasterNumber"])
    return DisasterDeclaration(
        id=str(record.get("id") or record.get("femaDeclarationString") or disaster_number),
        disaster_number=disaster_number,
        state=str(record.get("state") or "").strip().upper(),
        incident_type=str(record.get("incidentType") or "Other"),
        declaration_title=str(record.get("declarationTitle") or ""),
        declaration_type=_opt_str(record.get("declarationType")),
        designated_area=_opt_str(record.get("designatedArea")),
        declaration_date=_parse_iso(record["declarationDate"]),
        incident_begin_date=_parse_iso(record.get("incidentBeginDate")),
        incident_end_date=_parse_iso(record.get("incidentEndDate")),
    )


def normalize_fema_declarations(records: list[dict]) -> list[DisasterDeclaration]:
    """Normalize newest-first summaries, keeping one row per disaster number.

    OpenFEMA returns one summary per designated area and amendment; the
    first row seen for a disaster number is treated as the canonical one.
    """
    seen: set[int] = set()
    out: list[DisasterDeclaration] = []
    for declaration in _each_valid(
        records, normalize_fema_declaration, feed="declarations"
    ):
        if declaration.disaster_number in seen:
            continue
        seen.add(declaration.disaster_number)
        out.append(declaration)
    return out


def normalize_nifc_incident(record: dict) -> WildfireIncident:
    attributes = record.get("attributes") or {}
    geometry = record.get("geometry") or {}
    lon = _opt_float(geometry.get("x"))
    lat = _opt_float(geometry.get("y"))
    if lon is None or lat is None:
        lon = lat = None

    return WildfireIncident(
        incident_name=str(attributes.get("IncidentName") or "Unknown Fire").strip(),
        daily_acres=_opt_float(attributes.get("DailyAcres")),
        calculated_acres=_opt_float(attributes.get("CalculatedAcres")),
        percent_contained=_opt_float(attributes.get("PercentContained")),
        discovered_at=_dt_from_epoch_ms(attributes.get("FireDiscoveryDateTime")),
        fire_cause=_opt_str(attributes.get("FireCause")),
        poo_state=_opt_str(attributes.get("POOState")),
        poo_county=_opt_str(attributes.get("POOCounty")),
        gacc=_opt_str(attributes.get("GACC")),
        total_personnel=_opt_int(attributes.get("TotalIncidentPersonnel")),
        complexity=_opt_str(attributes.get("FireMgmtComplexity")),
        residences_destroyed=_opt_int(attributes.get("ResidencesDestroyed")),
        injuries=_opt_int(attributes.get("Injuries")),
        fatalities=_opt_int(attributes.get("Fatalities")),
        modified_at=_dt_from_epoch_ms(attributes.get("ModifiedOnDateTime")),
        longitude=lon,
        latitude=lat,
    )


def normalize_nifc_incidents(records: list[dict]) -> list[WildfireIncident]:
    return list(_each_valid(records, normalize_nifc_incident, feed="wildfire"))


def normalize_usgs_earthquake(record: dict) -> SeismicEvent:
    properties = record["properties"]
    geometry = record.get("geometry") or {}
    coords = list(geometry.get("coordinates") or [])
    coords += [None] * (3 - len(coords))

    return SeismicEvent(
        id=str(record.get("id") or properties.get("code") or ""),
        mag=_opt_float(properties.get("mag")),
        place=_opt_str(properties.get("place")),
        time=_dt_from_epoch_ms(properties["time"]),
        updated=_dt_from_epoch_ms(properties.get("updated")),
        alert=properties.get("alert"),
        tsunami=bool(properties.get("tsunami")),
        url=_opt_str(properties.get("url")),
        longitude=_opt_float(coords[0]),
        latitude=_opt_float(coords[1]),
        depth=_opt_float(coords[2]),
    )


def normalize_usgs_earthquakes(records: list[dict]) -> list[SeismicEvent]:
    return list(_each_valid(records, normalize_usgs_earthquake, feed="seismic"))
