from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from normalize.records import (
    DisasterDeclaration,
    SeismicEvent,
    WeatherAlert,
    WildfireIncident,
)
from status.formatters import (
    containment_kind,
    format_acres,
    incident_icon,
    pager_kind,
    time_until,
    weather_severity_kind,
)
from status.synthesizer import StatusLevel


MAX_DECLARATIONS = 15
MAX_FIRES = 10
MAX_QUAKES = 10


def banner_message(level: StatusLevel, scope: Sequence[str], needs_action_count: int) -> str:
    where = f"in {', '.join(scope)}" if scope else "nationally"
    if level == "success":
        return f"All clear - no critical events {where}"
    if level == "warning":
        count = needs_action_count or "active"
        return f"Active watches - {count} advisory items {where}"
    suffix = f" {where}" if scope else ""
    return f"Action needed - critical events require attention{suffix}"


def weather_outlook(alerts: Sequence[WeatherAlert], now: datetime) -> list[dict]:
    """Group severe and extreme alerts by event, largest groups first."""
    groups: dict[str, list[WeatherAlert]] = {}
    for alert in alerts:
        if alert.severity not in ("Extreme", "Severe"):
            continue
        groups.setdefault(alert.event or "Unknown", []).append(alert)

    out: list[dict] = []
    for event, items in sorted(groups.items(), key=lambda kv: -len(kv[1])):
        expiring = [a.expires for a in items if a.expires is not None]
        soonest = min(expiring) if expiring else None
        out.append(
            {
                "event": event,
                "count": len(items),
                "severity": items[0].severity,
                "kind": weather_severity_kind(items[0].severity),
                "soonest_expiry": soonest.isoformat().replace("+00:00", "Z")
                if soonest
                else None,
                "expires_in": time_until(soonest, now),
            }
        )
    return out


def _declaration_row(d: DisasterDeclaration) -> dict:
    return {
        "label": f"{d.state} - {d.declaration_title}",
        "incident_type": d.incident_type,
        "icon": incident_icon(d.incident_type),
        "declaration_date": d.declaration_date.isoformat().replace("+00:00", "Z"),
    }


def _fire_row(f: WildfireIncident) -> dict:
    location = f.poo_state or ""
    if f.poo_county:
        location = f"{location}, {f.poo_county}" if location else f.poo_county
    return {
        "name": f.incident_name,
        "location": location,
        "acres": f.acres,
        "acres_text": format_acres(f.acres),
        "percent_contained": f.percent_contained,
        "kind": containment_kind(f.percent_contained),
    }


def _quake_row(q: SeismicEvent) -> dict:
    return {
        "id": q.id,
        "mag": q.mag,
        "place": q.place or "Unknown",
        "alert": q.alert,
        "kind": pager_kind(q.alert),
        "time": q.time.isoformat().replace("+00:00", "Z"),
    }


def build_digest(
    *,
    weather: Sequence[WeatherAlert],
    declarations: Sequence[DisasterDeclaration],
    wildfire: Sequence[WildfireIncident],
    seismic: Sequence[SeismicEvent],
    level: StatusLevel,
    scope: Sequence[str],
    needs_action_count: int,
    now: datetime,
) -> dict:
    fires = sorted(wildfire, key=lambda f: f.acres, reverse=True)
    quakes = sorted(seismic, key=lambda q: q.mag or 0, reverse=True)
    return {
        "banner": banner_message(level, scope, needs_action_count),
        "counts": {
            "declarations": len(declarations),
            "weather": len(weather),
            "wildfire": len(wildfire),
            "seismic": len(seismic),
        },
        "weather_outlook": weather_outlook(weather, now),
        "declarations": [_declaration_row(d) for d in declarations[:MAX_DECLARATIONS]],
        "declarations_more": max(0, len(declarations) - MAX_DECLARATIONS),
        "fires": [_fire_row(f) for f in fires[:MAX_FIRES]],
        "quakes": [_quake_row(q) for q in quakes[:MAX_QUAKES]],
    }
