from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Literal

from app.settings import Settings
from normalize.records import (
    DisasterDeclaration,
    SeismicEvent,
    WeatherAlert,
    WildfireIncident,
)
from status.formatters import containment_kind, format_acres


StatusLevel = Literal["success", "warning", "danger"]
ItemSeverity = Literal["danger", "warning"]

MAX_NEEDS_ACTION = 3


@dataclass(frozen=True)
class NeedsActionItem:
    source: str
    icon: str
    headline: str
    detail: str
    severity: ItemSeverity
    time: datetime | None
    label: str
    kind: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["time"] = (
            self.time.isoformat().replace("+00:00", "Z") if self.time else None
        )
        return data


@dataclass(frozen=True)
class StatusThresholds:
    needs_action_hours: int = 48
    fire_acres: float = 10_000
    fire_containment: float = 50
    quake_action_mag: float = 5.0

    @classmethod
    def from_settings(cls, settings: Settings) -> StatusThresholds:
        return cls(
            needs_action_hours=settings.needs_action_hours,
            fire_acres=settings.fire_acres_threshold,
            fire_containment=settings.fire_containment_threshold,
            quake_action_mag=settings.quake_action_mag,
        )


def _extreme_weather_item(alerts: Sequence[WeatherAlert]) -> NeedsActionItem | None:
    extreme = [a for a in alerts if a.severity == "Extreme"]
    if not extreme:
        return None
    areas: list[str] = []
    for alert in extreme:
        area = alert.primary_area()
        if area and area not in areas:
            areas.append(area)
    first = extreme[0]
    return NeedsActionItem(
        source="weather",
        icon="exclamation-mark-triangle",
        headline=f"Extreme weather: {first.event}",
        detail=", ".join(areas[:3]),
        severity="danger",
        time=first.effective,
        label="Extreme",
        kind="danger",
    )


def _new_declaration_item(
    declarations: Sequence[DisasterDeclaration], cutoff: datetime
) -> NeedsActionItem | None:
    fresh = [d for d in declarations if d.declaration_date > cutoff]
    if not fresh:
        return None
    first = fresh[0]
    return NeedsActionItem(
        source="declarations",
        icon="organization",
        headline=f"New FEMA declaration: {first.declaration_title}",
        detail=f"{first.state} - {first.incident_type}",
        severity="danger",
        time=first.declaration_date,
        label=first.incident_type,
        kind="brand",
    )


def _is_big_quake(event: SeismicEvent, action_mag: float) -> bool:
    if event.mag is not None and event.mag >= action_mag:
        return True
    return event.alert in ("red", "orange")


def _big_quake_item(
    events: Sequence[SeismicEvent], action_mag: float
) -> NeedsActionItem | None:
    big = [e for e in events if _is_big_quake(e, action_mag)]
    if not big:
        return None
    first = big[0]
    mag = f"M{first.mag:.1f}" if first.mag is not None else "M?"
    return NeedsActionItem(
        source="seismic",
        icon="pin-tear",
        headline=f"{mag} earthquake - {first.place or 'Unknown location'}",
        detail=f"PAGER: {first.alert}" if first.alert else "",
        severity="danger" if first.alert == "red" else "warning",
        time=first.time,
        label=mag,
        kind="danger" if (first.mag or 0) >= 6 else "warning",
    )


def _is_uncontained(fire: WildfireIncident, threshold: float) -> bool:
    return fire.percent_contained is None or fire.percent_contained < threshold


def _big_fire_item(
    fires: Sequence[WildfireIncident], thresholds: StatusThresholds
) -> NeedsActionItem | None:
    big = [
        f
        for f in fires
        if f.acres >= thresholds.fire_acres
        and _is_uncontained(f, thresholds.fire_containment)
    ]
    if not big:
        return None
    first = big[0]
    contained = first.percent_contained
    pct = f"{contained:g}%" if contained is not None else "0%"
    return NeedsActionItem(
        source="wildfire",
        icon="fire",
        headline=f"{first.incident_name} - {format_acres(first.acres)}",
        detail=f"{first.poo_state or 'Unknown'} - {pct} contained",
        severity="warning",
        time=first.discovered_at,
        label=pct,
        kind=containment_kind(contained),
    )


def synthesize_status(
    *,
    weather: Sequence[WeatherAlert],
    declarations: Sequence[DisasterDeclaration],
    wildfire: Sequence[WildfireIncident],
    seismic: Sequence[SeismicEvent],
    now: datetime,
    thresholds: StatusThresholds | None = None,
) -> tuple[list[NeedsActionItem], StatusLevel]:
    """Rank needs-action items and derive the overall status level.

    Checks run in a fixed priority order (extreme weather, new federal
    declarations, large quakes, large uncontained fires); each contributes
    at most one item built from the first qualifying record, and the list
    is truncated to the first three.
    """
    thresholds = thresholds or StatusThresholds()
    cutoff = now - timedelta(hours=thresholds.needs_action_hours)

    candidates = [
        _extreme_weather_item(weather),
        _new_declaration_item(declarations, cutoff),
        _big_quake_item(seismic, thresholds.quake_action_mag),
        _big_fire_item(wildfire, thresholds),
    ]
    actions = [item for item in candidates if item is not None]

    level: StatusLevel
    if any(item.severity == "danger" for item in actions):
        level = "danger"
    elif actions:
        level = "warning"
    elif any(a.severity == "Severe" for a in weather) or any(
        f.acres >= thresholds.fire_acres for f in wildfire
    ):
        level = "warning"
    else:
        level = "success"

    return actions[:MAX_NEEDS_ACTION], level
