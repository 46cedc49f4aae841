from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator


Severity = Literal["Extreme", "Severe", "Moderate", "Minor", "Unknown"]
PagerAlert = Literal["green", "yellow", "orange", "red"]

_SEVERITIES = ("Extreme", "Severe", "Moderate", "Minor", "Unknown")
_PAGER_ALERTS = ("green", "yellow", "orange", "red")


class _Record(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class WeatherAlert(_Record):
    id: str
    event: str
    severity: Severity = "Unknown"
    urgency: str | None = None
    certainty: str | None = None
    headline: str | None = None
    area_desc: str | None = None
    sender_name: str | None = None
    effective: datetime | None = None
    expires: datetime | None = None
    geometry: dict | None = None

    @field_validator("severity", mode="before")
    @classmethod
    def _coerce_severity(cls, value: object) -> str:
        text = str(value or "").strip().capitalize()
        return text if text in _SEVERITIES else "Unknown"

    def primary_area(self) -> str | None:
        """First place of the semicolon-delimited area description."""
        if not self.area_desc:
            return None
        first = self.area_desc.split(";")[0].strip()
        return first or None


class DisasterDeclaration(_Record):
    id: str
    disaster_number: int
    state: str
    incident_type: str
    declaration_title: str
    declaration_type: str | None = None
    designated_area: str | None = None
    declaration_date: datetime
    incident_begin_date: datetime | None = None
    incident_end_date: datetime | None = None


class WildfireIncident(_Record):
    incident_name: str
    daily_acres: float | None = None
    calculated_acres: float | None = None
    percent_contained: float | None = None
    discovered_at: datetime | None = None
    fire_cause: str | None = None
    poo_state: str | None = None
    poo_county: str | None = None
    gacc: str | None = None
    total_personnel: int | None = None
    complexity: str | None = None
    residences_destroyed: int | None = None
    injuries: int | None = None
    fatalities: int | None = None
    modified_at: datetime | None = None
    longitude: float | None = None
    latitude: float | None = None

    @property
    def acres(self) -> float:
        return self.daily_acres or self.calculated_acres or 0.0

    @property
    def has_position(self) -> bool:
        return self.longitude is not None and self.latitude is not None


class SeismicEvent(_Record):
    id: str
    mag: float | None = None
    place: str | None = None
    time: datetime
    updated: datetime | None = None
    alert: PagerAlert | None = None
    tsunami: bool = False
    url: str | None = None
    longitude: float | None = None
    latitude: float | None = None
    depth: float | None = None

    @field_validator("alert", mode="before")
    @classmethod
    def _coerce_alert(cls, value: object) -> str | None:
        if value is None:
            return None
        text = str(value).strip().casefold()
        return text if text in _PAGER_ALERTS else None

    @property
    def has_position(self) -> bool:
        return self.longitude is not None and self.latitude is not None


FeedRecord = WeatherAlert | DisasterDeclaration | WildfireIncident | SeismicEvent
