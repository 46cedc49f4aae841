from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from typing import Literal

from geo.regions import region_name
from normalize.records import (
    DisasterDeclaration,
    SeismicEvent,
    WeatherAlert,
    WildfireIncident,
)


MatchMode = Literal["substring", "word"]
ScopeMatcher = Callable[[object, Sequence[str], MatchMode], bool]

_TOKEN_RE = re.compile(r"[a-z]+")


def _tokens_joined(text: str) -> str:
    return f" {' '.join(_TOKEN_RE.findall(text.casefold()))} "


def name_in_text(name: str, text: str, mode: MatchMode = "substring") -> bool:
    if not name or not text:
        return False
    if mode == "word":
        return _tokens_joined(name) in _tokens_joined(text)
    return name.casefold() in text.casefold()


def _any_name_in(text: str | None, scope: Sequence[str], mode: MatchMode) -> bool:
    if not text:
        return False
    for code in scope:
        name = region_name(code)
        if name and name_in_text(name, text, mode):
            return True
    return False


def match_declaration(
    record: DisasterDeclaration, scope: Sequence[str], mode: MatchMode = "substring"
) -> bool:
    if not scope:
        return True
    return bool(record.state) and record.state in scope


def match_weather_alert(
    record: WeatherAlert, scope: Sequence[str], mode: MatchMode = "substring"
) -> bool:
    if not scope:
        return True
    return _any_name_in(record.area_desc, scope, mode)


def match_wildfire(
    record: WildfireIncident, scope: Sequence[str], mode: MatchMode = "substring"
) -> bool:
    if not scope:
        return True
    location = record.poo_state
    if not location:
        return False
    # WFIGS encodes the point of origin as "US-CA"
    iso_code = location.strip().upper()
    if iso_code.startswith("US-") and iso_code[3:] in scope:
        return True
    return _any_name_in(location, scope, mode)


def match_seismic_event(
    record: SeismicEvent, scope: Sequence[str], mode: MatchMode = "substring"
) -> bool:
    if not scope:
        return True
    place = record.place
    if not place:
        return False
    for code in scope:
        if place.endswith(f", {code}"):
            return True
    return _any_name_in(place, scope, mode)
