from __future__ import annotations

from datetime import UTC, datetime


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def format_acres(acres: float | None) -> str:
    if acres is None:
        return "-"
    if acres >= 1000:
        return f"{acres / 1000:.1f}K acres"
    return f"{round(acres)} acres"


def format_number(value: float | None) -> str:
    if value is None:
        return "-"
    return f"{value:,}"


def format_date(value: datetime | None) -> str:
    if value is None:
        return "-"
    return f"{value:%b} {value.day}, {value.year}"


def time_ago(value: datetime | None, now: datetime | None = None) -> str:
    if value is None:
        return ""
    now = now or _utc_now()
    mins = int((now - value).total_seconds() // 60)
    if mins < 1:
        return "just now"
    if mins < 60:
        return f"{mins}m ago"
    hrs = mins // 60
    if hrs < 24:
        return f"{hrs}h ago"
    return f"{hrs // 24}d ago"


def time_until(value: datetime | None, now: datetime | None = None) -> str:
    if value is None:
        return ""
    now = now or _utc_now()
    seconds = (value - now).total_seconds()
    if seconds < 0:
        return "expired"
    hrs = int(seconds // 3600)
    if hrs < 1:
        return f"{int(seconds // 60)}m"
    if hrs < 24:
        return f"{hrs}h"
    return f"{hrs // 24}d"


def containment_kind(percent: float | None) -> str:
    if percent is None or percent < 25:
        return "danger"
    if percent < 75:
        return "warning"
    return "success"


def weather_severity_kind(severity: str | None) -> str:
    if severity == "Extreme":
        return "danger"
    if severity == "Severe":
        return "warning"
    if severity == "Moderate":
        return "brand"
    return "neutral"


def pager_kind(alert: str | None) -> str:
    if alert == "red":
        return "danger"
    if alert in ("orange", "yellow"):
        return "warning"
    return "neutral"


_INCIDENT_ICONS = {
    "Fire": "fire",
    "Hurricane": "hurricane",
    "Tornado": "tornado",
    "Flood": "effects-rain",
    "Severe Storm": "lightning-bolt",
    "Severe Storm(s)": "lightning-bolt",
    "Earthquake": "pin-tear",
    "Snowstorm": "snowflake",
    "Snow": "snowflake",
    "Severe Ice Storm": "snowflake",
    "Winter Storm": "snowflake",
    "Typhoon": "hurricane",
    "Tropical Storm": "hurricane",
    "Coastal Storm": "wave",
    "Mud/Landslide": "mountain",
    "Drought": "brightness",
    "Biological": "biohazard",
}


def incident_icon(incident_type: str | None) -> str:
    return _INCIDENT_ICONS.get(incident_type or "", "exclamation-mark-circle")
