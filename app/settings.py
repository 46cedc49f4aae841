from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    db_path: Path = Field(
        default=Path("data/hazard-brief.db"), validation_alias="DB_PATH"
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # api.weather.gov rejects requests without an identifying agent
    user_agent: str = Field(
        default="(hazard-brief, ops@hazard-brief.invalid)",
        validation_alias="USER_AGENT",
    )

    nws_alerts_url: str = Field(
        default="https://api.weather.gov/alerts/active?status=actual",
        validation_alias="NWS_ALERTS_URL",
    )
    fema_url: str = Field(
        default="https://www.fema.gov/api/open/v2/DisasterDeclarationsSummaries",
        validation_alias="FEMA_URL",
    )
    nifc_url: str = Field(
        default=(
            "https://services9.arcgis.com/RHVPKKiFTONKtxq3/arcgis/rest/services/"
            "USA_Wildfires_v1/FeatureServer/0/query"
        ),
        validation_alias="NIFC_URL",
    )
    usgs_url: str = Field(
        default="https://earthquake.usgs.gov/earthquakes/feed/v1.0/summary/2.5_week.geojson",
        validation_alias="USGS_URL",
    )

    weather_poll_seconds: int = Field(default=120, validation_alias="WEATHER_POLL_SECONDS")
    declarations_poll_seconds: int = Field(
        default=300, validation_alias="DECLARATIONS_POLL_SECONDS"
    )
    wildfire_poll_seconds: int = Field(
        default=900, validation_alias="WILDFIRE_POLL_SECONDS"
    )
    seismic_poll_seconds: int = Field(default=300, validation_alias="SEISMIC_POLL_SECONDS")

    fema_days_back: int = Field(default=30, validation_alias="FEMA_DAYS_BACK")
    fema_page_size: int = Field(default=1000, validation_alias="FEMA_PAGE_SIZE")
    nifc_record_count: int = Field(default=2000, validation_alias="NIFC_RECORD_COUNT")

    needs_action_hours: int = Field(default=48, validation_alias="NEEDS_ACTION_HOURS")
    fire_acres_threshold: float = Field(
        default=10_000, validation_alias="FIRE_ACRES_THRESHOLD"
    )
    fire_containment_threshold: float = Field(
        default=50, validation_alias="FIRE_CONTAINMENT_THRESHOLD"
    )
    quake_min_mag: float = Field(default=4.0, validation_alias="QUAKE_MIN_MAG")
    quake_action_mag: float = Field(default=5.0, validation_alias="QUAKE_ACTION_MAG")

    feed_stale_seconds: int = Field(default=600, validation_alias="FEED_STALE_SECONDS")
    cache_max_age_seconds: int = Field(
        default=6 * 60 * 60, validation_alias="CACHE_MAX_AGE_SECONDS"
    )
    scope_match_mode: Literal["substring", "word"] = Field(
        default="substring", validation_alias="SCOPE_MATCH_MODE"
    )
