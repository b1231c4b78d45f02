"""API response models for the query and config endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ConfigInbox(BaseModel):
    """Station config as consumed by the setup page (all values strings)."""

    callsign: str = Field("", serialization_alias="Callsign")
    region: str = Field("", serialization_alias="Region")
    location: str = Field("", serialization_alias="Location")
    locator: str = Field("", serialization_alias="Locator")
    sysop: str = Field("", serialization_alias="SYSOP")
    latitude: str = Field("", serialization_alias="Latitude")
    longitude: str = Field("", serialization_alias="Longitude")
    url: str = Field("", serialization_alias="URL")
    rx_frequency: str = Field("", serialization_alias="RXFrequency")
    tx_frequency: str = Field("", serialization_alias="TXFrequency")
    network: str = Field("", serialization_alias="Network")
    ctcss_repeater: str = Field("", serialization_alias="CTCSSRepeater")
    tg_default: str = Field("", serialization_alias="TGDefault")
    tg_monitored: str = Field("", serialization_alias="TGMonitored")


class LocalConfig(BaseModel):
    """Compact single-row config view."""

    callsign: str | None
    dns_domain: str | None
    default_tg: int | None
    monitor_tgs: str | None
    rxfreq: str | None
    txfreq: str | None
    latitude: str | None
    longitude: str | None
    updated_at: str | None


class HeatmapCell(BaseModel):
    """QSO count for one weekday/hour slot."""

    weekday: int | None
    hour: int | None
    count: int


class LastHeardEntry(BaseModel):
    """Finished transmission with its duration."""

    callsign: str
    tg: int
    server: str
    talk: str
    event_time: str
    duration_s: int | None
    location: str | None
    country_code: str | None


class ActiveStationEntry(BaseModel):
    """Station currently on air."""

    callsign: str
    tg: int
    server: str
    event_time: str
    location: str | None
    country_code: str | None


class CallsignCountEntry(BaseModel):
    """Leaderboard row ranked by number of transmissions."""

    callsign: str | None
    cnt: int
    country_code: str | None


class CallsignDurationEntry(BaseModel):
    """Leaderboard row ranked by total transmission time."""

    callsign: str | None
    sec: float
    country_code: str | None


class HallOfFameEntry(BaseModel):
    """Leaderboard row ranked by composite score."""

    callsign: str | None
    qso_count: int
    total_sec: float
    score: float
    avg_sec: float
    country_code: str | None


class TalkgroupEntry(BaseModel):
    """Talkgroup ranked by total transmission time."""

    tg: int | None
    cnt: int
    total_sec: float
    avg_sec: float


class ErrorResponse(BaseModel):
    """Error document of the query endpoint."""

    error: str

    model_config = ConfigDict(json_schema_extra={"example": {"error": "bad query"}})


class ConfigSaveResponse(BaseModel):
    """Successful config write."""

    ok: bool = True
    stored_table: str = "config"
    id: int = 1
    count: int = Field(..., description="Number of non-empty submitted fields")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"ok": True, "stored_table": "config", "id": 1, "count": 14}
        }
    )


class ConfigSaveError(BaseModel):
    """Rejected or failed config write."""

    ok: bool = False
    error: str

    model_config = ConfigDict(
        json_schema_extra={"example": {"ok": False, "error": "auth required"}}
    )


class HealthCheckResponse(BaseModel):
    """Health check endpoint response."""

    status: str = Field("healthy", description="Service health status")
    timestamp: datetime = Field(..., description="Current server time")
    version: str = Field(..., description="API version")
    database: str = Field(..., description="Database connection status")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-01T12:00:00Z",
                "version": "1.0.0",
                "database": "connected",
            }
        }
    )
