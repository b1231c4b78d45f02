"""Data models for openfm-api."""

from .api_models import (
    ConfigInbox,
    ConfigSaveResponse,
    HealthCheckResponse,
    LastHeardEntry,
    LocalConfig,
)
from .database_models import ActiveStation, FMStat, LastHeard, Node, StationConfig

__all__ = [
    "ConfigInbox",
    "ConfigSaveResponse",
    "HealthCheckResponse",
    "LastHeardEntry",
    "LocalConfig",
    "ActiveStation",
    "FMStat",
    "LastHeard",
    "Node",
    "StationConfig",
]
