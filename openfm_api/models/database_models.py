"""Database models for the MMDVM activity database.

Column names follow the existing schema shared with the ingest job, so some
attributes map onto mixed-case columns (``LAT``, ``nodeLocation``, ...).
"""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase

# The single meaningful row of the config table
STATION_CONFIG_ID = 1


def _now() -> datetime:
    return datetime.now().replace(microsecond=0)


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class StationConfig(Base):
    """Station setup parameters (exactly one meaningful row, id=1)."""

    __tablename__ = "config"

    id = Column(Integer, primary_key=True, autoincrement=False)

    # Station
    callsign = Column(String(32), nullable=True)
    node_location = Column("nodeLocation", String(255), nullable=True)
    location = Column("Location", String(255), nullable=True)
    locator = Column("Locator", String(64), nullable=True)
    sysop = Column("SysOp", String(255), nullable=True)
    latitude = Column("LAT", String(64), nullable=True)
    longitude = Column("LON", String(64), nullable=True)
    website = Column("Website", String(255), nullable=True)

    # Repeater / hotspot
    rx_freq = Column("RXFREQ", String(64), nullable=True)  # Hz
    tx_freq = Column("TXFREQ", String(64), nullable=True)  # Hz
    dns_domain = Column(String(255), nullable=True)
    ctcss = Column("CTCSS", String(64), nullable=True)

    # Talkgroups
    default_tg = Column(Integer, nullable=True)
    monitor_tgs = Column(Text, nullable=True)  # Free-form comma list

    reboot_requested = Column(Boolean, nullable=False, default=False)
    setup_password = Column(String(255), nullable=True)

    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)


class LastHeard(Base):
    """Start/stop transmission events written by the ingest job."""

    __tablename__ = "fmlastheard"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_time = Column(DateTime, nullable=False, index=True)
    talk = Column(String(8), nullable=False)  # 'start' / 'stop'
    callsign = Column(String(32), nullable=False, index=True)
    tg = Column(Integer, nullable=False, index=True)
    server = Column(String(8), nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)

    __table_args__ = (
        # Duration lookup of the matching start event
        Index("idx_lastheard_session", "callsign", "tg", "server", "talk"),
    )


class ActiveStation(Base):
    """Currently transmitting stations (one row per callsign)."""

    __tablename__ = "fmstatus"

    callsign = Column(String(32), primary_key=True)
    event_time = Column(DateTime, nullable=False, index=True)
    tg = Column(Integer, nullable=False, index=True)
    server = Column(String(8), nullable=False)
    last_update = Column(DateTime, default=_now, onupdate=_now, nullable=False)


class Node(Base):
    """Known nodes with their advertised location."""

    __tablename__ = "nodes"

    callsign = Column(String(32), primary_key=True)
    location = Column(String(255), nullable=True)
    locator = Column(String(16), nullable=True)
    lat = Column(Float, nullable=True)
    lon = Column(Float, nullable=True)
    rx_freq = Column(String(32), nullable=True)
    tx_freq = Column(String(32), nullable=True)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)


class FMStat(Base):
    """Pre-aggregated statistic rows keyed by metric name and rank."""

    __tablename__ = "fmstats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    metric = Column(String(64), nullable=False)
    rank = Column(Integer, nullable=True)

    # Ranking keys (depending on the metric)
    callsign = Column(String(32), nullable=True)
    tg = Column(Integer, nullable=True)
    weekday = Column(Integer, nullable=True)
    hour = Column(Integer, nullable=True)

    # Values
    qso_count = Column(Integer, nullable=True)
    total_seconds = Column(Float, nullable=True)
    score = Column(Float, nullable=True)

    updated_at = Column(DateTime, default=_now, nullable=False)

    __table_args__ = (Index("idx_fmstats_metric_rank", "metric", "rank"),)
