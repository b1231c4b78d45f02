"""Database operations for station config and activity reports."""

import logging
from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.orm import aliased

from ..exceptions import DatabaseError
from ..models.api_models import (
    ActiveStationEntry,
    CallsignCountEntry,
    CallsignDurationEntry,
    ConfigInbox,
    HallOfFameEntry,
    HeatmapCell,
    LastHeardEntry,
    LocalConfig,
    TalkgroupEntry,
)
from ..models.database_models import (
    STATION_CONFIG_ID,
    ActiveStation,
    FMStat,
    LastHeard,
    Node,
    StationConfig,
)
from ..utils.form_validation import StationConfigUpdate
from ..utils.prefixes import prefix_to_country
from .connection import DRIVER_ERRORS, DatabaseManager, describe_storage_error

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# Metric names written by the statistics job
METRIC_HEATMAP = "heatmap_week"
METRIC_TOP_CALLS_QSO = "top_calls_qso"
METRIC_TOP_CALLS_DURATION = "top_calls_duration"
METRIC_TOP_CALLS_SCORE = "top_calls_score"
METRIC_TOP_TG_DURATION = "top_tg_duration"


def format_timestamp(value: datetime | str | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return value.strftime(TIMESTAMP_FORMAT)


def average(total: float, count: int) -> float:
    return total / count if count > 0 else 0.0


def _text(value: object) -> str:
    return "" if value is None else str(value)


class DatabaseOperations:
    """High-level database operations for the query and config endpoints."""

    def __init__(self, db_manager: DatabaseManager):
        """Initialize database operations.

        Args:
            db_manager: DatabaseManager instance
        """
        self.db_manager = db_manager

    @contextmanager
    def _storage_errors(self, action: str) -> Generator[None]:
        """Translate driver and SQLAlchemy failures into DatabaseError."""
        try:
            yield
        except DRIVER_ERRORS as e:
            message = describe_storage_error(e)
            logger.error(f"Database error while {action}: {message}")
            raise DatabaseError(message) from e

    # Station config

    def _first_config_row(self) -> StationConfig | None:
        with self.db_manager.get_session() as session:
            return session.scalars(
                select(StationConfig).order_by(StationConfig.id).limit(1)
            ).first()

    def get_config_inbox(self) -> ConfigInbox | None:
        """Station config in the shape of the setup page form."""
        with self._storage_errors("reading station config"):
            row = self._first_config_row()

        if row is None:
            return None

        return ConfigInbox(
            callsign=_text(row.callsign),
            region=_text(row.node_location),
            location=_text(row.location),
            locator=_text(row.locator),
            sysop=_text(row.sysop),
            latitude=_text(row.latitude),
            longitude=_text(row.longitude),
            url=_text(row.website),
            rx_frequency=_text(row.rx_freq),
            tx_frequency=_text(row.tx_freq),
            network=_text(row.dns_domain),
            ctcss_repeater=_text(row.ctcss),
            tg_default=_text(row.default_tg),
            tg_monitored=_text(row.monitor_tgs),
        )

    def get_local_config(self) -> LocalConfig | None:
        """Compact view of the station config row."""
        with self._storage_errors("reading station config"):
            row = self._first_config_row()

        if row is None:
            return None

        return LocalConfig(
            callsign=row.callsign,
            dns_domain=row.dns_domain,
            default_tg=row.default_tg,
            monitor_tgs=row.monitor_tgs,
            rxfreq=row.rx_freq,
            txfreq=row.tx_freq,
            latitude=row.latitude,
            longitude=row.longitude,
            updated_at=format_timestamp(row.updated_at),
        )

    def get_setup_password(self, default: str) -> str:
        """Stored setup password, or ``default`` when none is set.

        Raises:
            DatabaseError: If the config row cannot be read
        """
        with self._storage_errors("reading setup password"):
            with self.db_manager.get_session() as session:
                stored = session.scalar(
                    select(StationConfig.setup_password).where(
                        StationConfig.id == STATION_CONFIG_ID
                    )
                )

        return stored if stored else default

    def set_setup_password(self, password: str) -> None:
        """Store a new setup password in the config row."""
        with self._storage_errors("storing setup password"):
            with self.db_manager.get_session() as session:
                row = session.get(StationConfig, STATION_CONFIG_ID)
                if row is None:
                    row = StationConfig(id=STATION_CONFIG_ID)
                    session.add(row)
                row.setup_password = password
                session.commit()

        logger.info("Setup password updated")

    def upsert_station_config(self, update: StationConfigUpdate) -> None:
        """Write the station config into the single config row.

        Every field is overwritten and ``updated_at`` is refreshed. The
        stored setup password is left untouched.

        Raises:
            DatabaseError: If the row cannot be written
        """
        with self._storage_errors("storing station config"):
            with self.db_manager.get_session() as session:
                row = session.get(StationConfig, STATION_CONFIG_ID)
                if row is None:
                    row = StationConfig(id=STATION_CONFIG_ID)
                    session.add(row)

                for field, value in update.model_dump().items():
                    setattr(row, field, value)
                row.updated_at = datetime.now().replace(microsecond=0)

                session.commit()

        logger.info(f"Stored station config for {update.callsign}")

    # Activity feeds

    def get_last_heard(
        self, talkgroups: list[int] | None = None, limit: int = 50
    ) -> list[LastHeardEntry]:
        """Most recent finished transmissions.

        Args:
            talkgroups: Restrict to these talkgroups (None or empty = all)
            limit: Maximum number of rows

        Returns:
            Stop events, newest first, with duration and node location
        """
        start = aliased(LastHeard)
        started_at = (
            select(func.max(start.event_time))
            .where(
                start.callsign == LastHeard.callsign,
                start.tg == LastHeard.tg,
                start.server == LastHeard.server,
                start.talk == "start",
                start.event_time <= LastHeard.event_time,
            )
            .correlate(LastHeard)
            .scalar_subquery()
        )

        query = (
            select(LastHeard, started_at.label("started_at"), Node.location)
            .outerjoin(Node, Node.callsign == LastHeard.callsign)
            .where(LastHeard.talk == "stop")
        )
        if talkgroups:
            query = query.where(LastHeard.tg.in_(talkgroups))
        query = query.order_by(LastHeard.event_time.desc()).limit(limit)

        with self._storage_errors("reading last heard"):
            with self.db_manager.get_session() as session:
                rows = session.execute(query).all()

                entries = []
                for event, started, location in rows:
                    duration = None
                    if started is not None:
                        if isinstance(started, str):
                            started = datetime.fromisoformat(started)
                        duration = int((event.event_time - started).total_seconds())

                    entries.append(
                        LastHeardEntry(
                            callsign=event.callsign,
                            tg=event.tg,
                            server=event.server,
                            talk=event.talk,
                            event_time=format_timestamp(event.event_time),
                            duration_s=duration,
                            location=location,
                            country_code=prefix_to_country(event.callsign),
                        )
                    )

        return entries

    def get_active_stations(self) -> list[ActiveStationEntry]:
        """Stations currently on air, newest first."""
        query = (
            select(ActiveStation, Node.location)
            .outerjoin(Node, Node.callsign == ActiveStation.callsign)
            .order_by(ActiveStation.event_time.desc())
        )

        with self._storage_errors("reading active stations"):
            with self.db_manager.get_session() as session:
                return [
                    ActiveStationEntry(
                        callsign=station.callsign,
                        tg=station.tg,
                        server=station.server,
                        event_time=format_timestamp(station.event_time),
                        location=location,
                        country_code=prefix_to_country(station.callsign),
                    )
                    for station, location in session.execute(query).all()
                ]

    # Pre-aggregated statistics

    def _metric_rows(self, metric: str, limit: int | None = None) -> list[FMStat]:
        query = select(FMStat).where(FMStat.metric == metric)
        if limit is None:
            query = query.order_by(FMStat.weekday, FMStat.hour)
        else:
            query = query.order_by(FMStat.rank.asc()).limit(limit)

        with self._storage_errors(f"reading metric {metric}"):
            with self.db_manager.get_session() as session:
                rows = list(session.scalars(query).all())
                session.expunge_all()
                return rows

    def get_heatmap(self) -> list[HeatmapCell]:
        """QSO counts per weekday and hour over the last week."""
        return [
            HeatmapCell(weekday=row.weekday, hour=row.hour, count=row.qso_count or 0)
            for row in self._metric_rows(METRIC_HEATMAP)
        ]

    def get_top_callsigns_by_count(self, limit: int = 10) -> list[CallsignCountEntry]:
        return [
            CallsignCountEntry(
                callsign=row.callsign,
                cnt=int(row.qso_count or 0),
                country_code=prefix_to_country(row.callsign),
            )
            for row in self._metric_rows(METRIC_TOP_CALLS_QSO, limit)
        ]

    def get_top_callsigns_by_duration(
        self, limit: int = 10
    ) -> list[CallsignDurationEntry]:
        return [
            CallsignDurationEntry(
                callsign=row.callsign,
                sec=float(row.total_seconds or 0.0),
                country_code=prefix_to_country(row.callsign),
            )
            for row in self._metric_rows(METRIC_TOP_CALLS_DURATION, limit)
        ]

    def get_hall_of_fame(self, limit: int = 10) -> list[HallOfFameEntry]:
        """Callsigns ranked by the composite score of the statistics job."""
        entries = []
        for row in self._metric_rows(METRIC_TOP_CALLS_SCORE, limit):
            qso_count = int(row.qso_count or 0)
            total_sec = float(row.total_seconds or 0.0)
            entries.append(
                HallOfFameEntry(
                    callsign=row.callsign,
                    qso_count=qso_count,
                    total_sec=total_sec,
                    score=float(row.score or 0.0),
                    avg_sec=average(total_sec, qso_count),
                    country_code=prefix_to_country(row.callsign),
                )
            )
        return entries

    def get_top_talkgroups(self, limit: int = 10) -> list[TalkgroupEntry]:
        """Talkgroups ranked by total transmission time (global)."""
        entries = []
        for row in self._metric_rows(METRIC_TOP_TG_DURATION, limit):
            cnt = int(row.qso_count or 0)
            total_sec = float(row.total_seconds or 0.0)
            entries.append(
                TalkgroupEntry(
                    tg=row.tg,
                    cnt=cnt,
                    total_sec=total_sec,
                    avg_sec=average(total_sec, cnt),
                )
            )
        return entries

    # Maintenance

    def prune_last_heard(self, max_rows: int, dry_run: bool = False) -> int:
        """Delete the oldest last-heard events beyond ``max_rows``.

        Args:
            max_rows: Number of most recent events to keep
            dry_run: Only count what would be deleted

        Returns:
            Number of rows deleted (or that would be deleted)
        """
        with self._storage_errors("pruning last heard"):
            with self.db_manager.get_session() as session:
                total = session.scalar(select(func.count()).select_from(LastHeard))
                excess = max(0, int(total or 0) - max_rows)
                if excess == 0 or dry_run:
                    return excess

                oldest = (
                    select(LastHeard.id)
                    .order_by(LastHeard.event_time.asc(), LastHeard.id.asc())
                    .limit(excess)
                )
                session.execute(
                    delete(LastHeard)
                    .where(LastHeard.id.in_(oldest))
                    .execution_options(synchronize_session=False)
                )
                session.commit()

        logger.info(f"Pruned {excess} last heard events (kept {max_rows})")
        return excess
