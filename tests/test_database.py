"""Tests for database operations."""

from datetime import datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError

from conftest import add_last_heard, add_metric
from openfm_api.config import DatabaseConfig
from openfm_api.database.connection import (
    DatabaseManager,
    describe_storage_error,
    resolve_database_url,
)
from openfm_api.database.operations import (
    METRIC_HEATMAP,
    METRIC_TOP_CALLS_QSO,
    METRIC_TOP_CALLS_SCORE,
    METRIC_TOP_TG_DURATION,
    DatabaseOperations,
    average,
    format_timestamp,
)
from openfm_api.exceptions import ConfigurationError, DatabaseError
from openfm_api.models.database_models import LastHeard, Node, StationConfig
from openfm_api.utils.form_validation import StationConfigUpdate, parse_station_form

BASE_TIME = datetime(2024, 6, 1, 12, 0, 0)


class TestDatabaseManager:
    """Tests for DatabaseManager."""

    def test_database_creation(self, db_manager: DatabaseManager) -> None:
        stats = db_manager.get_stats()
        assert "size_mb" in stats
        assert stats["tables"] == {
            "config": 0,
            "fmlastheard": 0,
            "fmstatus": 0,
            "nodes": 0,
            "fmstats": 0,
        }

    def test_mixed_case_columns(self, db_manager: DatabaseManager) -> None:
        """Attributes map onto the column names used by the ingest job."""
        with db_manager.get_session() as session:
            session.add(StationConfig(id=1, latitude="48.1", rx_freq="438725000"))
            session.commit()

            row = session.execute(text('SELECT "LAT", "RXFREQ" FROM config')).one()
            assert tuple(row) == ("48.1", "438725000")

    def test_vacuum(self, db_manager: DatabaseManager) -> None:
        assert db_manager.vacuum() is True
        assert db_manager.get_stats()["tables"]["config"] == 0

    def test_database_url(self, temp_dir: Path) -> None:
        db_path = temp_dir / "nested" / "node.db"
        manager = DatabaseManager(DatabaseConfig(url=f"sqlite:///{db_path}"))
        try:
            assert manager.is_sqlite
            assert manager.database_path == db_path
            assert manager.get_stats()["tables"]["nodes"] == 0
            assert db_path.exists()
        finally:
            manager.close()

    def test_url_takes_precedence_over_path(self, temp_dir: Path) -> None:
        config = DatabaseConfig(
            path=str(temp_dir / "ignored.db"), url=f"sqlite:///{temp_dir}/used.db"
        )
        assert resolve_database_url(config).database == f"{temp_dir}/used.db"
        assert resolve_database_url("data/node.db").database == "data/node.db"
        assert resolve_database_url("sqlite://").database is None

    @pytest.mark.parametrize("url", ["not a url", "nosuchdb://localhost/mmdvmdb"])
    def test_invalid_database_url(self, url: str) -> None:
        with pytest.raises(ConfigurationError):
            DatabaseManager(DatabaseConfig(url=url))

    def test_describe_storage_error(self) -> None:
        overflow = OverflowError("Python int too large to convert to SQLite INTEGER")
        assert describe_storage_error(overflow) == str(overflow)
        assert describe_storage_error(SQLAlchemyError("x")) == "SQLAlchemyError"


class TestHelpers:
    def test_format_timestamp(self) -> None:
        assert format_timestamp(None) is None
        assert format_timestamp(BASE_TIME) == "2024-06-01 12:00:00"
        assert format_timestamp("2024-06-01T12:00:00.123") == "2024-06-01 12:00:00"

    def test_average(self) -> None:
        assert average(30.0, 3) == 10.0
        assert average(30.0, 0) == 0.0


class TestStationConfigOperations:
    """Tests for config row reads and writes."""

    def test_no_config_row(self, db_manager: DatabaseManager) -> None:
        db_ops = DatabaseOperations(db_manager)
        assert db_ops.get_config_inbox() is None
        assert db_ops.get_local_config() is None

    def test_setup_password_default(self, db_manager: DatabaseManager) -> None:
        db_ops = DatabaseOperations(db_manager)
        assert db_ops.get_setup_password("fallback") == "fallback"

        with db_manager.get_session() as session:
            session.add(StationConfig(id=1, setup_password=""))
            session.commit()
        assert db_ops.get_setup_password("fallback") == "fallback"

    def test_set_setup_password(self, db_manager: DatabaseManager) -> None:
        db_ops = DatabaseOperations(db_manager)
        db_ops.set_setup_password("s3cret")
        assert db_ops.get_setup_password("fallback") == "s3cret"

    def test_upsert_keeps_password(
        self, db_manager: DatabaseManager, valid_form: dict[str, str]
    ) -> None:
        db_ops = DatabaseOperations(db_manager)
        db_ops.set_setup_password("s3cret")

        update, _ = parse_station_form(valid_form)
        db_ops.upsert_station_config(update)

        assert db_ops.get_setup_password("fallback") == "s3cret"
        with db_manager.get_session() as session:
            rows = session.scalars(select(StationConfig)).all()
            assert len(rows) == 1
            assert rows[0].id == 1
            assert rows[0].callsign == "DL1ABC"
            assert rows[0].updated_at is not None

    def test_config_inbox_shape(
        self, db_manager: DatabaseManager, valid_form: dict[str, str]
    ) -> None:
        db_ops = DatabaseOperations(db_manager)
        update, _ = parse_station_form(valid_form)
        db_ops.upsert_station_config(update)

        inbox = db_ops.get_config_inbox()
        assert inbox is not None
        data = inbox.model_dump(by_alias=True)

        assert data == {
            "Callsign": "DL1ABC",
            "Region": "Bavaria",
            "Location": "Munich",
            "Locator": "JN58TD",
            "SYSOP": "Max",
            "Latitude": "48.137",
            "Longitude": "11.575",
            "URL": "https://example.org",
            "RXFrequency": "438725000",
            "TXFrequency": "430125000",
            "Network": "fmnet.example.org",
            "CTCSSRepeater": "71.9",
            "TGDefault": "262",
            "TGMonitored": "262,26298",
        }

    def test_local_config(
        self, db_manager: DatabaseManager, valid_form: dict[str, str]
    ) -> None:
        db_ops = DatabaseOperations(db_manager)
        valid_form["TGDefault"] = ""
        update, _ = parse_station_form(valid_form)
        db_ops.upsert_station_config(update)

        local = db_ops.get_local_config()
        assert local is not None
        assert local.callsign == "DL1ABC"
        assert local.default_tg is None
        assert local.rxfreq == "438725000"
        assert datetime.strptime(local.updated_at or "", "%Y-%m-%d %H:%M:%S")

    def test_upsert_driver_overflow(
        self, db_manager: DatabaseManager, valid_form: dict[str, str]
    ) -> None:
        update, _ = parse_station_form(valid_form)
        oversized = StationConfigUpdate(
            **(update.model_dump() | {"default_tg": 2**70})
        )

        with pytest.raises(DatabaseError) as exc_info:
            DatabaseOperations(db_manager).upsert_station_config(oversized)

        assert "too large" in exc_info.value.message
        assert DatabaseOperations(db_manager).get_config_inbox() is None


class TestActivityOperations:
    """Tests for last heard and on-air queries."""

    def test_last_heard_duration_and_location(
        self, db_manager: DatabaseManager
    ) -> None:
        with db_manager.get_session() as session:
            session.add(Node(callsign="DL1ABC", location="Munich"))
            add_last_heard(
                session, "DL1ABC", 262, BASE_TIME, BASE_TIME + timedelta(seconds=42)
            )
            add_last_heard(
                session, "OE3XYZ", 232, None, BASE_TIME + timedelta(minutes=1)
            )
            session.commit()

        entries = DatabaseOperations(db_manager).get_last_heard()

        assert [e.callsign for e in entries] == ["OE3XYZ", "DL1ABC"]
        oe, dl = entries
        assert dl.duration_s == 42
        assert dl.location == "Munich"
        assert dl.country_code == "DE"
        assert dl.talk == "stop"
        assert dl.event_time == "2024-06-01 12:00:42"
        assert oe.duration_s is None
        assert oe.location is None
        assert oe.country_code == "AT"

    def test_last_heard_uses_latest_start(self, db_manager: DatabaseManager) -> None:
        with db_manager.get_session() as session:
            add_last_heard(
                session, "DL1ABC", 262, BASE_TIME, BASE_TIME + timedelta(seconds=5)
            )
            add_last_heard(
                session,
                "DL1ABC",
                262,
                BASE_TIME + timedelta(seconds=60),
                BASE_TIME + timedelta(seconds=70),
            )
            session.commit()

        entries = DatabaseOperations(db_manager).get_last_heard()
        assert [e.duration_s for e in entries] == [10, 5]

    def test_last_heard_start_must_match_server(
        self, db_manager: DatabaseManager
    ) -> None:
        with db_manager.get_session() as session:
            session.add(
                LastHeard(
                    event_time=BASE_TIME,
                    talk="start",
                    callsign="DL1ABC",
                    tg=262,
                    server="OTHER",
                )
            )
            add_last_heard(
                session, "DL1ABC", 262, None, BASE_TIME + timedelta(seconds=5)
            )
            session.commit()

        entries = DatabaseOperations(db_manager).get_last_heard()
        assert entries[0].duration_s is None

    def test_last_heard_filter_and_limit(self, db_manager: DatabaseManager) -> None:
        with db_manager.get_session() as session:
            for i in range(30):
                add_last_heard(
                    session,
                    f"DL{i}ABC",
                    1 + i % 3,
                    None,
                    BASE_TIME + timedelta(seconds=i),
                )
            session.commit()

        db_ops = DatabaseOperations(db_manager)
        assert len(db_ops.get_last_heard(limit=20)) == 20

        filtered = db_ops.get_last_heard(talkgroups=[1, 3])
        assert len(filtered) == 20
        assert {e.tg for e in filtered} == {1, 3}

    def test_prune_last_heard(self, db_manager: DatabaseManager) -> None:
        with db_manager.get_session() as session:
            for i in range(10):
                add_last_heard(
                    session, "DL1ABC", 262, None, BASE_TIME + timedelta(seconds=i)
                )
            session.commit()

        db_ops = DatabaseOperations(db_manager)
        assert db_ops.prune_last_heard(4, dry_run=True) == 6
        assert db_manager.get_stats()["tables"]["fmlastheard"] == 10

        assert db_ops.prune_last_heard(4) == 6
        with db_manager.get_session() as session:
            times = session.scalars(
                select(LastHeard.event_time).order_by(LastHeard.event_time)
            ).all()
        assert times[0] == BASE_TIME + timedelta(seconds=6)
        assert len(times) == 4

        assert db_ops.prune_last_heard(4) == 0


class TestMetricOperations:
    """Tests for the pre-aggregated statistics."""

    def test_heatmap_order_and_null_count(self, db_manager: DatabaseManager) -> None:
        with db_manager.get_session() as session:
            add_metric(session, METRIC_HEATMAP, weekday=2, hour=5, qso_count=3)
            add_metric(session, METRIC_HEATMAP, weekday=1, hour=23, qso_count=None)
            add_metric(session, METRIC_HEATMAP, weekday=1, hour=7, qso_count=9)
            session.commit()

        cells = DatabaseOperations(db_manager).get_heatmap()
        assert [(c.weekday, c.hour, c.count) for c in cells] == [
            (1, 7, 9),
            (1, 23, 0),
            (2, 5, 3),
        ]

    def test_top_callsigns_rank_order_and_limit(
        self, db_manager: DatabaseManager
    ) -> None:
        with db_manager.get_session() as session:
            for rank in range(12, 0, -1):
                add_metric(
                    session,
                    METRIC_TOP_CALLS_QSO,
                    rank=rank,
                    callsign=f"DL{rank}ABC",
                    qso_count=100 - rank,
                )
            session.commit()

        rows = DatabaseOperations(db_manager).get_top_callsigns_by_count()
        assert len(rows) == 10
        assert rows[0].callsign == "DL1ABC"
        assert rows[0].cnt == 99
        assert [r.callsign for r in rows] == [f"DL{r}ABC" for r in range(1, 11)]

    def test_hall_of_fame_average(self, db_manager: DatabaseManager) -> None:
        with db_manager.get_session() as session:
            add_metric(
                session,
                METRIC_TOP_CALLS_SCORE,
                rank=1,
                callsign="OE3XYZ",
                qso_count=4,
                total_seconds=100.0,
                score=12.5,
            )
            add_metric(session, METRIC_TOP_CALLS_SCORE, rank=2, callsign="K1ABC")
            session.commit()

        first, second = DatabaseOperations(db_manager).get_hall_of_fame()
        assert first.avg_sec == 25.0
        assert first.score == 12.5
        assert first.country_code == "AT"
        assert (second.qso_count, second.total_sec, second.score, second.avg_sec) == (
            0,
            0.0,
            0.0,
            0.0,
        )

    def test_top_talkgroups(self, db_manager: DatabaseManager) -> None:
        with db_manager.get_session() as session:
            add_metric(
                session,
                METRIC_TOP_TG_DURATION,
                rank=1,
                tg=262,
                qso_count=10,
                total_seconds=300.0,
            )
            session.commit()

        (row,) = DatabaseOperations(db_manager).get_top_talkgroups()
        assert row.model_dump() == {
            "tg": 262,
            "cnt": 10,
            "total_sec": 300.0,
            "avg_sec": 30.0,
        }

    def test_storage_error(self, db_manager: DatabaseManager) -> None:
        with db_manager.get_session() as session:
            session.execute(text("DROP TABLE fmstats"))
            session.commit()

        with pytest.raises(DatabaseError) as exc_info:
            DatabaseOperations(db_manager).get_top_talkgroups()

        assert exc_info.value.message == "no such table: fmstats"
        assert "SELECT" not in exc_info.value.message
