"""Engine and session handling for the node database."""

import logging
import threading
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import URL, Engine, create_engine, event, func, make_url, select, text
from sqlalchemy.exc import ArgumentError, DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session, scoped_session, sessionmaker
from sqlalchemy.pool import NullPool

from ..config import DatabaseConfig
from ..exceptions import ConfigurationError, DatabaseError
from ..models.database_models import (
    ActiveStation,
    Base,
    FMStat,
    LastHeard,
    Node,
    StationConfig,
)

logger = logging.getLogger(__name__)

_schema_lock = threading.Lock()

TABLE_MODELS: dict[str, type[Base]] = {
    "config": StationConfig,
    "fmlastheard": LastHeard,
    "fmstatus": ActiveStation,
    "nodes": Node,
    "fmstats": FMStat,
}

# Raised by the sqlite3 driver for integers outside the signed 64-bit range
DRIVER_ERRORS: tuple[type[Exception], ...] = (SQLAlchemyError, OverflowError)


def describe_storage_error(exc: Exception) -> str:
    """Driver-level error text, without the SQL statement or its parameters."""
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return str(exc.orig)
    if isinstance(exc, SQLAlchemyError):
        return exc.__class__.__name__
    return str(exc)


def resolve_database_url(database: str | DatabaseConfig) -> URL:
    """Build the SQLAlchemy URL for a config section, a URL or a file path.

    Raises:
        ConfigurationError: If the URL cannot be parsed
    """
    if isinstance(database, DatabaseConfig):
        target = database.url or f"sqlite:///{database.path}"
    elif "://" in database:
        target = database
    else:
        target = f"sqlite:///{database}"

    try:
        return make_url(target)
    except ArgumentError as e:
        raise ConfigurationError(f"Invalid database URL: {e}") from e


class DatabaseManager:
    """Owns the engine and a thread-scoped session factory.

    SQLite files get WAL and a few pragmas. Any other URL (for example the
    MySQL database the ingest job writes) is used as-is with a pooled engine.
    """

    def __init__(
        self,
        database: str | DatabaseConfig,
        enable_wal: bool = True,
        echo: bool = False,
    ):
        self.url = resolve_database_url(database)
        self.enable_wal = (
            database.enable_wal if isinstance(database, DatabaseConfig) else enable_wal
        )
        self.echo = echo

        self.database_path: Path | None = None
        if self.is_sqlite and self.url.database not in (None, "", ":memory:"):
            self.database_path = Path(self.url.database)
            self.database_path.parent.mkdir(parents=True, exist_ok=True)

        self.engine = self._create_engine()
        self.Session = scoped_session(sessionmaker(bind=self.engine))

        self._create_schema()

        logger.info(
            f"Database ready: {self.url.render_as_string(hide_password=True)}"
        )

    @property
    def is_sqlite(self) -> bool:
        return self.url.get_backend_name() == "sqlite"

    def _create_engine(self) -> Engine:
        try:
            if not self.is_sqlite:
                return create_engine(
                    self.url, echo=self.echo, pool_pre_ping=True, pool_recycle=3600
                )

            engine = create_engine(
                self.url,
                echo=self.echo,
                poolclass=NullPool,
                connect_args={"check_same_thread": False, "timeout": 30},
            )
        except ArgumentError as e:
            raise ConfigurationError(f"Unsupported database URL: {e}") from e

        @event.listens_for(engine, "connect")
        def apply_pragmas(dbapi_conn: Any, connection_record: Any) -> None:
            cursor = dbapi_conn.cursor()
            if self.enable_wal:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA temp_store=MEMORY")
            cursor.close()

        return engine

    def _create_schema(self) -> None:
        # Tables already written by the ingest job are left untouched
        with _schema_lock:
            try:
                Base.metadata.create_all(self.engine, checkfirst=True)
            except SQLAlchemyError as e:
                logger.error(f"Failed to prepare schema: {describe_storage_error(e)}")
                raise

    @contextmanager
    def get_session(self) -> Generator[Session]:
        """Yield a session, rolling back on error and releasing it afterwards.

        Pending changes are committed when the block exits normally.
        """
        session = self.Session()
        try:
            yield session
            if session.new or session.dirty or session.deleted:
                session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
            self.Session.remove()

    def close(self) -> None:
        self.Session.remove()
        self.engine.dispose()
        logger.info("Database connections closed")

    def get_stats(self) -> dict[str, Any]:
        """File size (SQLite only) and row counts per table."""
        size_mb = 0.0
        if self.database_path is not None and self.database_path.exists():
            size_mb = self.database_path.stat().st_size / (1024 * 1024)

        with self.get_session() as session:
            tables = {
                name: int(session.scalar(select(func.count()).select_from(model)) or 0)
                for name, model in TABLE_MODELS.items()
            }

        return {"size_mb": size_mb, "tables": tables}

    def vacuum(self) -> bool:
        """Reclaim free pages of a SQLite file.

        Returns:
            False when the backend is not SQLite and nothing was done

        Raises:
            DatabaseError: If VACUUM fails
        """
        if not self.is_sqlite:
            logger.warning(
                f"VACUUM skipped for {self.url.get_backend_name()} database"
            )
            return False

        try:
            with self.engine.connect().execution_options(
                isolation_level="AUTOCOMMIT"
            ) as conn:
                conn.execute(text("VACUUM"))
        except SQLAlchemyError as e:
            message = describe_storage_error(e)
            logger.error(f"Failed to vacuum database: {message}")
            raise DatabaseError(message) from e

        logger.info("Database vacuumed")
        return True
