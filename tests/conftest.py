"""Pytest configuration and fixtures."""

import tempfile
from collections.abc import Generator
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest
import yaml
from fastapi.testclient import TestClient

from openfm_api.api.app import create_app
from openfm_api.config import Config
from openfm_api.database.connection import DatabaseManager
from openfm_api.database.operations import DatabaseOperations
from openfm_api.middleware.rate_limiter import get_limiter
from openfm_api.models.database_models import FMStat, LastHeard

SETUP_PASSWORD = "setuppassword"


@pytest.fixture
def temp_dir() -> Generator[Path]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_config_dict(temp_dir: Path) -> dict:
    """Create test configuration dictionary."""
    return {
        "server": {
            "host": "127.0.0.1",
            "port": 8080,
            "debug": False,
            "cors_origins": ["*"],
            "enable_docs": True,
        },
        "database": {
            "path": str(temp_dir / "test.db"),
            "enable_wal": True,
        },
        "security": {
            "default_setup_password": SETUP_PASSWORD,
            "rate_limit": {"enabled": False},
        },
        "reports": {
            "lastheard_limit": 50,
            "leaderboard_limit": 10,
        },
        "monitoring": {
            "health_check": {
                "enabled": True,
                "path": "/health",
            },
        },
        "logging": {
            "level": "DEBUG",
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            "file": {
                "enabled": False,
                "path": str(temp_dir / "test.log"),
                "max_size_mb": 10,
                "backup_count": 3,
            },
            "console": {
                "enabled": True,
                "colorize": False,
            },
        },
    }


@pytest.fixture
def test_config_path(temp_dir: Path, test_config_dict: dict) -> Path:
    """Write test configuration to file."""
    config_path = temp_dir / "config.yaml"
    with open(config_path, "w") as f:
        yaml.dump(test_config_dict, f, default_flow_style=False)
    return config_path


@pytest.fixture
def test_config(test_config_dict: dict) -> Config:
    """Create test Config object."""
    return Config(**test_config_dict)


@pytest.fixture
def test_app(test_config_path: Path, test_config: Config) -> Any:
    """Create test FastAPI app."""
    return create_app(config_path=str(test_config_path), override_config=test_config)


@pytest.fixture
def test_client(test_app: Any) -> Generator[TestClient]:
    """Create test client."""
    with TestClient(test_app) as client:
        yield client


@pytest.fixture
def db_ops(test_client: TestClient) -> DatabaseOperations:
    """Database operations of the running test app."""
    return test_client.app.state.db_ops  # type: ignore[attr-defined]


@pytest.fixture
def db_manager(test_config: Config) -> Generator[DatabaseManager]:
    """Create test database manager."""
    manager = DatabaseManager(test_config.database)
    yield manager
    manager.close()


@pytest.fixture
def reset_limiter() -> Generator[None]:
    """Clear rate limit counters around a test."""
    limiter = get_limiter()
    limiter.reset()
    yield
    limiter.reset()
    limiter.enabled = False


@pytest.fixture
def valid_form() -> dict[str, str]:
    """A complete, valid setup form submission."""
    return {
        "ConfigPassword": SETUP_PASSWORD,
        "Callsign": "dl1abc",
        "Region": "Bavaria",
        "Location": "Munich",
        "Locator": "jn58td",
        "Latitude": "48.137",
        "Longitude": "11.575",
        "URL": "example.org",
        "CTCSS": "",
        "SYSOP": "Max",
        "RXFrequency": "438725000",
        "TXFrequency": "430125000",
        "Network": "fmnet.example.org",
        "CTCSSRepeater": "71.9",
        "TGDefault": "262",
        "TGMonitored": "262,26298",
        "RebootFlag": "0",
    }


def add_last_heard(
    session: Any,
    callsign: str,
    tg: int,
    start: datetime | None,
    stop: datetime,
    server: str = "FMN",
) -> None:
    """Insert a transmission as start/stop event pair (start may be omitted)."""
    if start is not None:
        session.add(
            LastHeard(
                event_time=start, talk="start", callsign=callsign, tg=tg, server=server
            )
        )
    session.add(
        LastHeard(event_time=stop, talk="stop", callsign=callsign, tg=tg, server=server)
    )


def add_metric(session: Any, metric: str, **values: Any) -> None:
    session.add(FMStat(metric=metric, **values))
