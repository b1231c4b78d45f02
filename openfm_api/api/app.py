"""FastAPI application factory and setup."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import Config, setup_logging
from ..database import DatabaseManager, DatabaseOperations
from ..exceptions import ConfigWriteError, ReportError
from ..middleware import (
    RateLimitMiddleware,
    RequestValidationMiddleware,
    SecurityHeadersMiddleware,
)
from ..models.api_models import HealthCheckResponse
from .query import router as query_router
from .setup import NO_STORE_HEADERS
from .setup import router as setup_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan manager."""
    logger.info("Starting openfm-api...")

    config: Config = app.state.config

    db_manager = DatabaseManager(config.database, echo=config.server.debug)
    app.state.db_manager = db_manager
    app.state.db_ops = DatabaseOperations(db_manager)

    logger.info("openfm-api started successfully")

    yield

    logger.info("Shutting down openfm-api...")
    db_manager.close()
    logger.info("openfm-api shutdown complete")


def register_exception_handlers(app: FastAPI) -> None:
    """Render domain exceptions in the document shape of each endpoint."""

    @app.exception_handler(ReportError)
    async def report_error_handler(request: Request, exc: ReportError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(ConfigWriteError)
    async def config_write_error_handler(
        request: Request, exc: ConfigWriteError
    ) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"Config write failed: {exc.message}")
        elif exc.status_code == 400:
            logger.warning(f"Config write rejected: {exc.message}")

        return JSONResponse(
            status_code=exc.status_code,
            content={"ok": False, "error": exc.message},
            headers=NO_STORE_HEADERS,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle uncaught exceptions."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(
    config_path: str = "config.yaml", override_config: Config | None = None
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        config_path: Path to configuration file
        override_config: Optional config object to use instead of loading from file

    Returns:
        Configured FastAPI app
    """
    if override_config:
        config = override_config
    else:
        config = Config.load_from_file(config_path)

    setup_logging(config.logging)

    app = FastAPI(
        title="openfm-api",
        description="""## FM Network Node API

Read-only reports and the setup endpoint for an FM repeater node.

### API Sections
- **query** - Station config, last heard, on-air status, heatmap and leaderboards
- **setup** - Password-protected station configuration form
- **health** - Service health monitoring
        """,
        version=__version__,
        docs_url="/docs" if config.server.enable_docs else None,
        redoc_url="/redoc" if config.server.enable_docs else None,
        openapi_tags=[
            {"name": "query", "description": "Station and activity reports"},
            {"name": "setup", "description": "Station configuration writes"},
            {"name": "health", "description": "Health check endpoints"},
        ],
        lifespan=lifespan,
    )

    app.state.config = config

    if config.server.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.server.cors_origins,
            allow_credentials=False,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestValidationMiddleware)

    app.state.rate_limiter = RateLimitMiddleware(app, config)

    app.include_router(query_router)
    app.include_router(setup_router)

    if config.monitoring.health_check.enabled:

        @app.get(
            config.monitoring.health_check.path,
            response_model=HealthCheckResponse,
            tags=["health"],
            summary="Health Check",
            description="Check the health status of the API and its database",
        )
        async def health_check(request: Request) -> HealthCheckResponse:
            """Report API health and database connectivity."""
            try:
                request.app.state.db_manager.get_stats()
                db_status = "connected"
            except Exception as e:
                logger.error(f"Health check could not reach the database: {e}")
                db_status = "error"

            return HealthCheckResponse(
                status="healthy" if db_status == "connected" else "unhealthy",
                timestamp=datetime.now(UTC),
                version=__version__,
                database=db_status,
            )

    register_exception_handlers(app)

    return app
