"""Setup endpoint that stores the station configuration."""

import hmac
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..config import Config
from ..database.operations import DatabaseOperations
from ..exceptions import (
    AuthenticationError,
    ConfigWriteError,
    DatabaseError,
    MethodNotAllowedError,
)
from ..middleware.rate_limiter import WRITE_RATE_LIMIT, get_limiter
from ..models.api_models import ConfigSaveError, ConfigSaveResponse
from ..utils.form_validation import parse_station_form

logger = logging.getLogger(__name__)

router = APIRouter(tags=["setup"])
limiter = get_limiter()

NO_STORE_HEADERS = {"Cache-Control": "no-store, must-revalidate"}
PASSWORD_FIELD = "ConfigPassword"

# Every method is routed here so that non-POST requests get a JSON 405
ROUTED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


def get_client_ip(request: Request) -> str:
    """Client address, honouring X-Forwarded-For from a reverse proxy."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def password_matches(submitted: str, secret: str) -> bool:
    """Constant-time comparison of the submitted password and the secret."""
    return hmac.compare_digest(submitted.encode("utf-8"), secret.encode("utf-8"))


@router.api_route(
    "/save_config",
    methods=ROUTED_METHODS,
    summary="Save Station Config",
    description="Validate the setup form and store it as the station configuration",
    response_model=ConfigSaveResponse,
    responses={
        400: {"model": ConfigSaveError, "description": "Validation failed"},
        401: {"model": ConfigSaveError, "description": "Wrong setup password"},
        405: {"model": ConfigSaveError, "description": "Method not allowed"},
        500: {"model": ConfigSaveError, "description": "Datastore failure"},
    },
)
@router.api_route("/save_config.php", methods=ROUTED_METHODS, include_in_schema=False)
@limiter.limit(WRITE_RATE_LIMIT)
async def save_config(request: Request) -> JSONResponse:
    """Store the submitted setup form in the single config row.

    The form must carry `ConfigPassword` matching the stored setup password.
    All field problems are reported together, separated by `; `.
    """
    if request.method != "POST":
        raise MethodNotAllowedError("method not allowed")

    config: Config = request.app.state.config
    db_ops: DatabaseOperations = request.app.state.db_ops
    client_ip = get_client_ip(request)

    try:
        secret = db_ops.get_setup_password(config.security.default_setup_password)
    except DatabaseError as e:
        raise ConfigWriteError("could not read setup password", 500) from e

    form = await request.form()
    submitted = form.get(PASSWORD_FIELD)
    if not isinstance(submitted, str) or not password_matches(submitted, secret):
        logger.warning(f"Rejected config write from {client_ip}: wrong setup password")
        raise AuthenticationError("auth required")

    update, count = parse_station_form(form)

    try:
        db_ops.upsert_station_config(update)
    except DatabaseError as e:
        raise ConfigWriteError(e.message, 500) from e

    logger.info(f"Station config saved by {client_ip} ({count} fields)")
    return JSONResponse(
        content=ConfigSaveResponse(count=count).model_dump(),
        headers=NO_STORE_HEADERS,
    )
