"""Query API endpoint returning station config and activity statistics."""

import logging
from collections.abc import Callable, Mapping
from typing import Any

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from ..config import ReportsConfig
from ..database.operations import DatabaseOperations
from ..exceptions import DatabaseError, ReportError, UnknownReportError
from ..middleware.rate_limiter import QUERY_RATE_LIMIT, get_limiter
from ..models.api_models import ErrorResponse
from ..utils.talkgroups import parse_talkgroup, parse_talkgroup_list

logger = logging.getLogger(__name__)

router = APIRouter(tags=["query"])
limiter = get_limiter()

ReportHandler = Callable[[DatabaseOperations, Mapping[str, str], ReportsConfig], Any]


def last_heard_talkgroups(params: Mapping[str, str]) -> list[int]:
    """Talkgroup restriction selected by the ``mode`` parameter.

    ``local`` uses the single ``tg`` parameter, ``monitored`` the
    comma-separated ``tgs`` list. Any other mode, or a filter that parses to
    nothing, means no restriction (empty list).
    """
    mode = params.get("mode", "all")

    if mode == "local":
        tg = parse_talkgroup(params.get("tg"))
        return [tg] if tg > 0 else []

    if mode == "monitored":
        return parse_talkgroup_list(params.get("tgs"))

    return []


def _config_inbox(
    db_ops: DatabaseOperations, params: Mapping[str, str], settings: ReportsConfig
) -> Any:
    inbox = db_ops.get_config_inbox()
    return inbox.model_dump(by_alias=True) if inbox else {}


def _local_config(
    db_ops: DatabaseOperations, params: Mapping[str, str], settings: ReportsConfig
) -> Any:
    local = db_ops.get_local_config()
    return local.model_dump() if local else {}


def _heatmap(
    db_ops: DatabaseOperations, params: Mapping[str, str], settings: ReportsConfig
) -> Any:
    return [cell.model_dump() for cell in db_ops.get_heatmap()]


def _last_heard(
    db_ops: DatabaseOperations, params: Mapping[str, str], settings: ReportsConfig
) -> Any:
    entries = db_ops.get_last_heard(
        talkgroups=last_heard_talkgroups(params), limit=settings.lastheard_limit
    )
    return [entry.model_dump() for entry in entries]


def _active_stations(
    db_ops: DatabaseOperations, params: Mapping[str, str], settings: ReportsConfig
) -> Any:
    return [entry.model_dump() for entry in db_ops.get_active_stations()]


def _top_count(
    db_ops: DatabaseOperations, params: Mapping[str, str], settings: ReportsConfig
) -> Any:
    rows = db_ops.get_top_callsigns_by_count(settings.leaderboard_limit)
    return [row.model_dump() for row in rows]


def _top_duration(
    db_ops: DatabaseOperations, params: Mapping[str, str], settings: ReportsConfig
) -> Any:
    rows = db_ops.get_top_callsigns_by_duration(settings.leaderboard_limit)
    return [row.model_dump() for row in rows]


def _hall_of_fame(
    db_ops: DatabaseOperations, params: Mapping[str, str], settings: ReportsConfig
) -> Any:
    rows = db_ops.get_hall_of_fame(settings.leaderboard_limit)
    return [row.model_dump() for row in rows]


def _top_talkgroups(
    db_ops: DatabaseOperations, params: Mapping[str, str], settings: ReportsConfig
) -> Any:
    rows = db_ops.get_top_talkgroups(settings.leaderboard_limit)
    return [row.model_dump() for row in rows]


REPORTS: dict[str, ReportHandler] = {
    "config_inbox": _config_inbox,
    "localconfig": _local_config,
    "fmheatmap": _heatmap,
    "fmlastheard": _last_heard,
    "fmstatus": _active_stations,
    "fm_callsignTop10Count": _top_count,
    "fm_callsignTop10Duration": _top_duration,
    "fm_hallOfFameWeek": _hall_of_fame,
    "fm_topTalkgroups": _top_talkgroups,
}


def execute_report(
    db_ops: DatabaseOperations,
    discriminator: str | None,
    params: Mapping[str, str],
    settings: ReportsConfig,
) -> Any:
    """Run the report selected by ``discriminator``.

    Args:
        db_ops: Database operations
        discriminator: Report name (the ``q`` parameter)
        params: All request parameters
        settings: Report limits

    Returns:
        JSON-serializable object or list

    Raises:
        UnknownReportError: If the discriminator is missing or unknown
        ReportError: If the datastore fails (status 500)
    """
    handler = REPORTS.get(discriminator or "")
    if handler is None:
        logger.info(f"Unknown report requested: {discriminator!r}")
        raise UnknownReportError("bad query")

    try:
        return handler(db_ops, params, settings)
    except DatabaseError as e:
        raise ReportError(e.message, status_code=500) from e


@router.get(
    "/api",
    summary="Query Report",
    description="Run one of the fixed station and activity reports selected by `q`",
    responses={
        200: {
            "description": "Report document (object or list, depending on `q`)",
            "content": {
                "application/json": {
                    "example": [
                        {"callsign": "DL1ABC", "cnt": 42, "country_code": "DE"}
                    ]
                }
            },
        },
        400: {"model": ErrorResponse, "description": "Unknown report"},
        500: {"model": ErrorResponse, "description": "Datastore failure"},
    },
)
@router.get("/api.php", include_in_schema=False)
@limiter.limit(QUERY_RATE_LIMIT)
async def query_report(
    request: Request,
    q: str | None = Query(None, description="Report name"),
    mode: str = Query("all", description="Last-heard filter: all, local, monitored"),
    tg: str | None = Query(None, description="Talkgroup for mode=local"),
    tgs: str | None = Query(None, description="Comma-separated talkgroups"),
) -> JSONResponse:
    """Return the report selected by ``q``.

    Available reports:
    - `config_inbox`, `localconfig`: station configuration
    - `fmheatmap`: weekly activity heatmap
    - `fmlastheard`: recent transmissions (filter with `mode`, `tg`, `tgs`)
    - `fmstatus`: stations currently on air
    - `fm_callsignTop10Count`, `fm_callsignTop10Duration`, `fm_hallOfFameWeek`,
      `fm_topTalkgroups`: leaderboards
    """
    db_ops: DatabaseOperations = request.app.state.db_ops
    settings: ReportsConfig = request.app.state.config.reports

    params = {"mode": mode}
    if tg is not None:
        params["tg"] = tg
    if tgs is not None:
        params["tgs"] = tgs

    payload = execute_report(db_ops, q, params, settings)
    return JSONResponse(content=payload)
