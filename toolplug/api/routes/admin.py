"""
Admin endpoints, called by the scheduler and by operators.

- POST /api/admin/generate - run the generate phase for a period
- POST /api/admin/dispatch - send a period's queued picks
- GET /api/admin/picks - list what is stored for a period

All routes require the admin API key (see middleware.auth).
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from toolplug.api.middleware.auth import require_admin_auth
from toolplug.errors import ToolPlugError
from toolplug.observability.logging import get_logger
from toolplug.pipeline.periods import PeriodKind, kind_of, period_key_for
from toolplug.storage.picks import PeriodStore
from toolplug.utils.error_sanitizer import get_safe_error_detail

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin_auth)],
)
logger = get_logger(__name__)


class GenerateRequest(BaseModel):
    kind: PeriodKind = PeriodKind.WEEK
    period_key: str | None = None
    force: bool = False


class DispatchRequest(BaseModel):
    period_key: str | None = None
    respect_day: bool | None = None


def _error(error: Exception, status_code: int, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"ok": False, "error": get_safe_error_detail(error, status_code), **extra},
    )


def _parse_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes")


@router.post("/generate")
def generate(request: GenerateRequest | None = None) -> JSONResponse:
    """Generate (or reuse) a period's picks. Failure with nothing cached is a 500."""
    from toolplug.pipeline.generation import generate_period

    request = request or GenerateRequest()
    try:
        result = generate_period(request.period_key, kind=request.kind, force=request.force)
    except ValueError as e:
        return _error(e, 400, period_key=request.period_key)
    except ToolPlugError as e:
        return _error(e, 500, period_key=request.period_key)
    return JSONResponse(content=result.to_dict())


@router.post("/dispatch")
def dispatch(
    request: DispatchRequest | None = None,
    respect_day: str | None = Query(None),
) -> JSONResponse:
    """
    Send a period's queued picks.

    ``respect_day`` (query param wins over body, default true) limits the run
    to subscribers whose send day is today.
    """
    from toolplug.dispatch.engine import default_week_key, dispatch_period

    request = request or DispatchRequest()
    if respect_day is not None:
        restrict = _parse_flag(respect_day)
    elif request.respect_day is not None:
        restrict = request.respect_day
    else:
        restrict = True

    period_key = request.period_key or default_week_key()
    try:
        report = dispatch_period(period_key, restrict_to_weekday=restrict)
    except ValueError as e:
        return _error(e, 400, period_key=period_key)
    except ToolPlugError as e:
        return _error(e, 500, period_key=period_key)
    return JSONResponse(content=report.to_dict())


@router.get("/picks")
def list_picks(
    period_key: str | None = Query(None),
    include_html: bool = Query(False),
) -> JSONResponse:
    period_key = period_key or period_key_for(PeriodKind.WEEK)
    try:
        kind_of(period_key)
    except ValueError as e:
        return _error(e, 400, period_key=period_key)

    items = [pick.summary(include_html=include_html) for pick in PeriodStore.list_for_period(period_key)]
    return JSONResponse(
        content={"ok": True, "period_key": period_key, "count": len(items), "items": items}
    )
