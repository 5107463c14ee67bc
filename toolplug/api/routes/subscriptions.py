"""
Public subscription endpoints.

- POST /api/subscribe - start a signup (sends the confirmation email)
- GET /api/confirm - confirmation link target, renders an HTML page
- GET /api/unsubscribe - unsubscribe link target, renders an HTML page
- GET /api/status - whether an email is a confirmed subscriber
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel

from toolplug.api import pages
from toolplug.errors import ConfigurationError, ConfirmationDeliveryError, InvalidSignupError
from toolplug.observability.logging import get_logger
from toolplug.subscriptions.models import ConfirmOutcome, UnsubscribeOutcome
from toolplug.subscriptions.service import get_subscription_service
from toolplug.utils.error_sanitizer import get_safe_error_detail, sanitize_error_message

router = APIRouter(prefix="/api", tags=["subscriptions"])
logger = get_logger(__name__)


class SubscribeRequest(BaseModel):
    """Signup form body. Shapes are checked by the service so bad input is a 400."""

    email: str = ""
    send_day: int | str | None = None
    categories: list[Any] = []


def _coerce_send_day(value: int | str | None) -> int:
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError as e:
        raise InvalidSignupError("Invalid send_day") from e


@router.post("/subscribe")
def subscribe(request: SubscribeRequest) -> JSONResponse:
    service = get_subscription_service()
    try:
        service.submit_signup(
            request.email, _coerce_send_day(request.send_day), request.categories
        )
    except InvalidSignupError as e:
        return JSONResponse(
            status_code=400,
            content={"ok": False, "error": sanitize_error_message(str(e), 400)},
        )
    except (ConfirmationDeliveryError, ConfigurationError) as e:
        return JSONResponse(
            status_code=502,
            content={"ok": False, "error": get_safe_error_detail(e, 502)},
        )
    return JSONResponse(content={"ok": True})


@router.get("/confirm", response_class=HTMLResponse)
def confirm(token: str | None = Query(None)) -> HTMLResponse:
    if not token:
        return pages.missing_token_page()

    outcome = get_subscription_service().confirm(token)
    if outcome is ConfirmOutcome.CONFIRMED:
        return pages.confirmed_page()
    if outcome is ConfirmOutcome.ALREADY_CONFIRMED:
        return pages.already_subscribed_page()
    return pages.invalid_link_page()


@router.get("/unsubscribe", response_class=HTMLResponse)
def unsubscribe(token: str | None = Query(None)) -> HTMLResponse:
    if not token:
        return pages.missing_token_page()

    outcome = get_subscription_service().unsubscribe(token)
    if outcome is UnsubscribeOutcome.REMOVED:
        return pages.unsubscribed_page()
    return pages.invalid_link_page()


@router.get("/status")
def status(email: str | None = Query(None)) -> dict[str, bool]:
    return get_subscription_service().check_status(email)
