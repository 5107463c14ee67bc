"""Subscription service: the only place subscriber state changes.

    signup ──> Pending ──confirm──> Confirmed ──unsubscribe──> Removed

Conflicting transitions (confirming twice, unsubscribing with a stale token)
come back as outcome enums rather than exceptions; only bad input and a
failed confirmation email raise.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable
from functools import lru_cache
from urllib.parse import quote

from toolplug.config import SITE_DOMAIN, SITE_NAME
from toolplug.curation.categories import CATEGORY_ORDER, Category, parse_category
from toolplug.dispatch.email_client import BrevoEmailClient
from toolplug.errors import ConfirmationDeliveryError, EmailDeliveryError, InvalidSignupError
from toolplug.observability.logging import get_logger
from toolplug.observability.telemetry import counter, log_event
from toolplug.subscriptions.models import (
    ConfirmOutcome,
    PendingSubscriber,
    UnsubscribeOutcome,
)
from toolplug.subscriptions.repository import SubscriberRepository
from toolplug.utils.email import is_valid_email, normalize_email
from toolplug.utils.redaction import redact

logger = get_logger(__name__)

CONFIRMATION_SUBJECT = f"Confirm your {SITE_NAME} subscription"

CONFIRMATION_TEXT = """Hey Friend!

You asked to receive a weekly tool pick from ToolPlug!

Confirm here: {confirm_url}

If you didn't request this, you can ignore this email, and you'll never hear from us again."""

CONFIRMATION_HTML = """<div style="font-family:system-ui,-apple-system,Segoe UI,Roboto,Arial,sans-serif;line-height:1.6;background:#f8f9ff;padding:24px;text-align:center;">
<div style="max-width:400px;margin:auto;background:#fff;padding:24px;border-radius:16px;border:1px solid rgba(155,107,158,0.25);">
<div style="font-size:32px;">🔌⚡</div>
<h2>Welcome to <span style="color:#9B6B9E;">ToolPlug</span>!</h2>
<p>Hi <b>tool lover</b>!<br>You're one click away from <b>weekly drops</b> in:<br>{labels}</p>
<p style="margin:30px 0;">
<a href="{confirm_url}" style="display:inline-block;padding:12px 26px;background:#9B6B9E;color:#fff;font-size:18px;border-radius:8px;font-weight:bold;text-decoration:none;">Confirm &amp; Get Started ✅</a>
</p>
<p style="font-size:12px;color:#6B7280;">Didn't request this? Just ignore!</p>
</div>
</div>"""


def _new_token() -> str:
    return str(uuid.uuid4())


def parse_categories(values: Iterable[str] | None) -> list[Category]:
    """
    Validate category slugs against the enumeration.

    Raises:
        InvalidSignupError: If empty or any slug is unknown
    """
    values = list(values or [])
    if not values:
        raise InvalidSignupError("Pick at least one category")

    parsed = []
    for value in values:
        category = parse_category(value) if isinstance(value, str) else None
        if category is None:
            raise InvalidSignupError(f"Unknown category: {str(value)[:40]}")
        parsed.append(category)
    return [category for category in CATEGORY_ORDER if category in parsed]


class SubscriptionService:
    """Signup, confirmation, unsubscribe and status checks."""

    def __init__(
        self,
        email_client: BrevoEmailClient | None = None,
        domain: str = SITE_DOMAIN,
        token_factory: Callable[[], str] = _new_token,
    ):
        self.email_client = email_client or BrevoEmailClient(domain=domain)
        self.domain = domain
        self.token_factory = token_factory

    def confirm_url(self, token: str) -> str:
        return f"https://{self.domain}/api/confirm?token={quote(token, safe='')}"

    def submit_signup(self, email: str, send_day: int, categories: Iterable[str]) -> str:
        """
        Record a pending signup and email the confirmation link.

        Returns:
            The confirmation token

        Raises:
            InvalidSignupError: Bad email shape, send_day outside 0-6, or
                empty/unknown categories
            ConfirmationDeliveryError: The email could not be sent; the
                pending record stays and a new signup issues a new token
        """
        normalized = normalize_email(email)
        if not is_valid_email(normalized):
            raise InvalidSignupError("Invalid email")
        if isinstance(send_day, bool) or not isinstance(send_day, int) or not 0 <= send_day <= 6:
            raise InvalidSignupError("Invalid send_day")
        parsed_categories = parse_categories(categories)

        token = self.token_factory()
        SubscriberRepository.add_pending(
            PendingSubscriber(
                email=normalized,
                send_day=send_day,
                categories=parsed_categories,
                confirm_token=token,
            )
        )
        counter("subscriptions.signup")

        confirm_url = self.confirm_url(token)
        labels = " · ".join(category.label for category in parsed_categories)
        try:
            self.email_client.send(
                normalized,
                CONFIRMATION_SUBJECT,
                CONFIRMATION_HTML.format(confirm_url=confirm_url, labels=labels),
                CONFIRMATION_TEXT.format(confirm_url=confirm_url),
            )
        except EmailDeliveryError as e:
            counter("subscriptions.confirmation_failed")
            log_event("subscriptions.confirmation_failed", email=redact(normalized), status=e.status_code)
            raise ConfirmationDeliveryError("Could not send the confirmation email") from e

        log_event("subscriptions.pending", email=redact(normalized), send_day=send_day)
        return token

    def confirm(self, token: str | None) -> ConfirmOutcome:
        if not token:
            return ConfirmOutcome.NOT_FOUND
        outcome = SubscriberRepository.confirm(token, self.token_factory())
        counter(f"subscriptions.confirm.{outcome.value}")
        return outcome

    def unsubscribe(self, token: str | None) -> UnsubscribeOutcome:
        if not token:
            return UnsubscribeOutcome.NOT_FOUND
        removed = SubscriberRepository.remove_by_unsub_token(token)
        outcome = UnsubscribeOutcome.REMOVED if removed else UnsubscribeOutcome.NOT_FOUND
        counter(f"subscriptions.unsubscribe.{outcome.value}")
        return outcome

    def check_status(self, email: str | None) -> dict[str, bool]:
        """Whether ``email`` is a confirmed subscriber (polled by the signup page)."""
        normalized = normalize_email(email)
        if not normalized:
            return {"subscribed": False}
        return {"subscribed": SubscriberRepository.is_subscribed(normalized)}


@lru_cache(maxsize=1)
def get_subscription_service() -> SubscriptionService:
    """Process-wide service used by the API routes."""
    return SubscriptionService()
