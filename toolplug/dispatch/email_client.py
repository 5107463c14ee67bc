"""
Brevo transactional email client.

One POST per message to ``/v3/smtp/email``.  429 and 5xx answers and
connection failures are retried by RetryPolicy.  Any other transport error
(read timeout, broken response) may come after Brevo accepted the message,
so it fails the send without a retry; the recipient has no send log entry
and the next dispatch run picks them up.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

import requests

from toolplug.config import (
    EMAIL_API_URL,
    EMAIL_MAX_ATTEMPTS,
    EMAIL_SENDER_LOCAL_PART,
    EMAIL_TIMEOUT_SECONDS,
    SITE_DOMAIN,
    SITE_NAME,
    brevo_api_key,
)
from toolplug.errors import ConfigurationError, EmailDeliveryError
from toolplug.infrastructure.retry import RetryPolicy
from toolplug.observability.logging import get_logger
from toolplug.observability.telemetry import counter, log_event
from toolplug.utils.html import html_to_text
from toolplug.utils.redaction import redact

logger = get_logger(__name__)


class BrevoEmailClient:
    """Sends single transactional emails through Brevo."""

    def __init__(
        self,
        api_key: str | None = None,
        session: requests.Session | None = None,
        domain: str = SITE_DOMAIN,
        api_url: str = EMAIL_API_URL,
        timeout: float = EMAIL_TIMEOUT_SECONDS,
        max_attempts: int = EMAIL_MAX_ATTEMPTS,
        sleep_fn: Callable[[float], None] = time.sleep,
    ):
        self._api_key = api_key
        self.session = session or requests.Session()
        self.domain = domain
        self.api_url = api_url
        self.timeout = timeout
        self.retry_policy = RetryPolicy(
            stage="email.send", max_attempts=max_attempts, sleep_fn=sleep_fn
        )

    @property
    def sender(self) -> dict[str, str]:
        return {"email": f"{EMAIL_SENDER_LOCAL_PART}@{self.domain}", "name": SITE_NAME}

    def build_payload(
        self, to_email: str, subject: str, html: str, text: str | None = None
    ) -> dict[str, Any]:
        return {
            "sender": self.sender,
            "replyTo": self.sender,
            "to": [{"email": to_email}],
            "subject": subject,
            "htmlContent": html,
            "textContent": text if text is not None else html_to_text(html),
        }

    def _post(self, api_key: str, payload: dict[str, Any]) -> None:
        try:
            response = self.session.post(
                self.api_url,
                headers={"api-key": api_key, "content-type": "application/json"},
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.ConnectionError as e:
            # Includes ConnectTimeout
            raise EmailDeliveryError(f"Email transport error: {e}") from e
        except requests.exceptions.RequestException as e:
            counter("email.unconfirmed")
            raise EmailDeliveryError(
                f"Email transport error after sending: {e}", retryable=False
            ) from e

        if not response.ok:
            raise EmailDeliveryError(
                f"Email service returned {response.status_code}",
                status_code=response.status_code,
                body=response.text or "",
            )

    def ensure_configured(self) -> str:
        """
        Return the API key.

        Raises:
            ConfigurationError: If BREVO_API_KEY is not set
        """
        api_key = (self._api_key or brevo_api_key()).strip()
        if not api_key:
            raise ConfigurationError("Missing BREVO_API_KEY")
        return api_key

    def send(self, to_email: str, subject: str, html: str, text: str | None = None) -> None:
        """
        Send one email.

        Raises:
            ConfigurationError: If BREVO_API_KEY is not set (never retried)
            EmailDeliveryError: If the send failed after retries
        """
        api_key = self.ensure_configured()

        payload = self.build_payload(to_email, subject, html, text)
        try:
            self.retry_policy.execute(self._post, api_key, payload)
        except EmailDeliveryError as e:
            counter("email.failed")
            log_event("email.failed", to=redact(to_email), status=e.status_code)
            raise

        counter("email.sent")
        logger.debug("Sent %r to %s", subject, redact(to_email))
