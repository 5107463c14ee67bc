"""Exception hierarchy shared by the curation pipeline and the API layer."""

from __future__ import annotations

from toolplug.infrastructure.retry import AdapterError


class ToolPlugError(Exception):
    """Base exception for ToolPlug errors."""


class ConfigurationError(ToolPlugError):
    """A required credential or setting is missing. Never retried."""


class FeedError(ToolPlugError):
    """The catalog feed returned an error, malformed data, or timed out."""


class FeedRateLimitedError(FeedError):
    """Rate limited before a single page could be collected."""

    def __init__(self, message: str, reset_in: float | None = None):
        super().__init__(message)
        self.reset_in = reset_in


class ContentGenerationError(ToolPlugError):
    """Generated copy failed strict validation (or the LLM call failed)."""

    def __init__(self, message: str, product_name: str | None = None):
        super().__init__(message)
        self.product_name = product_name


class GenerationFailedError(ToolPlugError):
    """The generate phase failed and there was no cached content to serve."""

    def __init__(self, message: str, period_key: str):
        super().__init__(message)
        self.period_key = period_key


class InvalidSignupError(ToolPlugError, ValueError):
    """Signup request rejected by validation (email, send day, categories)."""


class ConfirmationDeliveryError(ToolPlugError):
    """The confirmation email for a new signup could not be sent."""


class EmailDeliveryError(AdapterError):
    """The outbound email service rejected or failed a send."""
